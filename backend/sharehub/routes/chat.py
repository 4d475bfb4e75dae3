from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..auth import Principal, get_current_principal
from ..database import get_db
from ..scheduler import ReplyScheduler
from ..services import chat
from .. import schemas

router = APIRouter(prefix="/api/chat", tags=["chat"])


def get_reply_scheduler(request: Request) -> ReplyScheduler | None:
    return getattr(request.app.state, "reply_scheduler", None)


@router.get("/messages", response_model=schemas.ChatMessageList)
async def list_messages(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"messages": chat.list_messages(db)}


@router.post("/messages", response_model=schemas.ChatMessageEnvelope, status_code=201)
async def post_message(
    payload: schemas.ChatMessageCreate,
    db: Session = Depends(get_db),
    scheduler: ReplyScheduler | None = Depends(get_reply_scheduler),
    principal: Principal = Depends(get_current_principal),
):
    msg = chat.post_message(db, scheduler, payload.message, principal)
    return {"message": msg}


@router.delete("/messages/{message_id}", response_model=schemas.DeleteOut)
async def delete_message(
    message_id: UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    chat.delete_message(db, message_id, principal)
    return {"success": True}
