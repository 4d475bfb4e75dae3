"""Chat message persistence and automated replies."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from .. import models
from ..auth import Principal
from ..database import SessionLocal
from ..errors import InvalidArgument, NotFound
from ..rbac import ensure_owner_or_admin
from ..responder import generate_reply
from ..scheduler import ReplyScheduler

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 100


def post_message(
    db: Session,
    scheduler: ReplyScheduler | None,
    text: str | None,
    principal: Principal,
) -> models.ChatMessage:
    """Persist a human message and queue its automated reply."""

    cleaned = (text or "").strip()
    if not cleaned:
        raise InvalidArgument("Message is required")
    msg = models.ChatMessage(user_id=principal.id, message=cleaned, is_ai=False)
    db.add(msg)
    db.commit()
    db.refresh(msg)
    if scheduler is not None:
        scheduler.schedule(principal.id, cleaned)
    return msg


def deliver_automated_reply(user_id: UUID, text: str) -> models.ChatMessage:
    """Insert the canned reply for ``text``, attributed to the triggering user."""

    db = SessionLocal()
    try:
        reply = models.ChatMessage(user_id=user_id, message=generate_reply(text), is_ai=True)
        db.add(reply)
        db.commit()
        db.refresh(reply)
        return reply
    finally:
        db.close()


def list_messages(db: Session, limit: int = HISTORY_LIMIT) -> list[models.ChatMessage]:
    """Return the newest ``limit`` messages, oldest first."""

    recent = (
        db.query(models.ChatMessage)
        .options(joinedload(models.ChatMessage.author))
        .order_by(models.ChatMessage.created_at.desc())
        .limit(limit)
        .all()
    )
    return sorted(recent, key=lambda m: m.created_at)


def delete_message(db: Session, message_id: UUID, principal: Principal) -> None:
    msg = db.get(models.ChatMessage, message_id)
    if msg is None:
        raise NotFound("Message not found")
    ensure_owner_or_admin(db, principal, msg.user_id)
    db.delete(msg)
    db.commit()
