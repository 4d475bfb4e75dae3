from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal
from ..database import get_db
from ..rbac import require_admin
from ..services import admin, file_store
from ..storage import BlobStore, get_blob_store
from .. import schemas

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/stats", response_model=schemas.AdminStats)
async def get_stats(
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    principal: Principal = Depends(require_admin),
):
    return admin.collect_stats(db, blobs)


@router.get("/users", response_model=schemas.UserList)
async def list_users(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    return {"users": admin.list_users(db)}


@router.patch("/users/{user_id}/admin", response_model=schemas.UserEnvelope)
async def toggle_admin(
    user_id: UUID,
    payload: schemas.AdminToggle,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_admin),
):
    user = admin.set_admin(db, principal, user_id, payload.isAdmin)
    return {"user": user}


@router.delete("/users/{user_id}", response_model=schemas.DeleteOut)
async def delete_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    principal: Principal = Depends(require_admin),
):
    admin.delete_user(db, blobs, principal, user_id)
    return {"success": True, "message": "User deleted successfully"}


@router.delete("/files/{file_id}", response_model=schemas.DeleteOut)
async def delete_file(
    file_id: UUID,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
    principal: Principal = Depends(require_admin),
):
    file_store.delete_file(db, blobs, file_id)
    return {"success": True, "message": "File deleted successfully"}
