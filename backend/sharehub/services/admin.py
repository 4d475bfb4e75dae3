"""Administrator aggregation queries and user management."""

from __future__ import annotations

import logging
import time
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..auth import Principal
from ..errors import DependencyFailure, NotFound
from ..rbac import ensure_not_self
from ..storage import BlobStore, LISTING_CAP
from . import file_store

# purpose: compute usage counters on demand and apply admin-only user mutations
# status: active

logger = logging.getLogger(__name__)

PROCESS_STARTED = time.monotonic()
BYTES_PER_MB = 1024 * 1024


def uptime_seconds() -> float:
    return time.monotonic() - PROCESS_STARTED


def _count(db: Session, column) -> int:
    return db.query(func.count(column)).scalar() or 0


def storage_bytes(blobs: BlobStore, limit: int = LISTING_CAP) -> int:
    return sum(blob.size for blob in blobs.list(limit=limit))


def collect_stats(db: Session, blobs: BlobStore) -> dict:
    """Count users, files and messages and total blob storage; nothing is cached."""

    try:
        used = storage_bytes(blobs)
    except Exception:
        logger.exception("Blob listing failed while collecting stats")
        raise DependencyFailure("Failed to fetch statistics")
    return {
        "users": _count(db, models.User.id),
        "files": _count(db, models.File.id),
        "messages": _count(db, models.ChatMessage.id),
        "storageUsed": round(used / BYTES_PER_MB),
        "serverUptime": uptime_seconds(),
    }


def list_users(db: Session) -> list[models.User]:
    return db.query(models.User).order_by(models.User.created_at.desc()).all()


def _get_user(db: Session, user_id: UUID) -> models.User:
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def set_admin(db: Session, principal: Principal, user_id: UUID, is_admin: bool) -> models.User:
    if not is_admin:
        ensure_not_self(principal, user_id, "Cannot remove admin status from yourself")
    user = _get_user(db, user_id)
    user.is_admin = is_admin
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s admin flag set to %s by %s", user_id, is_admin, principal.id)
    return user


def delete_user(db: Session, blobs: BlobStore, principal: Principal, user_id: UUID) -> None:
    """Delete a user, their blobs (best effort) and, by cascade, their files and messages."""

    ensure_not_self(principal, user_id, "Cannot delete your own account")
    user = _get_user(db, user_id)
    failures = file_store.remove_owner_blobs(db, blobs, user_id)
    if failures:
        logger.warning("%d blob(s) of user %s left for reclamation", failures, user_id)
    db.delete(user)
    db.commit()
    logger.info("User %s deleted by %s", user_id, principal.id)
