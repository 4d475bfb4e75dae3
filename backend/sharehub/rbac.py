from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.orm import Session

from . import models
from .auth import Principal, get_current_principal
from .database import get_db
from .errors import Forbidden, InvalidArgument

# purpose: re-derive administrator privilege from stored state on every call
# status: active


def has_admin_privilege(db: Session, principal: Principal) -> bool:
    """Return the subject's current ``is_admin`` bit, False when the user is gone.

    The token's embedded admin claim is never consulted here.
    """

    is_admin = (
        db.query(models.User.is_admin)
        .filter(models.User.id == principal.id)
        .scalar()
    )
    return bool(is_admin)


def require_admin(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Principal:
    if not has_admin_privilege(db, principal):
        raise Forbidden("Admin access required")
    return principal


def ensure_owner_or_admin(db: Session, principal: Principal, owner_id: UUID | None, detail: str = "Access denied"):
    if owner_id is not None and owner_id == principal.id:
        return
    if has_admin_privilege(db, principal):
        return
    raise Forbidden(detail)


def ensure_not_self(principal: Principal, target_id: UUID, detail: str):
    """Reject administrator actions aimed at the acting principal."""

    if target_id == principal.id:
        raise InvalidArgument(detail)
