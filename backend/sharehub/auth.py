"""Bearer credential issuing and verification."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from . import models
from .errors import Unauthenticated

# purpose: stateless verification of signed bearer tokens into principals
# status: active

SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Identity extracted from a verified token.

    ``is_admin`` mirrors the claim embedded at signing time. It is advisory
    only and may be stale; authorization goes through ``rbac``.
    """

    id: UUID
    username: str | None = None
    is_admin: bool = False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def create_access_token(user: models.User, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {
        "sub": str(user.id),
        "username": user.username,
        "is_admin": bool(user.is_admin),
        "exp": expire,
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Principal:
    """Verify signature and expiry, returning the embedded principal."""

    if not token:
        raise Unauthenticated("Access token required")
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthenticated("Invalid or expired token")
    subject = payload.get("sub")
    try:
        subject_id = UUID(str(subject))
    except ValueError:
        raise Unauthenticated("Invalid token subject")
    return Principal(
        id=subject_id,
        username=payload.get("username"),
        is_admin=bool(payload.get("is_admin", False)),
    )


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise Unauthenticated("Access token required")
    return decode_access_token(credentials.credentials)
