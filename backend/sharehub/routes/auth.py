from fastapi import APIRouter, Depends, HTTPException, Request
import os
from sqlalchemy import or_
from sqlalchemy.orm import Session
from ..database import get_db
from .. import models, schemas
from ..auth import get_password_hash, verify_password, create_access_token, get_current_principal, Principal
from ..errors import NotFound
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)
testing = os.getenv("TESTING") == "1"

def rate_limit(limit: str):
    if testing:
        def wrapper(func):
            return func
        return wrapper
    return limiter.limit(limit)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _token_for(user: models.User) -> schemas.Token:
    return schemas.Token(
        access_token=create_access_token(user),
        user=schemas.UserOut.model_validate(user),
    )


@router.post("/register", response_model=schemas.Token)
@rate_limit("5/minute")
async def register(request: Request, user: schemas.UserCreate, db: Session = Depends(get_db)):
    existing = (
        db.query(models.User)
        .filter(or_(models.User.email == user.email, models.User.username == user.username))
        .first()
    )
    if existing:
        if existing.email == user.email:
            raise HTTPException(status_code=400, detail="Email already registered")
        raise HTTPException(status_code=400, detail="Username already taken")
    db_user = models.User(
        email=user.email,
        username=user.username,
        hashed_password=get_password_hash(user.password),
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return _token_for(db_user)


@router.post("/login", response_model=schemas.Token)
@rate_limit("10/minute")
async def login(request: Request, user: schemas.LoginRequest, db: Session = Depends(get_db)):
    db_user = (
        db.query(models.User)
        .filter(or_(models.User.username == user.username, models.User.email == user.username))
        .first()
    )
    if not db_user or not verify_password(user.password, db_user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _token_for(db_user)


@router.get("/me", response_model=schemas.UserOut)
async def read_profile(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    user = db.get(models.User, principal.id)
    if user is None:
        raise NotFound("User not found")
    return user
