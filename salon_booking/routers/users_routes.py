# salon_booking/routers/users_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from salon_booking.auth import get_current_user, hash_password
from salon_booking.db import get_session
from salon_booking.models import User
from salon_booking.schemas import UserCreate, UserPublic

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["users"],
)


@router.get("/me", response_model=UserPublic)
def me(current_user: dict = Depends(get_current_user)):
    return current_user


@router.post("/users", status_code=201, response_model=UserPublic)
def register_owner(
    payload: UserCreate,
    session: Session = Depends(get_session),
):
    """Create an establishment owner account."""
    email = payload.email.strip().lower()
    if session.exec(select(User).where(User.email == email)).first() is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    owner = User(email=email, password_hash=hash_password(payload.password), role=payload.role.value)
    session.add(owner)
    session.commit()
    session.refresh(owner)

    logger.info("owner_registered", extra={"user_id": owner.id})
    return owner
