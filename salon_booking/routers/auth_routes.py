# salon_booking/routers/auth_routes.py

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select

from salon_booking.auth import create_access_token, verify_password
from salon_booking.db import get_session
from salon_booking.models import User
from salon_booking.schemas import Token

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
)


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(get_session),
):
    # the OAuth2 form calls it "username"; owners log in by email
    email = form_data.username.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()

    if user is None or not verify_password(form_data.password, user.password_hash):
        logger.warning("login_failed", extra={"email": email})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return Token(access_token=create_access_token({"sub": user.email}))
