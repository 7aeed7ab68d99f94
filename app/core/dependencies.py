"""
FastAPI dependencies used across routers.
Keep this file lean: only auth/DB/service wiring goes here.
Business logic belongs in services/.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jwt.exceptions import InvalidTokenError

from app.config import settings
from app.database import get_db
from app.core.security import decode_access_token
from app.core.exceptions import CredentialsException, InactiveAccountException
from app.models.user import User
from app.services.otp_service import OTPService

# auto_error=False so a missing header gets our own message and envelope
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Validates the Bearer session token and returns the authenticated User.

    Checks performed (in order):
    1. Authorization header carries a token
    2. Token signature and expiry are valid (one message for every failure)
    3. 'sub' maps to a real user
    4. User account is active (checked on every request, not just at login)
    """
    if credentials is None or not credentials.credentials:
        raise CredentialsException("Authentication token required")

    try:
        user_id = decode_access_token(credentials.credentials)
    except InvalidTokenError:
        raise CredentialsException("Invalid or expired token")

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise CredentialsException("User not found")

    if not user.is_active:
        raise InactiveAccountException()

    return user


def get_otp_service(db: Session = Depends(get_db)) -> OTPService:
    """OTP service bound to the request session, bypass mode resolved from settings."""
    return OTPService(db, bypass=settings.otp_bypass_enabled)
