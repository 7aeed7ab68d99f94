"""
Auth service: registration and sign-in built on the OTP service, the credential
store and session tokens. Keeps routers thin: routers only handle HTTP, services
handle logic.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models.user import User
from app.core.security import hash_password, verify_password, create_access_token, pwd_context
from app.core.exceptions import (
    ConflictException, CredentialsException, InactiveAccountException,
    NotFoundException, ValidationException,
)
from app.services import user_service
from app.services.otp_service import OTPService, normalize_email

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"

# Pre-computed bcrypt hash used ONLY for constant-time comparison when the user
# doesn't exist, so "unknown email" and "wrong password" take the same time.
_DUMMY_HASH: str = pwd_context.hash("__dummy_timing_prevention__")


def register(
    db: Session,
    otp: OTPService,
    email: str,
    code: str,
    username: str,
    password: str,
) -> tuple[User, str]:
    """
    Create an account for a verified email. Returns (user, token).

    Order matters and is part of the contract:
      1. OTP verification (its own failure reason is surfaced)
      2. username rules
      3. email / username uniqueness
    A failure after step 1 leaves the challenge consumed; the user requests a new code.
    """
    result = otp.verify(email, code)
    if not result.verified:
        raise ValidationException(result.reason)

    normalized, error = user_service.validate_username(username)
    if error:
        raise ValidationException(error)

    email = normalize_email(email)
    if user_service.get_by_email(db, email):
        raise ConflictException("An account with this email already exists")
    if not user_service.is_username_available(db, username):
        raise ConflictException("Username is already taken")

    user = user_service.create_user(
        db,
        username=username,
        username_normalized=normalized,
        email=email,
        password_hash=hash_password(password),
    )
    logger.info(f"Registered user id={user.id} unique_id={user.unique_id}")
    return user, create_access_token(user.id)


def login(db: Session, email: str, password: str) -> tuple[User, str]:
    """
    Password sign-in. Returns (user, token).

    Unknown email and wrong password produce the same 401 and message.
    The inactive check runs only after the password matched.
    """
    user = user_service.get_by_email(db, email)
    if user is not None and not user.password_hash:
        raise ValidationException("This account uses sign-in with OTP. Use Send OTP then Verify OTP.")

    # Always run verify_password, even for an unknown email, so response time
    # doesn't reveal which emails have accounts.
    password_ok = verify_password(password, user.password_hash if user else _DUMMY_HASH)
    if not user or not password_ok:
        raise CredentialsException(INVALID_CREDENTIALS)

    if not user.is_active:
        raise InactiveAccountException()

    logger.info(f"User id={user.id} signed in with password")
    return user, create_access_token(user.id)


def login_with_otp(db: Session, otp: OTPService, email: str, code: str) -> tuple[User, str]:
    """
    OTP sign-in for existing accounts. The account lookup happens before the
    challenge is touched, so a missing account does not burn the code.
    """
    user = user_service.get_by_email(db, email)
    if not user:
        raise NotFoundException("Account")

    result = otp.verify(email, code)
    if not result.verified:
        raise ValidationException(result.reason)

    if not user.is_active:
        raise InactiveAccountException()

    logger.info(f"User id={user.id} signed in with OTP")
    return user, create_access_token(user.id)


def check_username(db: Session, username: str) -> tuple[bool, Optional[str]]:
    """Returns (available, reason). Invalid names are unavailable, not errors."""
    _, error = user_service.validate_username(username)
    if error:
        return False, error
    return user_service.is_username_available(db, username), None
