"""
Auth router: OTP, registration, sign-in and the caller's own profile.

Registration:
  1. POST /api/auth/send-otp   → email a 6-digit code (bypass mode returns it)
  2. POST /api/auth/register   → code + username + password → token

Sign-in:
  POST /api/auth/login         → email + password → token
  POST /api/auth/verify-otp    → email + code → token (OTP-only accounts)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user, get_otp_service
from app.core.exceptions import NotFoundException, ValidationException
from app.core.rate_limiter import (
    limiter, OTP_SEND_LIMIT, OTP_VERIFY_LIMIT, REGISTER_LIMIT, LOGIN_LIMIT,
)
from app.models.user import User
from app.schemas.common import APIResponse
from app.schemas.auth import (
    SendOTPRequest, SendOTPData, VerifyOTPRequest, RegisterRequest, LoginRequest, AuthData,
)
from app.schemas.user import (
    ProfileUpdateRequest, UserData, UserPublic, UserSummary, UserSummaryData, UsernameAvailability,
)
from app.services import auth_service, user_service
from app.services.otp_service import OTPService

router = APIRouter()


def _auth_payload(user: User, token: str) -> AuthData:
    return AuthData(token=token, user=UserPublic.model_validate(user))


# ── OTP ───────────────────────────────────────────────────────────────────────

@router.post("/send-otp", response_model=APIResponse[SendOTPData])
@limiter.limit(OTP_SEND_LIMIT)
async def send_otp(
    request: Request,
    body: SendOTPRequest,
    otp: OTPService = Depends(get_otp_service),
):
    """
    Issue a fresh code for the email, replacing any earlier one.
    Delivery runs inline (not as a background task): a failed send is a 503 the
    client can retry, and the stored code stays valid.
    """
    result = await otp.issue(body.email)
    return APIResponse(
        message=result.message,
        data=SendOTPData(
            channel=result.channel,
            expires_in_minutes=result.expires_in_minutes,
            dev_code=result.dev_code,
        ),
    )


@router.post("/verify-otp", response_model=APIResponse[AuthData])
@limiter.limit(OTP_VERIFY_LIMIT)
def verify_otp(
    request: Request,
    body: VerifyOTPRequest,
    db: Session = Depends(get_db),
    otp: OTPService = Depends(get_otp_service),
):
    """OTP sign-in for an existing account."""
    user, token = auth_service.login_with_otp(db, otp, email=body.email, code=body.code)
    return APIResponse(message="Signed in successfully", data=_auth_payload(user, token))


# ── Register / Login ──────────────────────────────────────────────────────────

@router.post("/register", response_model=APIResponse[AuthData], status_code=status.HTTP_201_CREATED)
@limiter.limit(REGISTER_LIMIT)
def register(
    request: Request,
    body: RegisterRequest,
    db: Session = Depends(get_db),
    otp: OTPService = Depends(get_otp_service),
):
    user, token = auth_service.register(
        db,
        otp,
        email=body.email,
        code=body.code,
        username=body.username,
        password=body.password,
    )
    return APIResponse(message="Account created successfully", data=_auth_payload(user, token))


@router.post("/login", response_model=APIResponse[AuthData])
@limiter.limit(LOGIN_LIMIT)
def login(
    request: Request,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    user, token = auth_service.login(db, email=body.email, password=body.password)
    return APIResponse(message="Signed in successfully", data=_auth_payload(user, token))


# ── Public lookups ────────────────────────────────────────────────────────────

@router.get("/check-username", response_model=APIResponse[UsernameAvailability])
def check_username(username: Optional[str] = None, db: Session = Depends(get_db)):
    """Invalid names come back as unavailable with a reason, not as a 400."""
    if not username:
        raise ValidationException('Query parameter "username" is required')
    available, reason = auth_service.check_username(db, username)
    return APIResponse(data=UsernameAvailability(available=available, reason=reason))


@router.get("/profile/{unique_id}", response_model=APIResponse[UserSummaryData])
def get_profile_by_unique_id(unique_id: str, db: Session = Depends(get_db)):
    user = user_service.get_by_unique_id(db, unique_id)
    if not user:
        raise NotFoundException("User")
    return APIResponse(data=UserSummaryData(user=UserSummary.model_validate(user)))


# ── Own profile ───────────────────────────────────────────────────────────────

@router.get("/me", response_model=APIResponse[UserData])
def get_me(current_user: User = Depends(get_current_user)):
    """No extra DB call: get_current_user already fetched the user."""
    return APIResponse(message="Profile retrieved", data=UserData(user=UserPublic.model_validate(current_user)))


@router.patch("/profile", response_model=APIResponse[UserData])
def update_profile(
    body: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user, changed = user_service.update_profile(
        db,
        current_user,
        username=body.username,
        status=body.status,
        profile_picture_url=body.profile_picture_url,
    )
    return APIResponse(
        message="Profile has been updated" if changed else "No changes",
        data=UserData(user=UserPublic.model_validate(user)),
    )
