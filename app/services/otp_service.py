"""
OTP service: issues and verifies short-lived email verification codes.

Rules:
  1. Issuing a new code invalidates every unused code for the same email.
     The invalidate + insert pair is not atomic; a verify racing against the
     stale code in that window is accepted. The partial unique index on
     (email WHERE NOT is_used) turns a concurrent double-issue into a 409.
  2. Codes expire after OTP_EXPIRY_MINUTES.
  3. MAX_ATTEMPTS mismatches lock the challenge, even against the right code.
     The attempt cap is checked before the comparison.
  4. A matched challenge is consumed; it cannot verify a second time.
  5. Bypass mode (non-production) uses DEV_OTP_CODE, skips delivery and returns
     the code to the caller instead.

The bypass flag is a constructor argument rather than a settings read so both modes
can be exercised side by side.
"""
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictException, DeliveryException, ValidationException
from app.models.otp import OTPCode
from app.services.email_service import EmailResult, send_otp_email

logger = logging.getLogger(__name__)

OTP_EXPIRY_MINUTES = 10
MAX_ATTEMPTS = 5
DEV_OTP_CODE = "123456"

INVALID_OR_EXPIRED = "Invalid or expired OTP code"
MAX_ATTEMPTS_EXCEEDED = "Maximum verification attempts exceeded. Please request a new OTP."

OTPSender = Callable[[str, str, int], Awaitable[EmailResult]]


@dataclass
class OTPIssueResult:
    channel: str
    expires_in_minutes: int
    message: str
    dev_code: Optional[str] = None


@dataclass
class OTPVerifyResult:
    verified: bool
    reason: str


def normalize_email(email) -> str:
    return email.strip().lower() if isinstance(email, str) else ""


def generate_otp() -> str:
    """
    Cryptographically secure 6-digit code.
    secrets.randbelow(900000) gives 0–899999, +100000 gives 100000–999999.
    """
    return str(secrets.randbelow(900000) + 100000)


class OTPService:
    def __init__(self, db: Session, bypass: bool = False, sender: OTPSender = send_otp_email):
        self.db = db
        self.bypass = bypass
        self.sender = sender

    def _invalidate_pending(self, email: str) -> int:
        return (
            self.db.query(OTPCode)
            .filter(OTPCode.email == email, OTPCode.is_used == False)  # noqa: E712
            .update({"is_used": True}, synchronize_session=False)
        )

    async def issue(self, email: str) -> OTPIssueResult:
        """
        Replace any live challenge for the email with a fresh one and deliver it.

        The new challenge is committed before delivery, so a DeliveryException
        leaves a valid code behind; the caller retries delivery, not issuance.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationException("Email is required")

        code = DEV_OTP_CODE if self.bypass else generate_otp()

        self._invalidate_pending(email)
        self.db.add(
            OTPCode(
                email=email,
                code=code,
                expires_at=datetime.now(timezone.utc) + timedelta(minutes=OTP_EXPIRY_MINUTES),
                is_used=False,
                attempts=0,
            )
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictException("A verification code is already being issued for this email. Try again.")

        if self.bypass:
            logger.info(f"OTP issued for {email} (bypass mode, code {code})")
            return OTPIssueResult(
                channel="dev",
                expires_in_minutes=OTP_EXPIRY_MINUTES,
                message=f"OTP sent (DEV MODE - Code: {code})",
                dev_code=code,
            )

        result = await self.sender(email, code, OTP_EXPIRY_MINUTES)
        if not result.sent:
            logger.warning(f"OTP delivery to {email} failed: {result.error}")
            raise DeliveryException(result.error or "Failed to send OTP email")

        logger.info(f"OTP issued for {email}")
        return OTPIssueResult(
            channel="email",
            expires_in_minutes=OTP_EXPIRY_MINUTES,
            message="Verification code sent to your email",
        )

    def verify(self, email: str, code: str) -> OTPVerifyResult:
        """
        Fails closed: no live challenge means not verified. Never raises for a
        wrong or stale code; the reason is returned for the caller to surface.
        """
        email = normalize_email(email)
        if not email:
            return OTPVerifyResult(False, "Email is required")
        code = code.strip() if isinstance(code, str) else ""

        if self.bypass and code == DEV_OTP_CODE:
            self._invalidate_pending(email)
            self.db.commit()
            logger.info(f"OTP verified for {email} (bypass mode)")
            return OTPVerifyResult(True, "OTP verified successfully (DEV MODE)")

        record = (
            self.db.query(OTPCode)
            .filter(
                OTPCode.email == email,
                OTPCode.is_used == False,  # noqa: E712
                OTPCode.expires_at > datetime.now(timezone.utc),
            )
            .order_by(OTPCode.created_at.desc(), OTPCode.id.desc())
            .with_for_update()
            .first()
        )
        if not record:
            return OTPVerifyResult(False, INVALID_OR_EXPIRED)

        if record.attempts >= MAX_ATTEMPTS:
            logger.warning(f"OTP for {email} locked after {record.attempts} attempts")
            return OTPVerifyResult(False, MAX_ATTEMPTS_EXCEEDED)

        if not hmac.compare_digest(record.code.encode(), code.encode()):
            record.attempts = record.attempts + 1
            self.db.commit()
            remaining = MAX_ATTEMPTS - record.attempts
            if remaining > 0:
                return OTPVerifyResult(False, f"Invalid OTP code. {remaining} attempts remaining.")
            return OTPVerifyResult(False, "Invalid OTP code. Please request a new OTP.")

        record.is_used = True
        self.db.commit()
        logger.info(f"OTP verified for {email}")
        return OTPVerifyResult(True, "OTP verified successfully")

    def cleanup_expired(self) -> int:
        """Delete challenges past their expiry. Returns how many rows were removed."""
        removed = (
            self.db.query(OTPCode)
            .filter(OTPCode.expires_at < datetime.now(timezone.utc))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        logger.info(f"Removed {removed} expired OTP codes")
        return removed
