"""
Email delivery via fastapi-mail over SMTP.

Port 587 uses STARTTLS (MAIL_STARTTLS=True, MAIL_SSL_TLS=False);
port 465 uses implicit TLS (MAIL_SSL_TLS=True, MAIL_STARTTLS=False).

Delivery never raises: callers get an EmailResult and decide whether a failed
send is fatal for them.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from app.config import settings

logger = logging.getLogger(__name__)

OTP_SUBJECT = "Your Convoy verification code"


@dataclass
class EmailResult:
    sent: bool
    error: Optional[str] = None


@lru_cache()
def get_mail_client() -> FastMail:
    """Built on first use so an unconfigured deployment can still boot."""
    mail_config = ConnectionConfig(
        MAIL_USERNAME=settings.mail_username,
        MAIL_PASSWORD=settings.mail_password,
        MAIL_FROM=settings.mail_from,
        MAIL_FROM_NAME=settings.mail_from_name,
        MAIL_PORT=settings.mail_port,
        MAIL_SERVER=settings.mail_server,
        MAIL_STARTTLS=settings.mail_port != 465,
        MAIL_SSL_TLS=settings.mail_port == 465,
        USE_CREDENTIALS=True,
        VALIDATE_CERTS=True,
    )
    return FastMail(mail_config)


async def send_email(to_address: str, subject: str, body: str) -> EmailResult:
    if not settings.mail_configured:
        return EmailResult(sent=False, error="Email not configured (missing SMTP credentials)")

    message = MessageSchema(
        subject=subject,
        recipients=[to_address],
        body=body,
        subtype=MessageType.html,
    )
    try:
        await get_mail_client().send_message(message)
    except Exception as exc:  # fastapi-mail wraps SMTP failures in several types
        logger.warning(f"Email to {to_address} failed: {exc}")
        return EmailResult(sent=False, error=str(exc))
    return EmailResult(sent=True)


async def send_otp_email(email_to: str, code: str, expires_in_minutes: int) -> EmailResult:
    body = (
        "<p>Your Convoy verification code is:</p>"
        f'<p style="font-size:24px;font-weight:bold;letter-spacing:4px;">{code}</p>'
        f"<p>This code expires in {expires_in_minutes} minutes. "
        "If you didn't request this, you can ignore this email.</p>"
    )
    return await send_email(email_to, OTP_SUBJECT, body)
