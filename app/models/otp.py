from sqlalchemy import Boolean, Column, Index, Integer, String, TIMESTAMP, text
from sqlalchemy.sql import func
from app.database import Base


class OTPCode(Base):
    """
    One verification window for an email address.

    - Issuing a new code marks every unused code for the same email as used, so at
      most one challenge is live per email. The partial unique index backs that up.
    - attempts counts mismatched submissions; at the cap the challenge stops
      accepting even the right code.
    - phone is kept for the legacy SMS flow and is always NULL here.
    """
    __tablename__ = "otp_codes"
    __table_args__ = (
        Index(
            "uq_otp_codes_active_email",
            "email",
            unique=True,
            postgresql_where=text("NOT is_used"),
            sqlite_where=text("NOT is_used"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(32), nullable=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=False)
    is_used = Column(Boolean, nullable=False, server_default="0", default=False)
    attempts = Column(Integer, nullable=False, server_default="0", default=0)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
