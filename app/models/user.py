from sqlalchemy import Boolean, Column, Integer, String, TIMESTAMP, Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

USER_STATUSES = ("online", "driving", "offline")

# Public 9-digit identifier range (shareable, searchable)
UNIQUE_ID_MIN = 100_000_000
UNIQUE_ID_MAX = 999_999_999


class User(Base):
    """
    Account record.

    username keeps the display form; username_normalized (lowercase, trimmed) is the
    uniqueness key and the only column username lookups run against.
    password_hash is NULL for OTP-only accounts.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    unique_id = Column(Integer, unique=True, nullable=False, index=True)
    username = Column(String(30), nullable=False)
    username_normalized = Column(String(30), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(32), unique=True, nullable=True)
    password_hash = Column(String, nullable=True)
    profile_picture_url = Column(String(500), nullable=True)
    status = Column(
        SAEnum(*USER_STATUSES, name="user_status"),
        nullable=False,
        server_default="offline",
    )
    role = Column(String(20), nullable=False, server_default="user")
    is_active = Column(Boolean, nullable=False, server_default="1", default=True)

    # Timestamps
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────────
    vehicles = relationship("Vehicle", back_populates="owner", cascade="all, delete-orphan")
