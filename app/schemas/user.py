"""
User schemas: redacted profile views and profile update requests.
"""
from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Optional
from datetime import datetime

from app.models.user import USER_STATUSES


class UserPublic(BaseModel):
    """
    Redacted account view returned to the account owner and after sign-in.
    password_hash is never included; Pydantic only exposes fields declared here.
    """
    model_config = ConfigDict(from_attributes=True)

    id: int
    unique_id: int
    username: str
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_picture_url: Optional[str] = None
    status: str
    role: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSummary(BaseModel):
    """What other users get to see: no email, phone or role."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    unique_id: int
    username: str
    profile_picture_url: Optional[str] = None
    status: str


class VehicleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    model: str
    power: Optional[str] = None
    fuel_type: Optional[str] = None
    modifications: Optional[Any] = None
    image_url: Optional[str] = None
    is_primary: bool
    created_at: Optional[datetime] = None


class ProfileUpdateRequest(BaseModel):
    username: Optional[str] = None
    status: Optional[str] = None
    profile_picture_url: Optional[str] = None

    @field_validator("status")
    @classmethod
    def status_valid(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in USER_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(USER_STATUSES)}")
        return v


class UserData(BaseModel):
    user: UserPublic


class UsernameAvailability(BaseModel):
    available: bool
    reason: Optional[str] = None


class UserSummaryData(BaseModel):
    user: UserSummary
