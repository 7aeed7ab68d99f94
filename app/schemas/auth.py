"""
Auth schemas: OTP, registration and sign-in request bodies and responses.

Username rules are checked by the service after OTP verification, so the
request models only require the fields to be present.
"""
from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional

from app.schemas.user import UserPublic


class SendOTPRequest(BaseModel):
    email: EmailStr


class SendOTPData(BaseModel):
    channel: str
    expires_in_minutes: int
    dev_code: Optional[str] = None


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    code: str


class RegisterRequest(BaseModel):
    email: EmailStr
    code: str
    username: str
    password: str

    @field_validator("code", "username")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("password")
    @classmethod
    def password_strong(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        # bcrypt only looks at the first 72 bytes
        if len(v.encode("utf-8")) > 72:
            raise ValueError("Password must be at most 72 bytes")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthData(BaseModel):
    token: str
    user: UserPublic
