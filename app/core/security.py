"""
Security utilities: password hashing and session token management.
Uses PyJWT (not python-jose).
"""
import jwt
from jwt.exceptions import InvalidTokenError
from passlib.context import CryptContext
from datetime import datetime, timedelta, timezone
from typing import Optional
from app.config import settings

# ── Password Hashing ──────────────────────────────────────────────────────────
# deprecated="auto" means passlib will auto-upgrade old hashes on next login.
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# ── Session Tokens ────────────────────────────────────────────────────────────

def create_access_token(user_id: int, expires_in: Optional[timedelta] = None) -> str:
    """
    Signed session token carrying only the user's internal id as 'sub'.
    Validity defaults to settings.access_token_expire_days (30 days).

    'sub' must be a string for PyJWT >= 2.10, so the integer id is stringified
    here and parsed back in decode_access_token.
    """
    now = datetime.now(timezone.utc)
    if expires_in is None:
        expires_in = timedelta(days=settings.access_token_expire_days)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> int:
    """
    Validates a session token and returns the user id it was issued for.
    Raises jwt.exceptions.InvalidTokenError (or subclass) on any failure:
    bad signature, expiry, malformed or missing subject. Callers must treat
    every failure the same way.
    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[settings.algorithm],
        options={"require": ["exp", "sub"]},
    )
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise InvalidTokenError("Malformed subject claim")
