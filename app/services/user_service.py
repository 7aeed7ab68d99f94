"""
Credential store: user lookups and writes.

Every lookup is an exact match on a normalized form (lowercased email, normalized
username, 9-digit unique_id). Uniqueness lives in the database; an IntegrityError on
insert/update is reported as a conflict rather than pre-checked only in Python.
"""
import logging
import re
import secrets
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictException, InternalException, ValidationException
from app.models.user import User, UNIQUE_ID_MIN, UNIQUE_ID_MAX
from app.services.otp_service import normalize_email

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r"^[a-z0-9_]+$")
UNIQUE_ID_ATTEMPTS = 5


def normalize_username(username) -> str:
    return username.strip().lower() if isinstance(username, str) else ""


def validate_username(username) -> tuple[Optional[str], Optional[str]]:
    """
    Returns (normalized, None) when valid, (None, reason) otherwise.
    Rules apply to the normalized form: 3–30 chars of a-z, 0-9 and underscore.
    """
    normalized = normalize_username(username)
    if len(normalized) < 3 or len(normalized) > 30:
        return None, "Username must be 3–30 characters"
    if not USERNAME_PATTERN.match(normalized):
        return None, "Username can only contain letters, numbers and underscores"
    return normalized, None


def generate_unique_id() -> int:
    return UNIQUE_ID_MIN + secrets.randbelow(UNIQUE_ID_MAX - UNIQUE_ID_MIN + 1)


# ── Lookups ───────────────────────────────────────────────────────────────────

def get_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_by_email(db: Session, email: str) -> Optional[User]:
    email = normalize_email(email)
    if not email:
        return None
    return db.query(User).filter(User.email == email).first()


def get_by_username(db: Session, username: str) -> Optional[User]:
    normalized = normalize_username(username)
    if not normalized:
        return None
    return db.query(User).filter(User.username_normalized == normalized).first()


def get_by_unique_id(db: Session, unique_id) -> Optional[User]:
    """Ids that are not 9-digit integers resolve to None without a query."""
    try:
        unique_id = int(unique_id)
    except (TypeError, ValueError):
        return None
    if unique_id < UNIQUE_ID_MIN or unique_id > UNIQUE_ID_MAX:
        return None
    return db.query(User).filter(User.unique_id == unique_id).first()


def is_username_available(db: Session, username: str, exclude_user_id: Optional[int] = None) -> bool:
    normalized, error = validate_username(username)
    if error:
        return False
    query = db.query(User.id).filter(User.username_normalized == normalized)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is None


# ── Writes ────────────────────────────────────────────────────────────────────

def _conflict_from_integrity_error(exc: IntegrityError) -> Optional[ConflictException]:
    """Map a unique-constraint violation to the user-facing conflict, if it is one we know."""
    text = str(exc.orig).lower()
    if "email" in text:
        return ConflictException("An account with this email already exists")
    if "username" in text:
        return ConflictException("Username is already taken")
    if "phone" in text:
        return ConflictException("An account with this phone number already exists")
    return None


def create_user(
    db: Session,
    username: str,
    username_normalized: str,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    password_hash: Optional[str] = None,
    profile_picture_url: Optional[str] = None,
    status: str = "offline",
    role: str = "user",
) -> User:
    """
    Insert a user with a freshly drawn 9-digit unique_id.
    A unique_id collision re-draws; any other uniqueness violation is a 409.
    """
    for attempt in range(1, UNIQUE_ID_ATTEMPTS + 1):
        user = User(
            unique_id=generate_unique_id(),
            username=username.strip(),
            username_normalized=username_normalized,
            email=normalize_email(email) or None,
            phone=phone or None,
            password_hash=password_hash,
            profile_picture_url=profile_picture_url,
            status=status,
            role=role,
            is_active=True,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            conflict = _conflict_from_integrity_error(exc)
            if conflict is not None:
                raise conflict
            if "unique_id" not in str(exc.orig).lower():
                raise
            logger.warning(f"unique_id collision on attempt {attempt}, drawing again")
            continue
        db.refresh(user)
        return user

    raise InternalException("Could not allocate a public id, please retry")


def update_profile(
    db: Session,
    user: User,
    username: Optional[str] = None,
    status: Optional[str] = None,
    profile_picture_url: Optional[str] = None,
) -> tuple[User, bool]:
    """
    Partial profile update. Returns (user, changed).
    A username owned by another account is a 409; the unique index settles races.
    """
    changed = False

    if profile_picture_url is not None:
        user.profile_picture_url = profile_picture_url
        changed = True

    if status is not None:
        user.status = status
        changed = True

    if username is not None:
        normalized, error = validate_username(username)
        if error:
            raise ValidationException(error)
        if not is_username_available(db, username, exclude_user_id=user.id):
            raise ConflictException("Username is already taken")
        user.username = username.strip()
        user.username_normalized = normalized
        changed = True

    if not changed:
        return user, False

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise _conflict_from_integrity_error(exc) or ConflictException()
    db.refresh(user)
    return user, True
