import uuid

from sqlalchemy.orm import Session

from app.core.pairs import canonical_pair
from app.core.security import create_access_token, hash_password
from app.models.social import Friendship
from app.models.user import User
from app.services import user_service

PASSWORD = "password123"


def make_user(
    session: Session,
    username: str = None,
    email: str = None,
    password: str = PASSWORD,
    is_active: bool = True,
) -> User:
    username = username or f"user_{uuid.uuid4().hex[:8]}"
    email = email or f"{username}@convoyapp.io"
    user = user_service.create_user(
        session,
        username=username,
        username_normalized=username.lower(),
        email=email,
        password_hash=hash_password(password) if password else None,
    )
    if not is_active:
        user.is_active = False
        session.commit()
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def make_friends(session: Session, a: User, b: User) -> Friendship:
    one, two = canonical_pair(a.id, b.id)
    friendship = Friendship(user_one_id=one, user_two_id=two)
    session.add(friendship)
    session.commit()
    return friendship
