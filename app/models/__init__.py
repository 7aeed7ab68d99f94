# models/__init__.py
# Import all models here so that:
# 1. Alembic's env.py can import this single module and detect all tables.
# 2. SQLAlchemy relationship() calls resolve correctly (all classes in same metadata).
# Order matters: models with no foreign keys first, then dependents.

from app.models.user import User
from app.models.otp import OTPCode
from app.models.vehicle import Vehicle
from app.models.social import FriendRequest, Friendship
from app.models.chat import Conversation, ConversationMember, Message

__all__ = [
    "User",
    "OTPCode",
    "Vehicle",
    "FriendRequest",
    "Friendship",
    "Conversation",
    "ConversationMember",
    "Message",
]
