from sqlalchemy import (
    CheckConstraint, Column, ForeignKey, Index, Integer, TIMESTAMP,
    UniqueConstraint, Enum as SAEnum, text,
)
from sqlalchemy.sql import func
from app.database import Base

FRIEND_REQUEST_STATUSES = ("pending", "accepted", "rejected")


class FriendRequest(Base):
    """
    Directed proposal sender -> receiver.
    pending -> accepted | rejected; resolved rows are never touched again.
    Only one pending row may exist per ordered (sender, receiver).
    """
    __tablename__ = "friend_requests"
    __table_args__ = (
        CheckConstraint("sender_id <> receiver_id", name="ck_friend_requests_not_self"),
        Index(
            "uq_friend_requests_pending_pair",
            "sender_id",
            "receiver_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        SAEnum(*FRIEND_REQUEST_STATUSES, name="friend_request_status"),
        nullable=False,
        server_default="pending",
        default="pending",
    )
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    responded_at = Column(TIMESTAMP(timezone=True), nullable=True)


class Friendship(Base):
    """
    Undirected friendship stored as a canonical pair (user_one_id < user_two_id).
    Build both ids with app.core.pairs.canonical_pair().
    """
    __tablename__ = "friendships"
    __table_args__ = (
        UniqueConstraint("user_one_id", "user_two_id", name="uq_friendships_pair"),
        CheckConstraint("user_one_id < user_two_id", name="ck_friendships_order"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_one_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user_two_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
