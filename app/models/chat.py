from sqlalchemy import (
    CheckConstraint, Column, ForeignKey, Integer, JSON, String, Text, TIMESTAMP,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base

CONVERSATION_TYPES = ("direct",)
MESSAGE_TYPES = ("text", "image", "system")


class Conversation(Base):
    """
    Messaging thread. Direct threads carry their participants as a canonical pair;
    the unique constraint makes get-or-create safe when both users open the chat
    at the same moment.
    """
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint(
            "type", "direct_user_one_id", "direct_user_two_id",
            name="uq_conversations_direct_pair",
        ),
        CheckConstraint(
            "direct_user_one_id IS NULL OR direct_user_one_id < direct_user_two_id",
            name="ck_conversations_direct_order",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(
        SAEnum(*CONVERSATION_TYPES, name="conversation_type"),
        nullable=False,
        server_default="direct",
        default="direct",
    )
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    direct_user_one_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    direct_user_two_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    members = relationship("ConversationMember", back_populates="conversation", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")


class ConversationMember(Base):
    __tablename__ = "conversation_members"
    __table_args__ = (
        UniqueConstraint("conversation_id", "user_id", name="uq_conversation_members"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    joined_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    last_read_at = Column(TIMESTAMP(timezone=True), nullable=True)

    conversation = relationship("Conversation", back_populates="members")


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(
        SAEnum(*MESSAGE_TYPES, name="message_type"),
        nullable=False,
        server_default="text",
        default="text",
    )
    content = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes; the column keeps the wire name.
    # Image messages carry the upload shape {url, publicId, width, height, format}.
    message_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now(), index=True)

    conversation = relationship("Conversation", back_populates="messages")
