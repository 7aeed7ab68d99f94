"""
Conversation service: direct conversations, messages and read state.

get_or_create_direct() keeps exactly one direct conversation per canonical pair.
It relies on the unique constraint (type, direct_user_one_id, direct_user_two_id):
when both participants open the chat at the same moment, the losing insert hits
the constraint inside a savepoint and falls back to the winner's row.

Friendship is required only to open a conversation (open_direct). Reading,
posting and marking read are gated by membership alone.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ForbiddenException, NotFoundException, NotMemberException, ValidationException,
)
from app.core.pairs import canonical_pair
from app.models.chat import Conversation, ConversationMember, Message, MESSAGE_TYPES
from app.schemas.chat import ConversationOut, MessageOut
from app.services import social_service, user_service

logger = logging.getLogger(__name__)

MESSAGES_DEFAULT_LIMIT = 50
MESSAGES_MAX_LIMIT = 100


def _find_direct(db: Session, user_one_id: int, user_two_id: int) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .filter(
            Conversation.type == "direct",
            Conversation.direct_user_one_id == user_one_id,
            Conversation.direct_user_two_id == user_two_id,
        )
        .first()
    )


def _ensure_member(db: Session, conversation_id: int, user_id: int) -> None:
    exists = (
        db.query(ConversationMember.id)
        .filter(ConversationMember.conversation_id == conversation_id, ConversationMember.user_id == user_id)
        .first()
    )
    if exists:
        return
    try:
        with db.begin_nested():
            db.add(ConversationMember(conversation_id=conversation_id, user_id=user_id))
    except IntegrityError:
        pass  # already a member


def get_or_create_direct(db: Session, user_a_id: int, user_b_id: int) -> Conversation:
    """
    Idempotent: the same conversation comes back whichever participant asks and
    however many times. Membership rows for both users are upserted every call.
    """
    user_one_id, user_two_id = canonical_pair(user_a_id, user_b_id)

    conversation = _find_direct(db, user_one_id, user_two_id)
    if conversation is None:
        created = Conversation(
            type="direct",
            created_by=user_a_id,
            direct_user_one_id=user_one_id,
            direct_user_two_id=user_two_id,
        )
        try:
            with db.begin_nested():
                db.add(created)
        except IntegrityError:
            conversation = _find_direct(db, user_one_id, user_two_id)
            if conversation is None:
                # Not the pair constraint (e.g. an unknown user id)
                raise
        else:
            conversation = created
            logger.info(f"Direct conversation {created.id} created for {user_one_id} <-> {user_two_id}")

    _ensure_member(db, conversation.id, user_one_id)
    _ensure_member(db, conversation.id, user_two_id)
    db.commit()
    db.refresh(conversation)
    return conversation


def open_direct(db: Session, current_user_id: int, other_user_id: int) -> Conversation:
    """Friendship gate in front of get_or_create_direct."""
    if other_user_id == current_user_id:
        raise ValidationException("Cannot create direct conversation with yourself")
    if not user_service.get_by_id(db, other_user_id):
        raise NotFoundException("User")
    if not social_service.are_friends(db, current_user_id, other_user_id):
        raise ForbiddenException("You can only chat with friends")
    return get_or_create_direct(db, current_user_id, other_user_id)


# ── Membership ────────────────────────────────────────────────────────────────

def get_membership(db: Session, conversation_id: int, user_id: int) -> Optional[ConversationMember]:
    return (
        db.query(ConversationMember)
        .filter(ConversationMember.conversation_id == conversation_id, ConversationMember.user_id == user_id)
        .first()
    )


def require_member(db: Session, conversation_id: int, user_id: int) -> ConversationMember:
    membership = get_membership(db, conversation_id, user_id)
    if not membership:
        raise NotMemberException()
    return membership


# ── Queries ───────────────────────────────────────────────────────────────────

def list_conversations(db: Session, user_id: int) -> list[ConversationOut]:
    """The user's conversations, newest first, with their read marker and latest message."""
    memberships = db.query(ConversationMember).filter(ConversationMember.user_id == user_id).all()
    if not memberships:
        return []

    read_at = {m.conversation_id: m.last_read_at for m in memberships}
    ids = list(read_at)

    conversations = (
        db.query(Conversation)
        .filter(Conversation.id.in_(ids))
        .order_by(Conversation.created_at.desc(), Conversation.id.desc())
        .all()
    )

    latest_ids = (
        select(func.max(Message.id))
        .where(Message.conversation_id.in_(ids))
        .group_by(Message.conversation_id)
    )
    latest = {m.conversation_id: m for m in db.query(Message).filter(Message.id.in_(latest_ids)).all()}

    return [
        ConversationOut.model_validate(c).model_copy(
            update={
                "last_read_at": read_at.get(c.id),
                "last_message": MessageOut.model_validate(latest[c.id]) if c.id in latest else None,
            }
        )
        for c in conversations
    ]


def list_messages(
    db: Session,
    conversation_id: int,
    user_id: int,
    limit: int = MESSAGES_DEFAULT_LIMIT,
    offset: int = 0,
) -> list[Message]:
    """Newest first. limit is clamped to 1–100, offset to >= 0."""
    require_member(db, conversation_id, user_id)
    limit = max(1, min(limit, MESSAGES_MAX_LIMIT))
    offset = max(offset, 0)
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


# ── Writes ────────────────────────────────────────────────────────────────────

def send_message(
    db: Session,
    conversation_id: int,
    sender_id: int,
    content: str,
    message_type: str = "text",
    metadata: Optional[dict] = None,
) -> Message:
    content = (content or "").strip()
    if not content:
        raise ValidationException("Message content is required")
    if message_type not in MESSAGE_TYPES:
        raise ValidationException(f"type must be one of: {', '.join(MESSAGE_TYPES)}")

    require_member(db, conversation_id, sender_id)

    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        type=message_type,
        content=content,
        message_metadata=metadata,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def mark_read(db: Session, conversation_id: int, user_id: int) -> ConversationMember:
    membership = require_member(db, conversation_id, user_id)
    membership.last_read_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(membership)
    return membership
