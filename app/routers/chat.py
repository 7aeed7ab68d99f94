"""
Chat router: direct conversations, message history and read markers.
Opening a conversation needs friendship; everything after that needs membership.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user
from app.models.user import User
from app.schemas.common import APIResponse
from app.schemas.chat import (
    ConversationOut, MessageOut, MessageCreateRequest, ReadState,
    ConversationData, ConversationListData, MessageData, MessageListData, ReadStateData,
)
from app.services import chat_service

router = APIRouter()


@router.post("/direct/{user_id}", response_model=APIResponse[ConversationData])
def open_direct_conversation(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Returns the existing conversation when there is one; safe to call repeatedly."""
    conversation = chat_service.open_direct(db, current_user.id, user_id)
    return APIResponse(data=ConversationData(conversation=ConversationOut.model_validate(conversation)))


@router.get("/conversations", response_model=APIResponse[ConversationListData])
def list_conversations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    conversations = chat_service.list_conversations(db, current_user.id)
    return APIResponse(data=ConversationListData(conversations=conversations))


@router.get("/conversations/{conversation_id}/messages", response_model=APIResponse[MessageListData])
def list_messages(
    conversation_id: int,
    limit: int = chat_service.MESSAGES_DEFAULT_LIMIT,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    messages = chat_service.list_messages(db, conversation_id, current_user.id, limit=limit, offset=offset)
    return APIResponse(data=MessageListData(messages=[MessageOut.model_validate(m) for m in messages]))


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=APIResponse[MessageData],
    status_code=status.HTTP_201_CREATED,
)
def send_message(
    conversation_id: int,
    body: MessageCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    message = chat_service.send_message(
        db,
        conversation_id,
        current_user.id,
        content=body.content,
        message_type=body.type,
        metadata=body.metadata,
    )
    return APIResponse(message="Message sent", data=MessageData(message=MessageOut.model_validate(message)))


@router.patch("/conversations/{conversation_id}/read", response_model=APIResponse[ReadStateData])
def mark_read(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    membership = chat_service.mark_read(db, conversation_id, current_user.id)
    return APIResponse(data=ReadStateData(read_state=ReadState.model_validate(membership)))
