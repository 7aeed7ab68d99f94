"""
Conversation schemas.
"""
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Any, List, Optional
from datetime import datetime


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int
    sender_id: Optional[int] = None
    type: str
    content: str
    metadata: Optional[Any] = Field(
        default=None,
        validation_alias=AliasChoices("message_metadata", "metadata"),
    )
    created_at: Optional[datetime] = None


class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    created_by: Optional[int] = None
    direct_user_one_id: Optional[int] = None
    direct_user_two_id: Optional[int] = None
    created_at: Optional[datetime] = None
    last_read_at: Optional[datetime] = None
    last_message: Optional[MessageOut] = None


class MessageCreateRequest(BaseModel):
    content: str = ""
    type: str = "text"
    metadata: Optional[dict] = None


class ReadState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    conversation_id: int
    user_id: int
    last_read_at: Optional[datetime] = None


class ConversationData(BaseModel):
    conversation: ConversationOut


class ConversationListData(BaseModel):
    conversations: List[ConversationOut]


class MessageData(BaseModel):
    message: MessageOut


class MessageListData(BaseModel):
    messages: List[MessageOut]


class ReadStateData(BaseModel):
    read_state: ReadState
