from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionCreated(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class SessionOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    created_at: datetime = Field(alias="createdAt")
    last_message_at: Optional[datetime] = Field(default=None, alias="lastMessageAt")
    last_message_preview: Optional[str] = Field(default=None, alias="lastMessagePreview")
    conversation_seq: int = Field(alias="conversationSeq")
    pinned: bool = False


class MessageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str
    content: str
    created_at: datetime = Field(alias="createdAt")


class PinRequest(BaseModel):
    pinned: bool = True
