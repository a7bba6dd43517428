from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId", max_length=64)
    message: Optional[str] = None
    client_identity_token: Optional[str] = Field(default=None, alias="clientIdentityToken", max_length=256)


class SuggestionOut(BaseModel):
    value: str
    label: str


class ChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    session_id: str = Field(alias="sessionId")
    suggestions: list[SuggestionOut] = []
