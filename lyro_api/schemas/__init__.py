from lyro_api.schemas.chat import ChatRequest, ChatResponse, SuggestionOut
from lyro_api.schemas.session import MessageOut, PinRequest, SessionCreated, SessionOut

__all__ = [
    "ChatRequest",
    "ChatResponse",
    "SuggestionOut",
    "MessageOut",
    "PinRequest",
    "SessionCreated",
    "SessionOut",
]
