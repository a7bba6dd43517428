from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from lyro_api.dependencies import client_address, get_engine, get_store
from lyro_api.schemas.chat import ChatRequest, ChatResponse, SuggestionOut
from lyro_api.services.chat_service import ChatEngine
from lyro_api.services.errors import ChatValidationError, UnauthorizedSessionError
from lyro_api.services.identity_service import resolve_identity
from lyro_api.services.store import ChatStore

router = APIRouter(tags=["chat"])

SESSION_FORBIDDEN = {
    "code": "session_forbidden",
    "message": "Esta sesión pertenece a otro usuario. Inicia una nueva conversación.",
}


@router.post("/chat", response_model=ChatResponse)
def chat(
    body: ChatRequest,
    request: Request,
    x_client_token: Optional[str] = Header(default=None),
    store: ChatStore = Depends(get_store),
    engine: ChatEngine = Depends(get_engine),
):
    """Handle one chat turn."""
    identity = resolve_identity(
        body.client_identity_token or x_client_token,
        client_address(request),
        request.headers.get("user-agent"),
    )
    try:
        result = engine.handle_turn(store, body.session_id, body.message or "", identity)
    except ChatValidationError as exc:
        return JSONResponse(status_code=400, content={"reply": str(exc)})
    except UnauthorizedSessionError:
        raise HTTPException(status_code=403, detail=SESSION_FORBIDDEN)

    return ChatResponse(
        reply=result.reply,
        session_id=result.session_id,
        suggestions=[SuggestionOut(value=s.value, label=s.label) for s in result.suggestions],
    )
