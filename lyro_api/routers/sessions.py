"""Session listing and housekeeping for the identity that owns them."""

from fastapi import APIRouter, Depends, HTTPException, Query

from lyro_api.dependencies import caller_identity, get_engine, get_store
from lyro_api.logging_config import get_logger
from lyro_api.routers.chat import SESSION_FORBIDDEN
from lyro_api.schemas.session import MessageOut, PinRequest, SessionCreated, SessionOut
from lyro_api.services.chat_service import ChatEngine
from lyro_api.services.errors import PersistenceError
from lyro_api.services.store import ChatStore

router = APIRouter(prefix="/sessions", tags=["sessions"])
logger = get_logger("sessions_router")

STORE_UNAVAILABLE = "Almacenamiento no disponible"


def _require_owner(store: ChatStore, session_id: str, identity: str) -> None:
    try:
        owner = store.get_session_owner(session_id)
    except PersistenceError:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    if owner is None:
        raise HTTPException(status_code=404, detail="Sesión no encontrada")
    if owner != identity:
        raise HTTPException(status_code=403, detail=SESSION_FORBIDDEN)


@router.post("", response_model=SessionCreated, status_code=201)
def create_session(identity: str = Depends(caller_identity), store: ChatStore = Depends(get_store)):
    try:
        session_id = store.create_session(identity)
    except PersistenceError:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    logger.info("Session created", extra={"session_id": session_id})
    return SessionCreated(session_id=session_id)


@router.get("", response_model=list[SessionOut])
def list_sessions(
    limit: int = Query(default=20, ge=1, le=100),
    identity: str = Depends(caller_identity),
    store: ChatStore = Depends(get_store),
):
    try:
        summaries = store.list_sessions(identity, limit)
    except PersistenceError:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    return [
        SessionOut(
            session_id=s.id,
            created_at=s.created_at,
            last_message_at=s.last_message_at,
            last_message_preview=s.last_message_preview,
            conversation_seq=s.conversation_seq,
            pinned=s.pinned,
        )
        for s in summaries
    ]


@router.get("/{session_id}/messages", response_model=list[MessageOut])
def get_messages(
    session_id: str,
    limit: int = Query(default=200, ge=1, le=1000),
    identity: str = Depends(caller_identity),
    store: ChatStore = Depends(get_store),
):
    _require_owner(store, session_id, identity)
    try:
        records = store.get_messages(session_id, limit=limit)
    except PersistenceError:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    return [MessageOut(role=m.role, content=m.content, created_at=m.created_at) for m in records]


@router.post("/{session_id}/pin")
def pin_session(
    session_id: str,
    body: PinRequest,
    identity: str = Depends(caller_identity),
    store: ChatStore = Depends(get_store),
):
    _require_owner(store, session_id, identity)
    try:
        store.set_pinned(session_id, body.pinned)
    except PersistenceError:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    return {"sessionId": session_id, "pinned": body.pinned}


@router.delete("/{session_id}")
def delete_session(
    session_id: str,
    identity: str = Depends(caller_identity),
    store: ChatStore = Depends(get_store),
    engine: ChatEngine = Depends(get_engine),
):
    _require_owner(store, session_id, identity)
    try:
        store.delete_session(session_id)
    except PersistenceError:
        raise HTTPException(status_code=503, detail=STORE_UNAVAILABLE)
    engine.forget_session(session_id)
    logger.info("Session deleted", extra={"session_id": session_id})
    return {"sessionId": session_id, "deleted": True}
