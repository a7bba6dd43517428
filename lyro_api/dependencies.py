"""FastAPI dependencies shared by the routers."""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from lyro_api.config import settings
from lyro_api.database import get_db
from lyro_api.services.chat_service import ChatEngine, get_chat_engine
from lyro_api.services.identity_service import resolve_identity
from lyro_api.services.store import CertificateColumns, ChatStore, SqlChatStore

# Set once at startup by schema negotiation.
_certificate_columns: Optional[CertificateColumns] = None


def set_certificate_columns(columns: CertificateColumns) -> None:
    global _certificate_columns
    _certificate_columns = columns


def get_store(db: Session = Depends(get_db)) -> ChatStore:
    return SqlChatStore(db, certificate_columns=_certificate_columns)


def get_engine() -> ChatEngine:
    return get_chat_engine()


def _trusted_proxies() -> set[str]:
    return {proxy.strip() for proxy in settings.trusted_proxies.split(",") if proxy.strip()}


def client_address(request: Request) -> Optional[str]:
    """Peer address, or the nearest untrusted X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = request.client.host if request.client else None
    trusted = _trusted_proxies()
    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded or peer not in trusted:
        return peer
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer


def caller_identity(request: Request, x_client_token: Optional[str] = Header(default=None)) -> str:
    return resolve_identity(x_client_token, client_address(request), request.headers.get("user-agent"))
