"""Caller identity resolution and single-owner enforcement for chat sessions."""

import hashlib
import uuid
from typing import Optional

from lyro_api.logging_config import get_logger
from lyro_api.services.errors import UnauthorizedSessionError
from lyro_api.services.store import ChatStore

logger = get_logger("identity_service")

TOKEN_PREFIX = "tok:"
FINGERPRINT_PREFIX = "fp:"


def _digest(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def resolve_identity(client_token: Optional[str], ip: Optional[str], user_agent: Optional[str]) -> str:
    """Explicit client token wins; otherwise fingerprint the address and user agent.

    Both forms are fixed-length digests so they always fit ``owner_identity``.
    """
    token = (client_token or "").strip()
    if token:
        return f"{TOKEN_PREFIX}{_digest(token)}"
    raw = f"{(ip or '').strip()}|{(user_agent or '').strip()}"
    return f"{FINGERPRINT_PREFIX}{_digest(raw)}"


def new_session_id() -> str:
    return uuid.uuid4().hex


def ensure_session_owner(store: ChatStore, session_id: Optional[str], identity: str) -> str:
    """Bind unseen sessions to ``identity`` and reject foreign ones.

    Raises:
        UnauthorizedSessionError: the session belongs to another identity.
        PersistenceError: the owner lookup or the session insert failed.
    """
    session_id = (session_id or "").strip() or None
    if session_id is not None:
        owner = store.get_session_owner(session_id)
        if owner is not None:
            if owner != identity:
                logger.warning(
                    "Session owner mismatch",
                    extra={"session_id": session_id, "context": {"identity": identity[:12]}},
                )
                raise UnauthorizedSessionError(session_id)
            return session_id
    else:
        session_id = new_session_id()

    created = store.create_session(identity, session_id=session_id)
    logger.info("Session created", extra={"session_id": created})
    return created
