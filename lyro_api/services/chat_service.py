"""Turn handling: ownership guard, intent routing and best-effort persistence.

Routing precedence for one turn:
    1. global commands (greeting, menu, cancel) reset any active flow
    2. active flow continuation
    3. FAQ table, first match wins
    4. AI fallback gateway
"""

import threading
from dataclasses import dataclass
from typing import Mapping, Optional

from lyro_api.logging_config import get_logger, session_logger
from lyro_api.services.ai_gateway import AIFallbackGateway, get_ai_gateway
from lyro_api.services.errors import ChatValidationError, PersistenceError
from lyro_api.services.faq_service import GlobalCommand, match_faq, match_global_command
from lyro_api.services.flows import FLOWS, Flow, FlowContext, FlowKind, FlowOutcome, FlowStateStore, UnknownStepError
from lyro_api.services.identity_service import ensure_session_owner, new_session_id
from lyro_api.services.replies import BotReply, Suggestion, cancelled, internal_error, main_menu
from lyro_api.services.store import ChatStore
from lyro_api.services.text_utils import is_blank, normalize_for_matching

logger = get_logger("chat_service")

BLANK_MESSAGE_TEXT = "Mensaje no proporcionado."


@dataclass(frozen=True)
class TurnResult:
    reply: str
    session_id: str
    suggestions: tuple[Suggestion, ...] = ()


class ChatEngine:
    def __init__(
        self,
        gateway: Optional[AIFallbackGateway] = None,
        flow_states: Optional[FlowStateStore] = None,
        flows: Optional[Mapping[FlowKind, Flow]] = None,
    ):
        self._gateway = gateway
        self.flow_states = flow_states if flow_states is not None else FlowStateStore()
        self.flows = flows if flows is not None else FLOWS
        self._session_locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def gateway(self) -> AIFallbackGateway:
        if self._gateway is None:
            self._gateway = get_ai_gateway()
        return self._gateway

    def _session_lock(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._session_locks.get(session_id)
            if lock is None:
                lock = self._session_locks[session_id] = threading.Lock()
            return lock

    def handle_turn(self, store: ChatStore, session_id: Optional[str], text: str, identity: str) -> TurnResult:
        """Process one user message.

        Raises:
            ChatValidationError: blank message.
            UnauthorizedSessionError: session bound to a different identity.
        """
        if is_blank(text):
            raise ChatValidationError(BLANK_MESSAGE_TEXT)

        try:
            session_id = ensure_session_owner(store, session_id, identity)
        except PersistenceError:
            logger.error("Ownership check unavailable, refusing to route", extra={"session_id": session_id})
            reply = internal_error()
            return TurnResult(reply.text, session_id or new_session_id(), reply.suggestions)

        log = session_logger("chat_service", session_id)
        with self._session_lock(session_id):
            self._persist(store, session_id, "user", text, log)
            try:
                reply = self.route(store, session_id, identity, text)
            except Exception:
                log.exception("Turn routing failed")
                reply = internal_error()
            self._persist(store, session_id, "bot", reply.text, log)
            try:
                store.touch_session(session_id, reply.text)
            except PersistenceError:
                log.warning("Session touch failed")

        return TurnResult(reply.text, session_id, reply.suggestions)

    def route(self, store: ChatStore, session_id: str, identity: str, text: str) -> BotReply:
        log = session_logger("chat_service", session_id)
        normalized = normalize_for_matching(text)

        command = match_global_command(normalized)
        if command is not None:
            dropped = self.flow_states.clear(session_id)
            if dropped is not None:
                log.info("Flow reset", context={"flow": dropped.kind.value, "step": dropped.step})
            return cancelled() if command == GlobalCommand.CANCEL else main_menu()

        ctx = FlowContext(session_id, identity, store, self.flow_states.cached_schedule_id(session_id))

        state = self.flow_states.get(session_id)
        if state is not None:
            try:
                outcome = self.flows[state.kind].advance(state, text, ctx)
            except UnknownStepError as exc:
                log.error(str(exc))
                self.flow_states.clear(session_id)
                return main_menu()
            return self._apply(session_id, outcome, log)

        rule = match_faq(normalized)
        if rule is not None:
            log.info(f"FAQ match: {rule.name}")
            if rule.flow is not None:
                return self._apply(session_id, self.flows[rule.flow].start(ctx), log)
            return rule.reply()

        return self.gateway.reply(session_id, text)

    def _apply(self, session_id: str, outcome: FlowOutcome, log) -> BotReply:
        if outcome.schedule_id:
            self.flow_states.cache_schedule_id(session_id, outcome.schedule_id)
        if outcome.finished:
            self.flow_states.clear(session_id)
            log.info("Flow finished")
        else:
            self.flow_states.put(session_id, outcome.state)
        return outcome.reply

    @staticmethod
    def _persist(store: ChatStore, session_id: str, role: str, content: str, log) -> None:
        try:
            store.append_message(session_id, role, content)
        except PersistenceError:
            log.warning(f"Could not persist {role} message")

    def forget_session(self, session_id: str) -> None:
        """Drop in-process state for a deleted session."""
        self.flow_states.forget_session(session_id)
        self.gateway.forget(session_id)
        with self._locks_guard:
            self._session_locks.pop(session_id, None)


_chat_engine = None


def get_chat_engine() -> ChatEngine:
    global _chat_engine
    if _chat_engine is None:
        _chat_engine = ChatEngine()
    return _chat_engine
