"""Step-sequenced flows that own a chat session until they finish or are reset."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Sequence

from lyro_api.services.replies import SUGGEST_CANCEL, BotReply, Suggestion
from lyro_api.services.store import ChatStore


class FlowKind(str, Enum):
    CERTIFICATE_STATUS = "certificate_status"
    SCHEDULE_PREFERENCE = "schedule_preference"
    ENROLLMENT = "enrollment"
    ADVISOR_QUIZ = "advisor_quiz"
    ENROLLMENT_VERIFICATION = "enrollment_verification"


class UnknownStepError(Exception):
    def __init__(self, kind: FlowKind, step: str):
        self.kind = kind
        self.step = step
        super().__init__(f"Flow {kind.value} has no step {step!r}")


@dataclass(frozen=True)
class FlowState:
    kind: FlowKind
    step: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class FlowContext:
    session_id: str
    owner_identity: str
    store: ChatStore
    cached_schedule_id: Optional[str] = None


@dataclass(frozen=True)
class FlowOutcome:
    """Result of one turn. ``state`` is None once the flow has finished."""

    reply: BotReply
    state: Optional[FlowState]
    schedule_id: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.state is None


Extractor = Callable[[str, FlowContext], Optional[Any]]
SkipRule = Callable[[Mapping[str, Any], FlowContext], bool]


@dataclass(frozen=True)
class FlowStep:
    name: str
    instruction: str
    extract: Extractor
    options: Optional[Callable[[FlowContext], str]] = None
    suggestions: Sequence[Suggestion] = ()
    skip: Optional[SkipRule] = None

    def prompt(self, ctx: FlowContext) -> BotReply:
        text = self.instruction
        if self.options is not None:
            text = f"{text}\n{self.options(ctx)}"
        return BotReply(text, tuple(self.suggestions) + (SUGGEST_CANCEL,))

    def reprompt(self, ctx: FlowContext) -> BotReply:
        return self.prompt(ctx).with_prefix("⚠️ No entendí tu respuesta.")


@dataclass(frozen=True)
class Choice:
    """One allowed answer of a closed-list step."""

    value: str
    label: str
    aliases: tuple[str, ...] = ()


def choice_options(choices: Sequence[Choice]) -> str:
    return "\n".join(f"{i}) {choice.label}" for i, choice in enumerate(choices, start=1))


def choice_suggestions(choices: Sequence[Choice]) -> tuple[Suggestion, ...]:
    return tuple(Suggestion(str(i), choice.label) for i, choice in enumerate(choices, start=1))


def match_choice(normalized: str, choices: Sequence[Choice]) -> Optional[str]:
    """Exact alias first, then the option number, then an alias contained in the text."""
    if not normalized:
        return None
    for choice in choices:
        if normalized == choice.value or normalized in choice.aliases:
            return choice.value
    if normalized.isdigit():
        index = int(normalized) - 1
        if 0 <= index < len(choices):
            return choices[index].value
        return None
    for choice in choices:
        if any(f" {alias} " in f" {normalized} " for alias in choice.aliases if len(alias) > 2):
            return choice.value
    return None


class Flow(ABC):
    kind: FlowKind
    intro: str = ""
    steps: Sequence[FlowStep] = ()

    def start(self, ctx: FlowContext) -> FlowOutcome:
        first = self._next_step(0, {}, ctx)
        if first is None:
            return self.complete({}, ctx)
        reply = first.prompt(ctx).with_prefix(self.intro)
        return FlowOutcome(reply=reply, state=FlowState(self.kind, first.name, {}))

    def advance(self, state: FlowState, text: str, ctx: FlowContext) -> FlowOutcome:
        """Consume one turn. Invalid input returns the same state object untouched."""
        index = self._index(state.step)
        step = self.steps[index]

        value = step.extract(text, ctx)
        if value is None:
            return FlowOutcome(reply=step.reprompt(ctx), state=state)

        fields = {**state.fields, step.name: value}
        early = self.after_step(step.name, fields, ctx)
        if early is not None:
            return early

        following = self._next_step(index + 1, fields, ctx)
        if following is None:
            return self.complete(fields, ctx)
        return FlowOutcome(reply=following.prompt(ctx), state=FlowState(self.kind, following.name, fields))

    def after_step(self, step_name: str, fields: Mapping[str, Any], ctx: FlowContext) -> Optional[FlowOutcome]:
        """Hook for flows that can finish before their last step."""
        return None

    @abstractmethod
    def complete(self, fields: Mapping[str, Any], ctx: FlowContext) -> FlowOutcome:
        """Run the terminal action. Must return an outcome with ``state=None``."""

    def _index(self, name: str) -> int:
        for i, step in enumerate(self.steps):
            if step.name == name:
                return i
        raise UnknownStepError(self.kind, name)

    def _next_step(self, start: int, fields: Mapping[str, Any], ctx: FlowContext) -> Optional[FlowStep]:
        for step in self.steps[start:]:
            if step.skip is not None and step.skip(fields, ctx):
                continue
            return step
        return None


class FlowStateStore:
    """Process-wide flow state and cached schedule ids, keyed by session id.

    Entries are never evicted here; they go away on finish, reset or session deletion.
    """

    def __init__(self):
        self._states: dict[str, FlowState] = {}
        self._schedule_ids: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[FlowState]:
        with self._lock:
            return self._states.get(session_id)

    def put(self, session_id: str, state: FlowState) -> None:
        with self._lock:
            self._states[session_id] = state

    def clear(self, session_id: str) -> Optional[FlowState]:
        with self._lock:
            return self._states.pop(session_id, None)

    def cached_schedule_id(self, session_id: str) -> Optional[str]:
        with self._lock:
            return self._schedule_ids.get(session_id)

    def cache_schedule_id(self, session_id: str, schedule_id: str) -> None:
        with self._lock:
            self._schedule_ids[session_id] = schedule_id

    def forget_session(self, session_id: str) -> None:
        with self._lock:
            self._states.pop(session_id, None)
            self._schedule_ids.pop(session_id, None)
