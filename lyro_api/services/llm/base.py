import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class ProviderError(Exception):
    """Provider call failed. ``transient`` failures are worth retrying."""

    def __init__(self, message: str, transient: bool, status_code: Optional[int] = None):
        self.transient = transient
        self.status_code = status_code
        super().__init__(message)


def is_transient_status(status_code: int) -> bool:
    return status_code in TRANSIENT_STATUS_CODES


@dataclass
class LLMResponse:
    content: str
    model: str
    usage: Optional[dict] = None


@dataclass
class ConversationContext:
    """Per-session chat history sent with every request to the provider."""

    system_prompt: str
    model_params: dict = field(default_factory=dict)
    history: List[dict] = field(default_factory=list)
    max_history: int = 20
    last_used: float = field(default_factory=time.monotonic)

    def remember(self, user_text: str, reply_text: str) -> None:
        self.history.append({"role": "user", "content": user_text})
        self.history.append({"role": "assistant", "content": reply_text})
        if len(self.history) > self.max_history:
            del self.history[: len(self.history) - self.max_history]


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    def generate(
        self,
        messages: List[dict],
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate a reply. Raises ProviderError."""
        pass

    def create_context(self, system_prompt: str, model_params: Optional[dict] = None, max_history: int = 20):
        return ConversationContext(system_prompt=system_prompt, model_params=dict(model_params or {}), max_history=max_history)

    def send(self, context: ConversationContext, text: str) -> str:
        """Send one user turn within the context; history grows only on a non-empty reply."""
        messages = context.history + [{"role": "user", "content": text}]
        response = self.generate(messages, system_prompt=context.system_prompt, **context.model_params)
        content = (response.content or "").strip()
        if content:
            context.remember(text, content)
        return content
