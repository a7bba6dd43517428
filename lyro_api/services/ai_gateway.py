"""Bounded access to the generative AI provider.

Every failure mode (quota, cooldown, provider error, blank output) resolves to the
neutral fallback reply. Contexts are kept per session and swept by idle time.
"""

import threading
import time
from collections import OrderedDict
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from lyro_api.config import settings
from lyro_api.logging_config import get_logger, session_logger
from lyro_api.services.alert_service import alert_warning
from lyro_api.services.foundation_knowledge import build_system_prompt
from lyro_api.services.llm import GeminiProvider, LLMProvider, OpenAIProvider, ProviderError
from lyro_api.services.llm.base import ConversationContext
from lyro_api.services.replies import SUGGEST_MENU, BotReply, neutral_fallback
from lyro_api.services.result import EMPTY, PERMANENT, TRANSIENT, Result

logger = get_logger("ai_gateway")


class DailyQuota:
    """Process-wide call counter that resets at local midnight."""

    def __init__(self, limit: int, tz_name: str, clock: Optional[Callable[[], datetime]] = None):
        self.limit = limit
        self._tz = ZoneInfo(tz_name)
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._lock = threading.Lock()
        self._day: Optional[date] = None
        self._used = 0
        self._alerted_day: Optional[date] = None

    def _roll_locked(self) -> date:
        today = self._clock().astimezone(self._tz).date()
        if today != self._day:
            self._day = today
            self._used = 0
        return today

    def try_acquire(self) -> bool:
        with self._lock:
            self._roll_locked()
            if self._used >= self.limit:
                return False
            self._used += 1
            return True

    def claim_exhaustion_alert(self) -> bool:
        """True only for the first caller that sees the quota exhausted today."""
        with self._lock:
            today = self._roll_locked()
            if self._alerted_day == today:
                return False
            self._alerted_day = today
            return True

    def usage(self) -> dict:
        with self._lock:
            today = self._roll_locked()
            return {"used": self._used, "limit": self.limit, "day": today.isoformat()}


class AIFallbackGateway:
    def __init__(
        self,
        provider: Optional[LLMProvider],
        system_prompt: str,
        daily_limit: int = 200,
        cooldown_seconds: float = 0.0,
        max_retries: int = 2,
        backoff_seconds: float = 1.5,
        context_ttl_seconds: float = 1800,
        max_contexts: int = 500,
        max_history: int = 20,
        model_params: Optional[dict] = None,
        tz_name: str = "America/Guayaquil",
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.provider = provider
        self.system_prompt = system_prompt
        self.cooldown_seconds = cooldown_seconds
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.context_ttl_seconds = context_ttl_seconds
        self.max_contexts = max_contexts
        self.max_history = max_history
        self.model_params = dict(model_params or {})
        self.quota = DailyQuota(daily_limit, tz_name, clock=clock)
        self._sleep = sleep
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._contexts: "OrderedDict[str, ConversationContext]" = OrderedDict()
        self._last_call: dict[str, float] = {}

    def reply(self, session_id: str, text: str) -> BotReply:
        log = session_logger("ai_gateway", session_id)

        if self.provider is None:
            log.warning("AI provider not configured")
            return neutral_fallback()

        if self._in_cooldown(session_id):
            log.info("AI cooldown active")
            return neutral_fallback()

        if not self.quota.try_acquire():
            log.warning("AI daily quota exhausted", context=self.quota.usage())
            if self.quota.claim_exhaustion_alert():
                alert_warning("Cuota diaria de IA agotada", self.quota.usage())
            return neutral_fallback()

        with self._lock:
            self._last_call[session_id] = self._monotonic()
        context = self._context_for(session_id)
        result = self._call_with_retry(context, text, log)
        if not result.ok:
            log.warning(
                f"AI fallback degraded: {result.error}",
                context={"error_code": result.error_code, "attempts": result.attempts},
            )
            return neutral_fallback()

        log.info("AI fallback answered", context={"attempts": result.attempts})
        return BotReply(result.value, (SUGGEST_MENU,))

    def _in_cooldown(self, session_id: str) -> bool:
        if self.cooldown_seconds <= 0:
            return False
        with self._lock:
            last = self._last_call.get(session_id)
        return last is not None and self._monotonic() - last < self.cooldown_seconds

    def _context_for(self, session_id: str) -> ConversationContext:
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                context = self.provider.create_context(
                    self.system_prompt, self.model_params, max_history=self.max_history
                )
                self._contexts[session_id] = context
            else:
                self._contexts.move_to_end(session_id)
            context.last_used = self._monotonic()
            self._evict_overflow_locked()
            return context

    def _call_with_retry(self, context: ConversationContext, text: str, log) -> Result[str]:
        attempt = 1
        while True:
            result = self._call_once(context, text, attempt)
            if result.ok or not result.retryable or attempt > self.max_retries:
                return result
            delay = self.backoff_seconds * attempt
            log.info(f"Transient AI failure, retrying in {delay:.1f}s", context={"attempt": attempt})
            self._sleep(delay)
            attempt += 1

    def _call_once(self, context: ConversationContext, text: str, attempt: int) -> Result[str]:
        try:
            content = self.provider.send(context, text)
        except ProviderError as exc:
            return Result.failure(str(exc), TRANSIENT if exc.transient else PERMANENT, attempts=attempt)
        except Exception as exc:
            logger.exception("Unexpected AI provider failure")
            return Result.failure(str(exc), PERMANENT, attempts=attempt)
        if not content or not content.strip():
            return Result.failure("blank provider output", EMPTY, attempts=attempt)
        return Result.success(content.strip(), attempts=attempt)

    def _evict_overflow_locked(self) -> int:
        evicted = 0
        while len(self._contexts) > self.max_contexts:
            session_id, _ = self._contexts.popitem(last=False)
            self._last_call.pop(session_id, None)
            evicted += 1
        return evicted

    def sweep(self) -> int:
        """Drop idle contexts and stale cooldown marks. Returns the number of contexts removed."""
        now = self._monotonic()
        with self._lock:
            expired = [
                session_id
                for session_id, context in self._contexts.items()
                if now - context.last_used > self.context_ttl_seconds
            ]
            for session_id in expired:
                del self._contexts[session_id]
            horizon = max(self.context_ttl_seconds, self.cooldown_seconds)
            for session_id, last in list(self._last_call.items()):
                if now - last > horizon:
                    del self._last_call[session_id]
            removed = len(expired) + self._evict_overflow_locked()
        if removed:
            logger.info(f"Swept {removed} AI contexts", extra={"context": {"remaining": len(self._contexts)}})
        return removed

    def forget(self, session_id: str) -> None:
        with self._lock:
            self._contexts.pop(session_id, None)
            self._last_call.pop(session_id, None)

    def has_context(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._contexts

    @property
    def context_count(self) -> int:
        with self._lock:
            return len(self._contexts)

    @property
    def usage(self) -> dict:
        return self.quota.usage()


_llm_provider = None
_ai_gateway = None


def get_llm_provider() -> Optional[LLMProvider]:
    """Get or create the configured LLM provider. None when no API key is set."""
    global _llm_provider
    if _llm_provider is None:
        if settings.ai_provider == "openai":
            if settings.openai_api_key:
                _llm_provider = OpenAIProvider(
                    api_key=settings.openai_api_key,
                    default_model=settings.openai_model,
                    timeout_seconds=settings.ai_timeout_seconds,
                )
        elif settings.gemini_api_key:
            _llm_provider = GeminiProvider(
                api_key=settings.gemini_api_key,
                default_model=settings.gemini_model,
                timeout_seconds=settings.ai_timeout_seconds,
            )
        if _llm_provider is None:
            logger.warning(f"No API key for AI provider '{settings.ai_provider}'")
    return _llm_provider


def get_ai_gateway() -> AIFallbackGateway:
    global _ai_gateway
    if _ai_gateway is None:
        _ai_gateway = AIFallbackGateway(
            provider=get_llm_provider(),
            system_prompt=build_system_prompt(),
            daily_limit=settings.ai_daily_limit,
            cooldown_seconds=settings.ai_cooldown_seconds,
            max_retries=settings.ai_max_retries,
            backoff_seconds=settings.ai_retry_backoff_seconds,
            context_ttl_seconds=settings.ai_context_ttl_seconds,
            max_contexts=settings.ai_max_contexts,
            max_history=settings.ai_max_history_messages,
            model_params={
                "temperature": settings.ai_temperature,
                "max_tokens": settings.ai_max_output_tokens,
            },
            tz_name=settings.timezone,
        )
    return _ai_gateway
