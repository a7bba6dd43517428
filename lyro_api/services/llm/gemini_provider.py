from typing import List, Optional

import httpx

from lyro_api.logging_config import get_logger
from lyro_api.services.llm.base import LLMProvider, LLMResponse, ProviderError, is_transient_status

logger = get_logger("llm.gemini")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


def _to_gemini_contents(messages: List[dict]) -> List[dict]:
    contents = []
    for message in messages:
        role = "model" if message.get("role") == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": message.get("content") or ""}]})
    return contents


def _extract_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        if feedback.get("blockReason"):
            logger.warning(f"Gemini blocked prompt: {feedback.get('blockReason')}")
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text") or "" for part in parts)


class GeminiProvider(LLMProvider):
    """Google Gemini generateContent REST API."""

    def __init__(self, api_key: str, default_model: str = "gemini-2.5-flash", timeout_seconds: float = 20.0):
        self.api_key = api_key
        self.default_model = default_model
        self.timeout_seconds = timeout_seconds

    def generate(
        self,
        messages: List[dict],
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        model = model or self.default_model
        payload = {
            "contents": _to_gemini_contents(messages),
            "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
        }
        if system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        logger.debug(f"Gemini request: model={model}, messages_count={len(messages)}")
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(
                    f"{GEMINI_BASE_URL}/{model}:generateContent",
                    headers={"x-goog-api-key": self.api_key or "", "Content-Type": "application/json"},
                    json=payload,
                )
        except httpx.TimeoutException as exc:
            raise ProviderError(f"Gemini timeout after {timeout}s", transient=True) from exc
        except httpx.TransportError as exc:
            raise ProviderError(f"Gemini transport error: {exc}", transient=True) from exc

        logger.debug(f"Gemini response status: {response.status_code}")
        if response.status_code != 200:
            logger.error(f"Gemini error: {response.status_code} {response.text[:300]}")
            raise ProviderError(
                f"Gemini API error: {response.status_code}",
                transient=is_transient_status(response.status_code),
                status_code=response.status_code,
            )

        data = response.json()
        return LLMResponse(content=_extract_text(data), model=model, usage=data.get("usageMetadata"))
