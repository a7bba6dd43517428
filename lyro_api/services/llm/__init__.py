from lyro_api.services.llm.base import ConversationContext, LLMProvider, LLMResponse, ProviderError
from lyro_api.services.llm.gemini_provider import GeminiProvider
from lyro_api.services.llm.openai_provider import OpenAIProvider

__all__ = [
    "ConversationContext",
    "LLMProvider",
    "LLMResponse",
    "ProviderError",
    "GeminiProvider",
    "OpenAIProvider",
]
