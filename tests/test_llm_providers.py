from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from lyro_api.services.llm import GeminiProvider, OpenAIProvider, ProviderError


def _response(status_code, payload=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = text
    return response


class TestGeminiProvider:
    @patch("lyro_api.services.llm.gemini_provider.httpx.Client")
    def test_generate_builds_rest_payload(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = _response(
            200,
            {"candidates": [{"content": {"parts": [{"text": "Hola, "}, {"text": "soy Lyro."}]}}]},
        )

        provider = GeminiProvider(api_key="test-key")
        result = provider.generate(
            [{"role": "user", "content": "hola"}, {"role": "assistant", "content": "¿en qué te ayudo?"}],
            system_prompt="Eres Lyro.",
            temperature=0.2,
            max_tokens=300,
        )

        assert result.content == "Hola, soy Lyro."
        url = mock_client.post.call_args[0][0]
        assert url.endswith("/gemini-2.5-flash:generateContent")
        kwargs = mock_client.post.call_args[1]
        assert kwargs["headers"]["x-goog-api-key"] == "test-key"
        payload = kwargs["json"]
        assert payload["systemInstruction"] == {"parts": [{"text": "Eres Lyro."}]}
        assert [c["role"] for c in payload["contents"]] == ["user", "model"]
        assert payload["generationConfig"] == {"temperature": 0.2, "maxOutputTokens": 300}

    @pytest.mark.parametrize("status,transient", [(429, True), (503, True), (500, True), (400, False), (403, False)])
    @patch("lyro_api.services.llm.gemini_provider.httpx.Client")
    def test_status_classification(self, mock_client_class, status, transient):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = _response(status, text="error")

        with pytest.raises(ProviderError) as exc_info:
            GeminiProvider(api_key="k").generate([{"role": "user", "content": "hola"}])
        assert exc_info.value.transient is transient
        assert exc_info.value.status_code == status

    @patch("lyro_api.services.llm.gemini_provider.httpx.Client")
    def test_timeout_is_transient(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(ProviderError) as exc_info:
            GeminiProvider(api_key="k").generate([{"role": "user", "content": "hola"}])
        assert exc_info.value.transient is True

    @patch("lyro_api.services.llm.gemini_provider.httpx.Client")
    def test_blocked_prompt_gives_empty_content(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = _response(200, {"promptFeedback": {"blockReason": "SAFETY"}})

        result = GeminiProvider(api_key="k").generate([{"role": "user", "content": "hola"}])
        assert result.content == ""


class TestOpenAIProvider:
    @patch("lyro_api.services.llm.openai_provider.httpx.Client")
    def test_system_prompt_prepended(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.return_value = _response(
            200, {"model": "gpt-5-mini", "choices": [{"message": {"content": "Claro"}}]}
        )

        result = OpenAIProvider(api_key="k").generate([{"role": "user", "content": "hola"}], system_prompt="Eres Lyro.")

        assert result.content == "Claro"
        messages = mock_client.post.call_args[1]["json"]["messages"]
        assert messages[0] == {"role": "system", "content": "Eres Lyro."}

    @patch("lyro_api.services.llm.openai_provider.httpx.Client")
    def test_connection_error_is_transient(self, mock_client_class):
        mock_client = MagicMock()
        mock_client_class.return_value.__enter__.return_value = mock_client
        mock_client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ProviderError) as exc_info:
            OpenAIProvider(api_key="k").generate([{"role": "user", "content": "hola"}])
        assert exc_info.value.transient is True


class TestConversationContext:
    def test_send_trims_history(self):
        provider = GeminiProvider(api_key="k")
        provider.generate = Mock(return_value=Mock(content="respuesta"))
        context = provider.create_context("Eres Lyro.", {"temperature": 0.5}, max_history=4)

        for i in range(3):
            provider.send(context, f"pregunta {i}")

        assert len(context.history) == 4
        assert context.history[0]["content"] == "pregunta 1"
        assert provider.generate.call_args[1]["temperature"] == 0.5
