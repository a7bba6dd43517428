from datetime import timedelta
from unittest.mock import patch

from lyro_api.services.llm.base import ProviderError
from lyro_api.services.replies import NEUTRAL_FALLBACK_TEXT, SUGGEST_MENU


class TestReply:
    def test_returns_provider_text(self, gateway, fake_provider):
        fake_provider.replies = ["  París es la capital de Francia.  "]

        reply = gateway.reply("s1", "capital de francia")

        assert reply.text == "París es la capital de Francia."
        assert reply.suggestions == (SUGGEST_MENU,)
        assert fake_provider.calls[0]["system_prompt"] == "Eres Lyro."

    def test_context_keeps_previous_exchange(self, gateway, fake_provider):
        fake_provider.replies = ["primera", "segunda"]
        gateway.reply("s1", "hola ia")
        gateway.reply("s1", "y luego?")

        second_call = fake_provider.calls[1]["messages"]
        assert [m["content"] for m in second_call] == ["hola ia", "primera", "y luego?"]

    def test_contexts_are_per_session(self, gateway, fake_provider):
        gateway.reply("s1", "uno")
        gateway.reply("s2", "dos")
        assert [m["content"] for m in fake_provider.calls[1]["messages"]] == ["dos"]

    def test_no_provider_configured(self, make_gateway):
        gateway = make_gateway(provider=None)
        assert gateway.reply("s1", "hola").text == NEUTRAL_FALLBACK_TEXT
        assert gateway.usage["used"] == 0


class TestQuota:
    def test_saturated_quota_returns_neutral_without_counting(self, make_gateway, fake_provider):
        gateway = make_gateway(daily_limit=2)
        with patch("lyro_api.services.ai_gateway.alert_warning") as mock_alert:
            gateway.reply("s1", "a")
            gateway.reply("s2", "b")
            third = gateway.reply("s3", "c")
            fourth = gateway.reply("s1", "d")

        assert third.text == NEUTRAL_FALLBACK_TEXT
        assert fourth.text == NEUTRAL_FALLBACK_TEXT
        assert len(fake_provider.calls) == 2
        assert gateway.usage["used"] == 2
        mock_alert.assert_called_once()

    def test_resets_on_next_local_day(self, make_gateway, fake_provider, clock):
        gateway = make_gateway(daily_limit=1)
        with patch("lyro_api.services.ai_gateway.alert_warning"):
            gateway.reply("s1", "a")
            assert gateway.reply("s1", "b").text == NEUTRAL_FALLBACK_TEXT

            clock.day = clock.day + timedelta(days=1)
            assert gateway.reply("s1", "c").text != NEUTRAL_FALLBACK_TEXT

        assert gateway.usage == {"used": 1, "limit": 1, "day": "2024-05-11"}

    def test_day_follows_local_timezone(self, make_gateway, clock):
        # 02:00 UTC is still the previous evening in Guayaquil
        clock.day = clock.day.replace(hour=2)
        gateway = make_gateway()
        assert gateway.usage["day"] == "2024-05-09"

    def test_retries_count_once(self, make_gateway, fake_provider):
        gateway = make_gateway(daily_limit=5)
        fake_provider.replies = [ProviderError("503", transient=True), "ok"]
        gateway.reply("s1", "hola")
        assert gateway.usage["used"] == 1


class TestCooldown:
    def test_call_inside_interval_is_skipped(self, make_gateway, fake_provider, clock):
        gateway = make_gateway(cooldown_seconds=10)
        gateway.reply("s1", "a")

        clock.now += 5
        assert gateway.reply("s1", "b").text == NEUTRAL_FALLBACK_TEXT
        assert len(fake_provider.calls) == 1

        clock.now += 6
        assert gateway.reply("s1", "c").text != NEUTRAL_FALLBACK_TEXT
        assert len(fake_provider.calls) == 2

    def test_cooldown_is_per_session(self, make_gateway, fake_provider):
        gateway = make_gateway(cooldown_seconds=10)
        gateway.reply("s1", "a")
        gateway.reply("s2", "b")
        assert len(fake_provider.calls) == 2


class TestRetries:
    def test_transient_failures_retried_with_linear_backoff(self, make_gateway, fake_provider):
        delays = []
        gateway = make_gateway(backoff_seconds=1.5, sleep=delays.append)
        fake_provider.replies = [
            ProviderError("429", transient=True),
            ProviderError("503", transient=True),
            "por fin",
        ]

        assert gateway.reply("s1", "hola").text == "por fin"
        assert delays == [1.5, 3.0]

    def test_exhausted_retries_degrade(self, make_gateway, fake_provider):
        gateway = make_gateway(max_retries=2)
        fake_provider.replies = [ProviderError("503", transient=True)] * 3 + ["tarde"]

        assert gateway.reply("s1", "hola").text == NEUTRAL_FALLBACK_TEXT
        assert len(fake_provider.calls) == 3

    def test_permanent_failure_not_retried(self, gateway, fake_provider):
        fake_provider.replies = [ProviderError("400 bad request", transient=False), "nunca"]

        assert gateway.reply("s1", "hola").text == NEUTRAL_FALLBACK_TEXT
        assert len(fake_provider.calls) == 1

    def test_blank_output_is_a_failure(self, gateway, fake_provider):
        fake_provider.replies = ["   "]

        assert gateway.reply("s1", "hola").text == NEUTRAL_FALLBACK_TEXT
        assert len(fake_provider.calls) == 1

        fake_provider.replies = ["ahora sí"]
        gateway.reply("s1", "otra vez")
        assert [m["content"] for m in fake_provider.calls[1]["messages"]] == ["otra vez"]

    def test_unexpected_error_never_escapes(self, gateway, fake_provider):
        fake_provider.replies = [ValueError("bad json")]
        assert gateway.reply("s1", "hola").text == NEUTRAL_FALLBACK_TEXT


class TestContextHousekeeping:
    def test_sweep_drops_idle_contexts(self, make_gateway, clock):
        gateway = make_gateway(context_ttl_seconds=100)
        gateway.reply("viejo", "a")
        clock.now += 50
        gateway.reply("reciente", "b")
        clock.now += 70

        assert gateway.sweep() == 1
        assert not gateway.has_context("viejo")
        assert gateway.has_context("reciente")

    def test_oldest_idle_evicted_over_cap(self, make_gateway, clock):
        gateway = make_gateway(max_contexts=2)
        gateway.reply("s1", "a")
        clock.now += 1
        gateway.reply("s2", "b")
        clock.now += 1
        gateway.reply("s1", "c")
        clock.now += 1
        gateway.reply("s3", "d")

        assert gateway.context_count == 2
        assert not gateway.has_context("s2")
        assert gateway.has_context("s1")

    def test_forget(self, gateway):
        gateway.reply("s1", "a")
        gateway.forget("s1")
        assert not gateway.has_context("s1")
