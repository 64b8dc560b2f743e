import pytest

from conftest import FakeBackend
from src.errors import AIProviderError, NoProviderConfiguredError, QuotaExceededError
from src.services.ai_provider import AIProvider, is_quota_error


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class QuotaError(Exception):
    status_code = 429


def test_prefers_primary_when_healthy():
    provider = AIProvider(FakeBackend("openai"), FakeBackend("perplexity"))

    assert provider.generate("hello") == "openai answer"
    assert provider.get_status()["active_provider"] == "primary"


def test_quota_error_switches_to_fallback_for_cooldown():
    clock = FakeClock()
    primary = FakeBackend("openai", error=QuotaError("You exceeded your current quota"))
    fallback = FakeBackend("perplexity")
    provider = AIProvider(primary, fallback, cooldown_seconds=3600, clock=clock)

    assert provider.generate("one") == "perplexity answer"
    assert provider.generate("two") == "perplexity answer"
    assert len(primary.prompts) == 1  # not retried during cooldown
    assert provider.get_status()["active_provider"] == "fallback"

    clock.now = 3601
    primary.error = None
    assert provider.generate("three") == "openai answer"
    assert provider.state.cooldown_until is None


def test_non_quota_failure_propagates_without_fallback():
    primary = FakeBackend("openai", error=ValueError("Invalid model name"))
    fallback = FakeBackend("perplexity")
    provider = AIProvider(primary, fallback)

    with pytest.raises(AIProviderError) as excinfo:
        provider.generate("hello")

    assert not isinstance(excinfo.value, QuotaExceededError)
    assert excinfo.value.provider == "openai"
    assert fallback.prompts == []
    assert provider.state.cooldown_until is None


def test_quota_error_without_fallback_is_raised():
    provider = AIProvider(FakeBackend("openai", error=QuotaError("rate limit")), None)

    with pytest.raises(QuotaExceededError):
        provider.generate("hello")


def test_uses_whichever_backend_is_configured():
    assert AIProvider(None, FakeBackend("perplexity")).generate("hi") == "perplexity answer"
    assert AIProvider(FakeBackend("openai"), None).generate("hi") == "openai answer"


def test_no_provider_configured():
    with pytest.raises(NoProviderConfiguredError):
        AIProvider(None, None).generate("hello")
    with pytest.raises(NoProviderConfiguredError):
        AIProvider(None, None).search_listings("python jobs")


def test_listing_search_prefers_fallback_then_primary():
    primary = FakeBackend("openai")
    fallback = FakeBackend("perplexity", error=RuntimeError("service unavailable"))
    provider = AIProvider(primary, fallback)

    assert provider.search_listings("python backend berlin") == "openai answer"
    assert "python backend berlin" in primary.prompts[0]


@pytest.mark.parametrize(
    "error, expected",
    [
        (QuotaError("too many"), True),
        (RuntimeError("Error code: 429 - insufficient_quota"), True),
        (RuntimeError("Rate limit reached for gpt-4o-mini"), True),
        (RuntimeError("Invalid API key"), False),
    ],
)
def test_is_quota_error(error, expected):
    assert is_quota_error(error) is expected
