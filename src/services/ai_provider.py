"""AI completion provider with quota-aware fallback.

The primary backend is an OpenAI chat model. The fallback is Perplexity,
reached through its OpenAI-compatible endpoint, which also has live web
search and is therefore preferred for listing searches. After the primary
reports a quota or rate-limit error, every call goes to the fallback until
the cooldown window ends.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI
from openai import RateLimitError

from config.settings import (
    AI_QUOTA_COOLDOWN_SECONDS,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
    OPENAI_MODEL,
    PERPLEXITY_API_KEY,
    PERPLEXITY_BASE_URL,
    PERPLEXITY_MODEL,
)
from src.errors import AIProviderError, NoProviderConfiguredError, QuotaExceededError
from src.prompts.prompt_templates import LISTING_SEARCH_PROMPT

logger = logging.getLogger(__name__)

_QUOTA_MARKERS = ("429", "quota", "rate limit", "rate_limit", "resource_exhausted")


def is_quota_error(error: BaseException) -> bool:
    """Whether a backend exception means capacity exhaustion rather than misuse."""
    if isinstance(error, QuotaExceededError):
        return True
    if isinstance(error, RateLimitError):
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    text = str(error).lower()
    return any(marker in text for marker in _QUOTA_MARKERS)


class ChatBackend:
    """Single chat-completion backend wrapping a LangChain chat model."""

    def __init__(self, name: str, model: Any) -> None:
        self.name = name
        self.model = model

    def complete(self, prompt: str) -> str:
        response = self.model.invoke([HumanMessage(content=prompt)])
        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return str(content)


def build_openai_backend() -> Optional[ChatBackend]:
    if not OPENAI_API_KEY:
        return None
    model = ChatOpenAI(
        model=OPENAI_MODEL,
        api_key=OPENAI_API_KEY,
        temperature=LLM_TEMPERATURE,
        max_retries=0,
    )
    return ChatBackend("openai", model)


def build_perplexity_backend() -> Optional[ChatBackend]:
    if not PERPLEXITY_API_KEY:
        return None
    model = ChatOpenAI(
        model=PERPLEXITY_MODEL,
        api_key=PERPLEXITY_API_KEY,
        base_url=PERPLEXITY_BASE_URL,
        temperature=LLM_TEMPERATURE,
        max_tokens=4096,
        max_retries=0,
    )
    return ChatBackend("perplexity", model)


@dataclass
class ProviderState:
    """Which backend is active and until when the primary is cooling down."""

    active_provider: str = "primary"
    cooldown_until: Optional[float] = None


class AIProvider:
    """Routes completions between a primary and a fallback backend."""

    def __init__(
        self,
        primary: Optional[ChatBackend] = None,
        fallback: Optional[ChatBackend] = None,
        *,
        cooldown_seconds: float = AI_QUOTA_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self.state = ProviderState()

    @classmethod
    def from_settings(cls) -> "AIProvider":
        provider = cls(primary=build_openai_backend(), fallback=build_perplexity_backend())
        logger.info(
            "AI provider initialized (primary=%s, fallback=%s)",
            provider.primary.name if provider.primary else "none",
            provider.fallback.name if provider.fallback else "none",
        )
        return provider

    def in_cooldown(self) -> bool:
        """Check the cooldown window, clearing it once it has passed."""
        until = self.state.cooldown_until
        if until is not None and self._clock() < until:
            return True
        if until is not None:
            logger.info("AI quota cooldown expired; primary provider re-enabled")
        self.state.cooldown_until = None
        self.state.active_provider = "primary"
        return False

    def mark_quota_exceeded(self) -> None:
        self.state.cooldown_until = self._clock() + self.cooldown_seconds
        self.state.active_provider = "fallback"
        logger.warning(
            "Primary AI provider quota exceeded; using fallback for %ss",
            int(self.cooldown_seconds),
        )

    def generate(self, prompt: str) -> str:
        """Generate text, honouring the quota cooldown."""
        if self.fallback is not None and self.in_cooldown():
            logger.info("Using fallback provider %s (primary cooling down)", self.fallback.name)
            return self._call(self.fallback, prompt)

        if self.primary is not None:
            try:
                return self._call(self.primary, prompt)
            except QuotaExceededError:
                self.mark_quota_exceeded()
                if self.fallback is None:
                    raise
                logger.info("Falling back to %s", self.fallback.name)
                return self._call(self.fallback, prompt)

        if self.fallback is not None:
            return self._call(self.fallback, prompt)

        raise NoProviderConfiguredError(
            "No AI provider configured. Set OPENAI_API_KEY or PERPLEXITY_API_KEY"
        )

    def search_listings(self, query: str) -> str:
        """Search current job listings; the fallback has live web data."""
        prompt = LISTING_SEARCH_PROMPT.format(query=query)
        if self.fallback is not None:
            try:
                logger.info("Searching listings with %s", self.fallback.name)
                return self._call(self.fallback, prompt)
            except AIProviderError as error:
                logger.error("Listing search via %s failed: %s", self.fallback.name, error)
                if self.primary is None:
                    raise
                logger.info("Falling back to %s for listing search", self.primary.name)
                return self._call(self.primary, prompt)

        if self.primary is not None:
            logger.warning("Searching listings with %s (may not have real-time data)", self.primary.name)
            return self._call(self.primary, prompt)

        raise NoProviderConfiguredError("No AI provider configured for listing search")

    def get_status(self) -> Dict[str, Any]:
        cooling = self.in_cooldown()
        return {
            "primary_configured": self.primary is not None,
            "fallback_configured": self.fallback is not None,
            "active_provider": "fallback" if cooling or self.primary is None else "primary",
            "cooldown_until": self.state.cooldown_until,
        }

    @staticmethod
    def _call(backend: ChatBackend, prompt: str) -> str:
        try:
            return backend.complete(prompt)
        except AIProviderError:
            raise
        except Exception as error:
            if is_quota_error(error):
                raise QuotaExceededError(str(error), provider=backend.name) from error
            raise AIProviderError(f"{backend.name} request failed: {error}", provider=backend.name) from error
