"""Error taxonomy shared by the API, queue, worker and automation layers."""

from typing import Optional


class ApplyAgentError(Exception):
    """Base class for all application automation errors."""


class ValidationError(ApplyAgentError):
    """Enqueue payload rejected before anything is queued."""


class DuplicateApplicationError(ApplyAgentError):
    """A non-terminal application already exists for the user/job pair."""

    def __init__(self, message: str, application_id: Optional[str] = None, status: str = "") -> None:
        super().__init__(message)
        self.application_id = application_id
        self.status = status


class QueueUnavailableError(ApplyAgentError):
    """The queue broker cannot be reached; callers may retry later."""


class AutomationError(ApplyAgentError):
    """Navigation, timeout or selector failure during an attempt."""


class AIProviderError(ApplyAgentError):
    """Failure reported by an AI completion backend."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class QuotaExceededError(AIProviderError):
    """Backend rejected the call because of quota or rate limits."""


class NoProviderConfiguredError(AIProviderError):
    """Neither the primary nor the fallback backend is configured."""


class PartialFieldError(ApplyAgentError):
    """A single form field could not be filled. Never fatal."""

    def __init__(self, selector: str, reason: str) -> None:
        super().__init__(f"{selector}: {reason}")
        self.selector = selector
        self.reason = reason
