"""Error taxonomy for the generation task lifecycle.

Every error carries a ``fail_code`` so the poller can record it verbatim on the
task's FAILED terminal record.
"""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
    """Base class for generation lifecycle errors."""

    fail_code = "GENERATION_ERROR"


# ──────── Provider client ────────

class ProviderError(GenerationError):
    """An exchange with the generation provider failed."""

    fail_code = "PROVIDER_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.details = details or {}


class AuthError(ProviderError):
    fail_code = "AUTH_ERROR"


class ValidationError(ProviderError):
    fail_code = "VALIDATION_ERROR"


class ClientError(ProviderError):
    """Any other 4xx (payment required, not found, ...)."""

    fail_code = "CLIENT_ERROR"


class RateLimited(ProviderError):
    fail_code = "RATE_LIMITED"
    retryable = True


class ServerError(ProviderError):
    fail_code = "SERVER_ERROR"
    retryable = True


class TransportError(ProviderError):
    """Network failure or request timeout."""

    fail_code = "TRANSPORT_ERROR"
    retryable = True


# ──────── Normalization ────────

class UnknownStatus(GenerationError):
    """The provider used a status encoding this system does not recognize."""

    fail_code = "UNKNOWN_STATUS"


class NoResultUrls(GenerationError):
    """A claimed-SUCCESS response carried no extractable result URLs."""

    fail_code = "NO_RESULT_URLS"


class ResultParseError(GenerationError):
    fail_code = "RESULT_PARSE_ERROR"


# ──────── Polling / assets ────────

class PollingTimeout(GenerationError):
    fail_code = "TIMEOUT"


class AssetDownloadError(GenerationError):
    fail_code = "ASSET_DOWNLOAD_ERROR"


# ──────── Task store ────────

class TaskStoreError(Exception):
    """Base class for task store contract violations."""


class TaskNotFoundError(TaskStoreError):
    pass


class PromptNotFoundError(TaskStoreError):
    pass


class TaskAlreadyTerminalError(TaskStoreError):
    """A second terminal write was attempted for the same task."""


class InvalidTransitionError(TaskStoreError):
    """The requested terminal fields break a task invariant."""
