"""Custom exception hierarchy and error classification for docrag.

All application exceptions inherit from :class:`DocRagError`, which carries
an optional ``provider_name`` so handlers and log lines can tell which
external collaborator (e.g. "openai", "chromadb", "sqlite") failed.

    DocRagError  (base -- catch-all for any docrag error)
    +-- ValidationError          (blank/invalid input, rejected before any call)
    +-- DocumentNotFoundError    (lookup by id found nothing)
    +-- ConfigurationError       (startup / missing config)
    +-- EmbeddingError           (embedding provider call failed)
    +-- LLMError                 (generation provider call failed)
    +-- RateLimitError           (provider rate-limit exceeded)
    +-- ProviderUnavailableError (external service down / unreachable)
    +-- VectorStoreError         (vector datastore failure)
    +-- DocumentStoreError       (relational document store failure)
    +-- IngestionError           (even the last-resort ingestion fallback failed)

Retry and circuit-breaker decisions never switch on concrete exception
types directly.  They go through :func:`classify_error`, which maps any
exception onto an :class:`ErrorKind`, so the policy stays in one place.
"""

from __future__ import annotations

from enum import Enum


class DocRagError(Exception):
    """Base exception for all docrag errors.

    ``__str__`` prefixes the provider name in brackets for log scanning,
    e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class ValidationError(DocRagError):
    """Raised when required input is blank or invalid.  Never retried."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentNotFoundError(DocRagError):
    """Raised when a document id does not exist in the document store."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(DocRagError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External provider errors
# ---------------------------------------------------------------------------

class EmbeddingError(DocRagError):
    """Raised when the embedding provider fails to produce a vector."""

    def __init__(
        self,
        message: str = "Embedding creation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(DocRagError):
    """Raised when a generation call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RateLimitError(DocRagError):
    """Raised when a provider reports that its rate limit was exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnavailableError(DocRagError):
    """Raised when an external service is unreachable or not configured."""

    def __init__(
        self,
        message: str = "External service is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class VectorStoreError(DocRagError):
    """Raised when the vector datastore rejects a write or a query."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DocumentStoreError(DocRagError):
    """Raised when the relational document store fails."""

    def __init__(
        self,
        message: str = "Document store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IngestionError(DocRagError):
    """Raised only when ingestion cannot even store its zero-vector fallback."""

    def __init__(
        self,
        message: str = "Complete document processing failure",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class ErrorKind(str, Enum):
    """How a failure should be treated by retry and breaker logic."""

    TRANSIENT_PROVIDER = "transient_provider"
    RATE_LIMITED = "rate_limited"
    VALIDATION = "validation"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.TRANSIENT_PROVIDER, ErrorKind.RATE_LIMITED)


def classify_error(exc: BaseException) -> ErrorKind:
    """Map *exc* onto an :class:`ErrorKind`.

    Provider SDKs raise their own exception types, so anything outside the
    docrag hierarchy is treated as a transient provider failure.
    """
    if isinstance(exc, (ValidationError, DocumentNotFoundError)):
        return ErrorKind.VALIDATION
    if isinstance(exc, RateLimitError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, (ConfigurationError, IngestionError)):
        return ErrorKind.FATAL
    return ErrorKind.TRANSIENT_PROVIDER
