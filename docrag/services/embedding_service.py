"""Embedding gateway: truncation, retry with backoff, batching, degradation.

Wraps an :class:`IEmbeddingProvider` with the policies every caller needs:

* **Truncation** -- texts longer than ``max_text_length`` characters are cut
  before they reach the provider (a cheap proxy for its token limit).
* **Retry** -- each single-text call is retried up to ``max_retries`` times
  with exponential backoff (``retry_delay * backoff_multiplier ** n``).
  Which failures are retried is decided by :func:`classify_error`.
* **Batching** -- batch input is split into sub-batches of ``batch_size``
  that run one after another with a short pause in between.  Texts inside
  a sub-batch run concurrently through a semaphore of
  ``max_concurrency`` slots, the worker pool shared by every ingestion
  using this service.
* **Degradation** -- a text that still fails after all retries becomes an
  ``EmbeddingOutcome.degraded`` entry.  :meth:`EmbeddingService.embed_batch`
  flattens those into zero vectors so the output always has one vector
  per input, and counts them in :attr:`EmbeddingService.degraded_count`.
"""

from __future__ import annotations

import asyncio

import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.models.resilience import EmbeddingOutcome
from docrag.utils.concurrency import throttled_gather
from docrag.utils.errors import (
    DocRagError,
    EmbeddingError,
    ProviderUnavailableError,
    classify_error,
)
from docrag.utils.vector_math import zero_vector

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingService:
    """Resilient front door to the embedding provider."""

    def __init__(
        self,
        provider: IEmbeddingProvider,
        max_text_length: int = 8000,
        batch_size: int = 5,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        backoff_multiplier: float = 2.0,
        batch_pause: float = 0.2,
        max_concurrency: int = 3,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_retries <= 0:
            raise ValueError(f"max_retries must be positive, got {max_retries}")
        if max_concurrency <= 0:
            raise ValueError(f"max_concurrency must be positive, got {max_concurrency}")
        self._provider = provider
        self._max_text_length = max_text_length
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._backoff_multiplier = backoff_multiplier
        self._batch_pause = batch_pause
        self._max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._degraded_count = 0
        self._embedded_count = 0
        self._closed = False

    @classmethod
    def from_settings(cls, provider: IEmbeddingProvider, settings: Settings) -> EmbeddingService:
        return cls(
            provider,
            max_text_length=settings.embedding_max_text_length,
            batch_size=settings.embedding_batch_size,
            max_retries=settings.embedding_max_retries,
            retry_delay=settings.embedding_retry_delay,
            backoff_multiplier=settings.embedding_backoff_multiplier,
            batch_pause=settings.embedding_batch_pause,
            max_concurrency=settings.embedding_max_concurrency,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    @property
    def degraded_count(self) -> int:
        """Number of texts replaced by a zero vector since startup."""
        return self._degraded_count

    @property
    def embedded_count(self) -> int:
        return self._embedded_count

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    # ------------------------------------------------------------------
    # Single text
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed one text, retrying transient failures.

        Raises
        ------
        EmbeddingError
            When every attempt failed with a non-docrag exception.
        DocRagError
            The last provider error (e.g. ``RateLimitError``) when every
            attempt failed, or the first non-retryable one.
        """
        self._ensure_open()
        return await self._embed_with_retry(self._truncate(text))

    async def _embed_with_retry(self, text: str) -> list[float]:
        last_exc: BaseException | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                vector = await self._provider.embed_single(text)
                self._embedded_count += 1
                return vector
            except Exception as exc:
                last_exc = exc
                kind = classify_error(exc)
                if not kind.retryable:
                    raise
                if attempt == self._max_retries:
                    break
                backoff = self._retry_delay * (self._backoff_multiplier ** (attempt - 1))
                logger.warning(
                    "embedding_retry",
                    attempt=attempt,
                    max_retries=self._max_retries,
                    error_kind=kind.value,
                    error=str(exc),
                    backoff_s=backoff,
                )
                await asyncio.sleep(backoff)

        logger.error(
            "embedding_retries_exhausted",
            attempts=self._max_retries,
            error=str(last_exc),
        )
        if isinstance(last_exc, DocRagError):
            raise last_exc
        raise EmbeddingError(
            message=f"Failed to create embedding after {self._max_retries} attempts: {last_exc}",
            provider_name=self.provider_name,
        ) from last_exc

    def _truncate(self, text: str) -> str:
        if len(text) > self._max_text_length:
            logger.debug(
                "embedding_input_truncated",
                original_chars=len(text),
                truncated_chars=self._max_text_length,
            )
            return text[: self._max_text_length]
        return text

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def embed_batch_detailed(self, texts: list[str]) -> list[EmbeddingOutcome]:
        """Embed *texts* and report, per text, whether it embedded or degraded.

        Output order and length always match *texts*.
        """
        self._ensure_open()
        if not texts:
            return []

        outcomes: list[EmbeddingOutcome] = []
        total_batches = (len(texts) + self._batch_size - 1) // self._batch_size
        for batch_no, start in enumerate(range(0, len(texts), self._batch_size), start=1):
            batch = [self._truncate(t) for t in texts[start : start + self._batch_size]]
            results = await throttled_gather(
                [self._embed_with_retry(t) for t in batch],
                self._semaphore,
                return_exceptions=True,
            )
            for offset, result in enumerate(results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    outcomes.append(self._degrade(start + offset, result))
                else:
                    outcomes.append(EmbeddingOutcome.embedded(result))

            logger.debug("embedding_batch_done", batch=batch_no, total_batches=total_batches)
            if batch_no < total_batches and self._batch_pause > 0:
                await asyncio.sleep(self._batch_pause)

        return outcomes

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*; degraded entries come back as zero vectors."""
        outcomes = await self.embed_batch_detailed(texts)
        dimension = self.dimension
        return [o.vector if o.vector is not None else zero_vector(dimension) for o in outcomes]

    def _degrade(self, position: int, exc: Exception) -> EmbeddingOutcome:
        self._degraded_count += 1
        logger.warning(
            "embedding_degraded",
            position=position,
            error_kind=classify_error(exc).value,
            error=str(exc),
            degraded_total=self._degraded_count,
        )
        return EmbeddingOutcome.degraded(str(exc))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def shutdown(self) -> None:
        """Refuse new work and wait until in-flight provider calls finish."""
        if self._closed:
            return
        self._closed = True
        for _ in range(self._max_concurrency):
            await self._semaphore.acquire()
        for _ in range(self._max_concurrency):
            self._semaphore.release()
        logger.info(
            "embedding_service_shutdown",
            embedded=self._embedded_count,
            degraded=self._degraded_count,
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise ProviderUnavailableError(
                message="Embedding service is shut down",
                provider_name=self.provider_name,
            )
