"""Abstract base class for text-embedding service providers.

The embedding provider is a remote black box: it turns text into a
fixed-length vector and may fail (network, rate limit) or enforce an
implicit per-call text-length limit.  Retries, truncation, batching and
zero-vector substitution live in
:class:`~docrag.services.embedding_service.EmbeddingService`, not here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (docrag/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        docrag.utils.errors.EmbeddingError
            If the provider call fails.
        docrag.utils.errors.RateLimitError
            If the provider reports its rate limit was exceeded.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for one text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the fixed dimensionality of the vectors (e.g. ``1536``)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai-text-embedding-ada-002"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
