"""Abstract base class for vector-capable chunk stores.

Distances are Euclidean (L2) distances: ``0.0`` is an exact match and
larger values are less similar.  A threshold passed to
:meth:`IVectorStoreProvider.search` is therefore an upper bound on
distance, never a lower bound on similarity.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.document import DocumentChunk, RetrievedChunk


# Concrete implementations: ChromaDBProvider, InMemoryVectorStore
# Located in: docrag/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for storing embedded chunks and answering nearest-K queries.

    All methods are async so network-backed stores never block the loop.
    """

    @abstractmethod
    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Store pre-embedded chunks, keyed by ``chunk_id``.

        Returns
        -------
        int
            The number of chunks stored.

        Raises
        ------
        docrag.utils.errors.VectorStoreError
            If the store rejects the write.
        """

    @abstractmethod
    async def delete_by_document(self, document_id: str) -> int:
        """Delete every chunk owned by *document_id*; return how many were removed."""

    @abstractmethod
    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        """Return the chunks of one document ordered by ``chunk_index``."""

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        max_distance: float | None,
        limit: int,
    ) -> list[RetrievedChunk]:
        """Return up to *limit* chunks ordered by increasing distance.

        Degraded (all-zero) chunks are never returned.

        Parameters
        ----------
        vector:
            The query embedding.
        max_distance:
            Only chunks strictly closer than this distance qualify.
            ``None`` disables the threshold (plain nearest-K).
        limit:
            Maximum number of results.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of stored chunks."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store can accept reads and writes."""
