"""In-process vector store backed by a dict and numpy.

Used for development (``VECTOR_STORE_BACKEND=memory``) and tests.  Search
stacks every stored embedding into a matrix and scores all rows in one
vectorised Euclidean-distance pass.
"""

from __future__ import annotations

import asyncio

import numpy as np
import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import DocumentChunk, RetrievedChunk
from docrag.utils.errors import VectorStoreError
from docrag.utils.vector_math import euclidean_distances

logger = structlog.get_logger(logger_name=__name__)


class InMemoryVectorStore(IVectorStoreProvider):
    """Dict-backed chunk store keyed by ``chunk_id``.

    Writes and deletes take an ``asyncio.Lock`` so a delete-then-insert
    sequence from one task never interleaves with a search from another.
    """

    def __init__(self) -> None:
        self._chunks: dict[str, DocumentChunk] = {}
        self._lock = asyncio.Lock()

    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        async with self._lock:
            for chunk in chunks:
                self._chunks[chunk.chunk_id] = chunk
        return len(chunks)

    async def delete_by_document(self, document_id: str) -> int:
        async with self._lock:
            doomed = [cid for cid, c in self._chunks.items() if c.document_id == document_id]
            for cid in doomed:
                del self._chunks[cid]
        logger.debug("memory_store_delete_by_document", document_id=document_id, deleted_count=len(doomed))
        return len(doomed)

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        chunks = [c for c in self._chunks.values() if c.document_id == document_id]
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def search(
        self,
        vector: list[float],
        max_distance: float | None,
        limit: int,
    ) -> list[RetrievedChunk]:
        if limit <= 0:
            return []
        async with self._lock:
            candidates = [
                c
                for c in self._chunks.values()
                if len(c.embedding) == len(vector) and not c.is_degraded()
            ]
        if not candidates:
            return []

        try:
            matrix = np.asarray([c.embedding for c in candidates], dtype=np.float64)
            distances = euclidean_distances(matrix, vector)
        except ValueError as exc:
            raise VectorStoreError(
                message=f"In-memory search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        order = np.argsort(distances, kind="stable")
        results: list[RetrievedChunk] = []
        for i in order:
            distance = float(distances[i])
            if max_distance is not None and distance >= max_distance:
                # Sorted ascending: nothing further can qualify.
                break
            results.append(RetrievedChunk(chunk=candidates[i], distance=distance))
            if len(results) >= limit:
                break
        return results

    async def count(self) -> int:
        return len(self._chunks)

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True
