"""Chunk-embed-store paths used by document ingestion.

:class:`StreamingDocumentProcessor` knows *how* to turn a document into
stored chunks; :class:`~docrag.services.ingestion.document_service.DocumentService`
decides *which* path to take and guards it with the circuit breaker.

Paths:

* **direct** -- chunk, embed every chunk in one gateway batch call, store
  everything at once.  Used for documents under the streaming threshold.
* **streaming** -- chunk, then embed and store ``batch_size`` chunks at a
  time with a short pause between batches, so a huge document never holds
  more than one batch of vectors in memory.  A batch that fails to store is
  logged and skipped; the document ends up partially ingested.
* **single chunk** -- embed one chunk and store it, falling back to a zero
  vector if embedding fails.
* **fallback** -- store the whole document as a single zero-vector chunk.
  This is the last resort when the guarded attempt could not run or failed.
"""

from __future__ import annotations

import asyncio
import uuid

import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import ChunkRef, Document, DocumentChunk
from docrag.models.resilience import IngestionReport, IngestionStrategy
from docrag.services.embedding_service import EmbeddingService
from docrag.services.ingestion.chunker import TextChunker
from docrag.utils.vector_math import zero_vector

logger = structlog.get_logger(logger_name=__name__)


def _new_chunk(document: Document, index: int, content: str, embedding: list[float]) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=str(uuid.uuid4()),
        document_id=document.id,
        document_title=document.title,
        content=content,
        chunk_index=index,
        embedding=embedding,
    )


class StreamingDocumentProcessor:
    """Turns documents into stored, embedded chunks."""

    def __init__(
        self,
        chunker: TextChunker,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        batch_size: int = 10,
        batch_pause: float = 0.1,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._chunker = chunker
        self._embedding = embedding_service
        self._vector_store = vector_store
        self._batch_size = batch_size
        self._batch_pause = batch_pause

    # ------------------------------------------------------------------
    # Direct path
    # ------------------------------------------------------------------

    async def process_direct(self, document: Document) -> IngestionReport:
        texts = self._chunker.split(document.content)
        outcomes = await self._embedding.embed_batch_detailed(texts)
        dimension = self._embedding.dimension

        chunks = [
            _new_chunk(document, i, text, o.vector if o.vector is not None else zero_vector(dimension))
            for i, (text, o) in enumerate(zip(texts, outcomes, strict=True))
        ]
        await self._vector_store.add_chunks(chunks)

        return IngestionReport(
            document_id=document.id,
            strategy=IngestionStrategy.DIRECT,
            chunk_refs=[ChunkRef.of(c) for c in chunks],
            degraded_count=sum(1 for o in outcomes if o.is_degraded),
        )

    # ------------------------------------------------------------------
    # Streaming path
    # ------------------------------------------------------------------

    async def process_streaming(self, document: Document) -> IngestionReport:
        """Embed and store the document batch by batch.

        Raises the last batch error only if *no* batch could be stored, so
        the caller's fallback takes over instead of recording an empty
        document.
        """
        texts = self._chunker.split(document.content)
        total_batches = (len(texts) + self._batch_size - 1) // self._batch_size
        dimension = self._embedding.dimension

        refs: list[ChunkRef] = []
        degraded = 0
        failed_batches = 0
        last_exc: Exception | None = None

        for batch_no, start in enumerate(range(0, len(texts), self._batch_size), start=1):
            # Pause between every pair of batches, failed ones included.
            if batch_no > 1 and self._batch_pause > 0:
                await asyncio.sleep(self._batch_pause)
            batch = texts[start : start + self._batch_size]
            logger.debug(
                "streaming_batch_start",
                document_id=document.id,
                batch=batch_no,
                total_batches=total_batches,
            )
            try:
                outcomes = await self._embedding.embed_batch_detailed(batch)
                chunks = [
                    _new_chunk(
                        document,
                        start + offset,
                        text,
                        o.vector if o.vector is not None else zero_vector(dimension),
                    )
                    for offset, (text, o) in enumerate(zip(batch, outcomes, strict=True))
                ]
                await self._vector_store.add_chunks(chunks)
            except Exception as exc:
                failed_batches += 1
                last_exc = exc
                logger.error(
                    "streaming_batch_failed",
                    document_id=document.id,
                    batch=batch_no,
                    total_batches=total_batches,
                    error=str(exc),
                )
                continue

            refs.extend(ChunkRef.of(c) for c in chunks)
            degraded += sum(1 for o in outcomes if o.is_degraded)

        if last_exc is not None and not refs:
            raise last_exc

        return IngestionReport(
            document_id=document.id,
            strategy=IngestionStrategy.STREAMING,
            chunk_refs=refs,
            degraded_count=degraded,
            failed_batches=failed_batches,
        )

    # ------------------------------------------------------------------
    # Single chunk and fallback
    # ------------------------------------------------------------------

    async def process_single_chunk(self, document: Document, content: str, chunk_index: int) -> ChunkRef:
        """Embed and store one chunk; a failed embedding stores a zero vector."""
        try:
            embedding = await self._embedding.embed(content)
        except Exception as exc:
            logger.warning(
                "single_chunk_embedding_failed",
                document_id=document.id,
                chunk_index=chunk_index,
                error=str(exc),
            )
            embedding = zero_vector(self._embedding.dimension)

        chunk = _new_chunk(document, chunk_index, content, embedding)
        await self._vector_store.add_chunks([chunk])
        return ChunkRef.of(chunk)

    async def store_fallback(self, document: Document) -> ChunkRef:
        """Replace any stored chunks with one zero-vector chunk of the whole text."""
        await self._vector_store.delete_by_document(document.id)
        chunk = _new_chunk(document, 0, document.content, zero_vector(self._embedding.dimension))
        await self._vector_store.add_chunks([chunk])
        return ChunkRef.of(chunk)
