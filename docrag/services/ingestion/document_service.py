"""Document lifecycle and the guarded ingestion orchestrator.

:class:`DocumentService` owns every change to a document and its chunks:

* **create** validates input, honours source-URL idempotence, saves the
  document and ingests it, either inline or as a background task.
* **ingest** picks the direct or streaming path by content length and runs
  it through the shared :class:`CircuitBreaker`.  Whatever happens inside,
  the document ends up with at least a zero-vector fallback chunk.  Only a
  failure of that fallback escapes, as :class:`IngestionError`.
* **update** replaces the document and its whole chunk set as one unit.
* **delete** cascades to the chunks.

Ingestion, update and delete of one document id are serialised by a
per-document ``asyncio.Lock``; the last writer wins.  A queued ingestion
that finds its document deleted, or saved again since it was scheduled
(``updated_at`` moved), is skipped because a newer write already owns
the chunk set.
"""

from __future__ import annotations

import asyncio
import time
import uuid
import weakref
from typing import Any

import structlog

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import ChunkRef, Document, DocumentChunk, utc_now
from docrag.models.resilience import IngestionReport, IngestionStrategy
from docrag.services.circuit_breaker import CircuitBreaker
from docrag.services.ingestion.streaming_processor import StreamingDocumentProcessor
from docrag.utils.concurrency import BackgroundTasks
from docrag.utils.errors import DocumentNotFoundError, IngestionError, ValidationError

logger = structlog.get_logger(logger_name=__name__)


class DocumentService:
    """CRUD over documents plus circuit-breaker-guarded ingestion."""

    def __init__(
        self,
        document_store: IDocumentStore,
        vector_store: IVectorStoreProvider,
        processor: StreamingDocumentProcessor,
        circuit_breaker: CircuitBreaker,
        streaming_threshold: int = 50_000,
        max_document_size: int = 2_000_000,
    ) -> None:
        self._documents = document_store
        self._vector_store = vector_store
        self._processor = processor
        self._breaker = circuit_breaker
        self._streaming_threshold = streaming_threshold
        self._max_document_size = max_document_size
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self._tasks = BackgroundTasks()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        document_store: IDocumentStore,
        vector_store: IVectorStoreProvider,
        processor: StreamingDocumentProcessor,
        circuit_breaker: CircuitBreaker,
    ) -> DocumentService:
        return cls(
            document_store,
            vector_store,
            processor,
            circuit_breaker,
            streaming_threshold=settings.streaming_threshold,
            max_document_size=settings.max_document_size,
        )

    @property
    def pending_ingestions(self) -> int:
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_document(
        self,
        title: str,
        content: str,
        source_url: str | None = None,
        document_type: str | None = None,
        metadata: dict[str, Any] | None = None,
        wait: bool = True,
    ) -> Document:
        """Save a new document and ingest it.

        If *source_url* is set and a document with that URL is already
        stored, that document is returned untouched and nothing is embedded.
        With ``wait=False`` ingestion is scheduled in the background and the
        saved document is returned immediately.

        Raises
        ------
        ValidationError
            If *title* or *content* is blank, or *content* is too large.
        """
        self._validate(title, content)
        source_url = source_url.strip() if source_url and source_url.strip() else None

        if source_url is not None:
            existing = await self._documents.find_by_source_url(source_url)
            if existing is not None:
                logger.info(
                    "document_already_ingested",
                    document_id=existing.id,
                    source_url=source_url,
                )
                return existing

        now = utc_now()
        document = Document(
            id=uuid.uuid4().hex,
            title=title.strip(),
            content=content,
            source_url=source_url,
            document_type=document_type,
            created_at=now,
            updated_at=now,
            metadata=metadata or {},
        )
        await self._documents.save(document)
        logger.info(
            "document_created",
            document_id=document.id,
            title=document.title,
            content_length=document.content_length,
        )

        if wait:
            await self.ingest(document)
        else:
            self.submit_ingestion(document)
        return document

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, document: Document) -> list[ChunkRef]:
        """Ingest *document* and return references to its stored chunks."""
        report = await self.ingest_with_report(document)
        return list(report.chunk_refs)

    async def ingest_with_report(self, document: Document) -> IngestionReport:
        async with self._lock_for(document.id):
            current = await self._documents.get(document.id)
            if current is None or current.updated_at != document.updated_at:
                logger.info(
                    "ingestion_skipped_stale",
                    document_id=document.id,
                    deleted=current is None,
                )
                return IngestionReport(document_id=document.id, strategy=IngestionStrategy.SKIPPED)
            return await self._ingest_locked(document)

    def submit_ingestion(self, document: Document) -> asyncio.Task[list[ChunkRef]]:
        """Schedule :meth:`ingest` as a background task and return its handle.

        Abandoning the handle does not cancel the ingestion.
        """
        return self._tasks.spawn(self.ingest(document), name=f"ingest-{document.id}")

    async def _ingest_locked(self, document: Document) -> IngestionReport:
        started = time.monotonic()
        use_streaming = document.content_length > self._streaming_threshold

        async def operation() -> IngestionReport:
            # Every ingestion replaces the stored chunk set wholesale.
            removed = await self._vector_store.delete_by_document(document.id)
            if removed:
                logger.debug("old_chunks_removed", document_id=document.id, count=removed)
            if use_streaming:
                return await self._processor.process_streaming(document)
            return await self._processor.process_direct(document)

        async def fallback(reason: str) -> IngestionReport:
            logger.warning("ingestion_fallback", document_id=document.id, reason=reason)
            try:
                ref = await self._processor.store_fallback(document)
            except Exception as exc:
                logger.error(
                    "ingestion_fallback_failed",
                    document_id=document.id,
                    reason=reason,
                    error=str(exc),
                )
                raise IngestionError(
                    message=f"Complete document processing failure for {document.id}: {exc}",
                ) from exc
            return IngestionReport(
                document_id=document.id,
                strategy=IngestionStrategy.FALLBACK,
                chunk_refs=[ref],
                degraded_count=1,
                fallback_reason=reason,
            )

        report = await self._breaker.execute(operation, fallback)
        report = report.model_copy(update={"elapsed_seconds": round(time.monotonic() - started, 3)})
        logger.info(
            "document_ingested",
            document_id=document.id,
            strategy=report.strategy.value,
            chunks=report.chunk_count,
            degraded=report.degraded_count,
            failed_batches=report.failed_batches,
            fallback_reason=report.fallback_reason,
            elapsed_s=report.elapsed_seconds,
        )
        return report

    async def shutdown(self) -> None:
        """Wait for background ingestions to finish."""
        await self._tasks.drain()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_document(self, document_id: str) -> Document:
        document = await self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document not found with id: {document_id}")
        return document

    async def get_all_documents(self) -> list[Document]:
        return await self._documents.list_all()

    async def document_exists(self, document_id: str) -> bool:
        return await self._documents.exists(document_id)

    async def search_documents_by_title(self, fragment: str) -> list[Document]:
        if not fragment or not fragment.strip():
            raise ValidationError("Title search text must not be blank")
        return await self._documents.search_by_title(fragment.strip())

    async def find_documents_by_type(self, document_type: str) -> list[Document]:
        return await self._documents.find_by_type(document_type)

    async def get_document_chunks(self, document_id: str) -> list[DocumentChunk]:
        if not await self._documents.exists(document_id):
            raise DocumentNotFoundError(f"Document not found with id: {document_id}")
        return await self._vector_store.get_chunks(document_id)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    async def update_document(
        self,
        document_id: str,
        title: str,
        content: str,
        source_url: str | None = None,
        document_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Document:
        """Replace a document's fields and re-ingest it.

        The old chunk set is deleted and the new one written while the
        document's lock is held, so readers never see a mix of both.
        """
        self._validate(title, content)
        async with self._lock_for(document_id):
            existing = await self._documents.get(document_id)
            if existing is None:
                raise DocumentNotFoundError(f"Document not found with id: {document_id}")

            updated = existing.model_copy(
                update={
                    "title": title.strip(),
                    "content": content,
                    "source_url": source_url.strip() if source_url and source_url.strip() else None,
                    "document_type": document_type,
                    "metadata": metadata if metadata is not None else existing.metadata,
                    "updated_at": utc_now(),
                }
            )
            await self._documents.save(updated)
            logger.info("document_updated", document_id=document_id)
            await self._ingest_locked(updated)
        return updated

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document and all of its chunks.

        Returns ``False`` (and logs a warning) when the id does not exist.
        """
        async with self._lock_for(document_id):
            if not await self._documents.exists(document_id):
                logger.warning("delete_missing_document", document_id=document_id)
                return False
            removed = await self._vector_store.delete_by_document(document_id)
            await self._documents.delete(document_id)
        logger.info("document_deleted", document_id=document_id, chunks_removed=removed)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate(self, title: str | None, content: str | None) -> None:
        if not title or not title.strip():
            raise ValidationError("Document title must not be blank")
        if not content or not content.strip():
            raise ValidationError("Document content must not be blank")
        if len(content) > self._max_document_size:
            raise ValidationError(
                f"Document content is {len(content)} characters; "
                f"the maximum is {self._max_document_size}"
            )

    def _lock_for(self, document_id: str) -> asyncio.Lock:
        lock = self._locks.get(document_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[document_id] = lock
        return lock
