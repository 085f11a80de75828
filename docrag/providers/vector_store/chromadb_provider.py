"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
The collection uses l2 space.  ChromaDB reports squared L2 distances, so
search takes the square root before comparing against a threshold.
"""

from __future__ import annotations

import math
import os
from typing import Any

# Telemetry must be off before chromadb is imported.
os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import DocumentChunk, RetrievedChunk
from docrag.utils.errors import VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_BATCH = 500


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Placeholder that keeps ChromaDB from loading its default ONNX model.

    docrag always passes pre-computed embeddings, so this is never called.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "docrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Chunk text goes into the ChromaDB document field; ``document_id``,
    ``document_title``, ``chunk_index`` and a ``degraded`` flag go into
    metadata so a document's chunks can be listed and deleted with a
    ``where`` filter.

    Search queries with ``where={"degraded": False}``, so degraded
    (all-zero) chunks never take a top-K slot.  Any NaN distance ChromaDB
    reports is dropped as well.
    """

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "docrag_chunks",
        client: Any = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # A collection persisted by another embedding function rejects ours
        # with ValueError; reopen it without one.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "l2"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "l2"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def add_chunks(self, chunks: list[DocumentChunk]) -> int:
        """Upsert *chunks* in slices of 500 to keep peak memory bounded."""
        if not chunks:
            return 0

        try:
            total_stored = 0
            for start in range(0, len(chunks), _UPSERT_BATCH):
                batch = chunks[start : start + _UPSERT_BATCH]
                self._collection.upsert(
                    ids=[c.chunk_id for c in batch],
                    embeddings=[list(c.embedding) for c in batch],
                    documents=[c.content for c in batch],
                    metadatas=[self._chunk_to_metadata(c) for c in batch],
                )
                total_stored += len(batch)

            logger.debug("chromadb_add_chunks", count=total_stored)
            return total_stored
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB add_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_document(self, document_id: str) -> int:
        try:
            existing = self._collection.get(where={"document_id": document_id})
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                self._collection.delete(where={"document_id": document_id})

            logger.info(
                "chromadb_delete_by_document",
                document_id=document_id,
                deleted_count=count,
            )
            return count
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_chunks(self, document_id: str) -> list[DocumentChunk]:
        try:
            result = self._collection.get(
                where={"document_id": document_id},
                include=["documents", "metadatas", "embeddings"],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB get_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = result.get("ids") or []
        documents = result.get("documents")
        metadatas = result.get("metadatas")
        embeddings = result.get("embeddings")

        chunks = [
            self._to_chunk(
                chunk_id,
                metadatas[i] if metadatas is not None else {},
                documents[i] if documents is not None else "",
                embeddings[i] if embeddings is not None else [],
            )
            for i, chunk_id in enumerate(ids)
        ]
        chunks.sort(key=lambda c: c.chunk_index)
        return chunks

    async def search(
        self,
        vector: list[float],
        max_distance: float | None,
        limit: int,
    ) -> list[RetrievedChunk]:
        """Nearest-K query, then drop anything at or beyond *max_distance*.

        ChromaDB returns results in increasing distance, so the chunks under
        the threshold are a prefix of its top-*limit*.
        """
        if limit <= 0:
            return []
        try:
            available = self._collection.count()
            if available == 0:
                return []

            results = self._collection.query(
                query_embeddings=[list(vector)],
                n_results=min(limit, available),
                where={"degraded": False},
                include=["documents", "metadatas", "distances", "embeddings"],
            )
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        ids = results["ids"][0] if results.get("ids") else []
        documents = results["documents"][0] if results.get("documents") else [""] * len(ids)
        metadatas = results["metadatas"][0] if results.get("metadatas") else [{}] * len(ids)
        distances = results["distances"][0] if results.get("distances") else [1.0] * len(ids)
        raw_embeddings = results.get("embeddings")
        embeddings = raw_embeddings[0] if raw_embeddings is not None else [[]] * len(ids)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, text, meta, distance, embedding in zip(
            ids, documents, metadatas, distances, embeddings, strict=True
        ):
            squared = float(distance)
            if math.isnan(squared):
                continue
            distance = math.sqrt(max(squared, 0.0))
            if max_distance is not None and distance >= max_distance:
                continue
            chunk = self._to_chunk(chunk_id, meta, text, embedding)
            if chunk.embedding and chunk.is_degraded():
                continue
            retrieved.append(RetrievedChunk(chunk=chunk, distance=distance))

        retrieved.sort(key=lambda rc: rc.distance)
        logger.debug(
            "chromadb_search",
            raw_results=len(ids),
            results_count=len(retrieved),
            max_distance=max_distance,
        )
        return retrieved[:limit]

    async def count(self) -> int:
        try:
            return self._collection.count()
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, str | int | bool]:
        return {
            "document_id": chunk.document_id,
            "document_title": chunk.document_title,
            "chunk_index": chunk.chunk_index,
            "degraded": chunk.is_degraded(),
        }

    @staticmethod
    def _to_chunk(chunk_id: str, meta: dict[str, Any] | None, text: str | None, embedding: Any) -> DocumentChunk:
        meta = meta or {}
        return DocumentChunk(
            chunk_id=chunk_id,
            document_id=str(meta.get("document_id", "")),
            document_title=str(meta.get("document_title", "")),
            chunk_index=int(meta.get("chunk_index", 0)),
            content=text or "",
            embedding=[float(x) for x in embedding] if embedding is not None else [],
        )
