"""Unit tests for ChromaDBProvider.

Most tests run against a real persistent ChromaDB in tmp_path; result
filtering is checked with a mocked collection so NaN and zero-vector
rows can be injected directly.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from docrag.models.document import DocumentChunk
from docrag.providers.vector_store.chromadb_provider import ChromaDBProvider
from docrag.utils.errors import VectorStoreError


def _make_chunk(
    chunk_id: str,
    embedding: list[float],
    document_id: str = "d1",
    chunk_index: int = 0,
    content: str = "chunk text",
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        document_id=document_id,
        document_title=f"Title {document_id}",
        content=content,
        chunk_index=chunk_index,
        embedding=embedding,
    )


@pytest.fixture
def provider(tmp_path) -> ChromaDBProvider:
    return ChromaDBProvider(
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_chunks",
    )


class TestChromaDBProvider:
    def test_identity(self, provider) -> None:
        assert provider.get_provider_name() == "chromadb"
        assert provider.is_available()

    @pytest.mark.asyncio
    async def test_add_and_get_chunks_sorted_by_index(self, provider) -> None:
        stored = await provider.add_chunks(
            [
                _make_chunk("c2", [0.0, 1.0, 0.0], chunk_index=2, content="third"),
                _make_chunk("c0", [1.0, 0.0, 0.0], chunk_index=0, content="first"),
                _make_chunk("c1", [1.0, 1.0, 0.0], chunk_index=1, content="second"),
                _make_chunk("x0", [0.0, 0.0, 1.0], document_id="d2"),
            ]
        )

        chunks = await provider.get_chunks("d1")

        assert stored == 4
        assert await provider.count() == 4
        assert [c.chunk_id for c in chunks] == ["c0", "c1", "c2"]
        assert chunks[0].content == "first"
        assert chunks[0].document_title == "Title d1"
        assert chunks[0].embedding == pytest.approx([1.0, 0.0, 0.0])

    @pytest.mark.asyncio
    async def test_add_empty_is_noop(self, provider) -> None:
        assert await provider.add_chunks([]) == 0

    @pytest.mark.asyncio
    async def test_search_orders_and_thresholds(self, provider) -> None:
        await provider.add_chunks(
            [
                _make_chunk("near", [1.0, 0.05, 0.0]),
                _make_chunk("mid", [1.0, 1.0, 0.0], chunk_index=1),
                _make_chunk("far", [0.0, 0.0, 1.0], chunk_index=2),
            ]
        )

        everything = await provider.search([1.0, 0.0, 0.0], None, 10)
        close = await provider.search([1.0, 0.0, 0.0], 1.2, 10)

        assert [r.chunk.chunk_id for r in everything] == ["near", "mid", "far"]
        assert [r.chunk.chunk_id for r in close] == ["near", "mid"]
        # Euclidean, not squared: "mid" is 1.0 away and "far" sqrt(2).
        assert close[0].distance == pytest.approx(0.05, abs=0.01)
        assert close[1].distance == pytest.approx(1.0, abs=0.01)
        assert everything[2].distance == pytest.approx(2**0.5, abs=0.01)

    @pytest.mark.asyncio
    async def test_threshold_uses_l2_not_cosine(self, provider) -> None:
        # Cosine distance 0.4 but L2 distance 0.894: outside a 0.7 threshold.
        await provider.add_chunks([_make_chunk("east", [1.0, 0.0])])

        assert await provider.search([0.6, 0.8], 0.7, 3) == []
        assert [r.chunk.chunk_id for r in await provider.search([0.8, 0.6], 0.7, 3)] == ["east"]

    @pytest.mark.asyncio
    async def test_degraded_chunks_do_not_take_top_k_slots(self, provider) -> None:
        await provider.add_chunks(
            [
                _make_chunk("real", [1.0, 0.0, 0.0]),
                _make_chunk("zero-1", [0.0, 0.0, 0.0], chunk_index=1),
                _make_chunk("zero-2", [0.0, 0.0, 0.0], chunk_index=2),
                _make_chunk("zero-3", [0.0, 0.0, 0.0], chunk_index=3),
            ]
        )

        # The zero vectors are nearer to this query than "real" is.
        hits = await provider.search([-1.0, 0.2, 0.0], None, 1)

        assert [r.chunk.chunk_id for r in hits] == ["real"]
        assert len(await provider.get_chunks("d1")) == 4

    @pytest.mark.asyncio
    async def test_search_empty_collection(self, provider) -> None:
        assert await provider.search([1.0, 0.0], 0.7, 3) == []

    @pytest.mark.asyncio
    async def test_delete_by_document(self, provider) -> None:
        await provider.add_chunks(
            [
                _make_chunk("a", [1.0, 0.0]),
                _make_chunk("b", [0.0, 1.0], chunk_index=1),
                _make_chunk("c", [1.0, 1.0], document_id="d2"),
            ]
        )

        assert await provider.delete_by_document("d1") == 2
        assert await provider.get_chunks("d1") == []
        assert await provider.count() == 1
        assert await provider.delete_by_document("d1") == 0


class TestResultFiltering:
    def _provider_with_query_result(self, result: dict) -> ChromaDBProvider:
        collection = MagicMock()
        collection.count.return_value = 3
        collection.query.return_value = result
        client = MagicMock()
        client.get_or_create_collection.return_value = collection
        return ChromaDBProvider(client=client)

    @pytest.mark.asyncio
    async def test_nan_and_degraded_rows_dropped(self) -> None:
        meta = {"document_id": "d1", "document_title": "T", "chunk_index": 0}
        provider = self._provider_with_query_result(
            {
                "ids": [["good", "nan", "zero"]],
                "documents": [["g", "n", "z"]],
                "metadatas": [[meta, meta, meta]],
                "distances": [[0.1, float("nan"), 0.2]],
                "embeddings": [[[1.0, 0.0], [0.5, 0.5], [0.0, 0.0]]],
            }
        )

        results = await provider.search([1.0, 0.0], 2.0, 3)

        assert [r.chunk.chunk_id for r in results] == ["good"]
        assert results[0].distance == pytest.approx(0.1**0.5)
        assert provider._collection.query.call_args.kwargs["where"] == {"degraded": False}

    @pytest.mark.asyncio
    async def test_query_failure_wrapped(self) -> None:
        collection = MagicMock()
        collection.count.return_value = 1
        collection.query.side_effect = RuntimeError("index corrupt")
        client = MagicMock()
        client.get_or_create_collection.return_value = collection
        provider = ChromaDBProvider(client=client)

        with pytest.raises(VectorStoreError, match="index corrupt"):
            await provider.search([1.0], None, 1)
