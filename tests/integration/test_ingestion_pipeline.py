"""End-to-end ingestion and answering through the real component graph.

Uses ``build_components`` with the memory vector store, a SQLite file in
tmp_path, and fake providers.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from docrag.config.settings import Settings
from docrag.main import build_components, shutdown_components
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.vector_store.memory_store import InMemoryVectorStore
from docrag.services.qa_service import NO_CONTEXT_ANSWER
from tests.conftest import FAKE_DIMENSION, FakeEmbeddingProvider, FakeLLMProvider


@pytest_asyncio.fixture
async def pipeline(tmp_path: Path):
    settings = Settings(
        _env_file=None,
        openai_api_key="sk-test",
        embedding_dimension=FAKE_DIMENSION,
        embedding_retry_delay=0.0,
        embedding_batch_pause=0.0,
        stream_batch_pause=0.0,
        chunk_size=50,
        chunk_overlap=10,
        chunk_boundary_slack=0,
        streaming_threshold=500,
        stream_batch_size=3,
        vector_store_backend="memory",
        document_db_path=str(tmp_path / "documents.db"),
    )
    embedding = FakeEmbeddingProvider()
    llm = FakeLLMProvider()
    components = build_components(
        settings,
        embedding_provider=embedding,
        llm_provider=llm,
        vector_store=InMemoryVectorStore(),
        document_store=SQLiteDocumentStore(settings.document_db_path),
    )
    await components["document_store"].initialize()
    components["fake_embedding"] = embedding
    components["fake_llm"] = llm
    yield components
    await shutdown_components(components)


@pytest.mark.asyncio
async def test_120_character_document_gives_three_ordered_chunks(pipeline) -> None:
    content = "abcdefghij" * 12
    document = await pipeline["document_service"].create_document("Letters", content)

    chunks = await pipeline["document_service"].get_document_chunks(document.id)

    assert [c.chunk_index for c in chunks] == [0, 1, 2]
    assert [c.content for c in chunks] == [content[0:50], content[40:90], content[80:120]]
    assert "".join(c.content[10:] if i else c.content for i, c in enumerate(chunks)) == content


@pytest.mark.asyncio
async def test_question_without_relevant_chunks_skips_generation(pipeline) -> None:
    answer = await pipeline["rag_service"].answer("What is the capital?")

    assert answer == NO_CONTEXT_ANSWER
    assert pipeline["fake_llm"].calls == []


@pytest.mark.asyncio
async def test_same_source_url_ingested_once(pipeline) -> None:
    service = pipeline["document_service"]
    first = await service.create_document("Report", "quarterly figures", source_url="file:///r.txt")
    embed_calls = len(pipeline["fake_embedding"].calls)

    second = await service.create_document("Report", "quarterly figures", source_url="file:///r.txt")

    assert second == first
    assert len(pipeline["fake_embedding"].calls) == embed_calls
    assert await pipeline["document_store"].count() == 1
    assert await pipeline["vector_store"].count() == 1


@pytest.mark.asyncio
async def test_large_document_streams_all_chunks(pipeline) -> None:
    content = "lorem ipsum dolor sit amet " * 40
    document = await pipeline["document_service"].create_document("Long", content)

    chunks = await pipeline["document_service"].get_document_chunks(document.id)
    expected = pipeline["document_service"]._processor._chunker.split(content)

    assert [c.content for c in chunks] == expected
    assert [c.chunk_index for c in chunks] == list(range(len(expected)))


@pytest.mark.asyncio
async def test_ingest_then_answer_grounded(pipeline) -> None:
    await pipeline["document_service"].create_document(
        "Geography", "The capital of France is Paris."
    )

    result = await pipeline["rag_service"].ask("What is the capital of France?")

    assert result.grounded
    assert result.sources[0].chunk.document_title == "Geography"
    assert "(ID: " in pipeline["fake_llm"].calls[0]["user_prompt"]
