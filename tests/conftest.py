"""Shared pytest fixtures and fakes for the docrag test suite."""

from __future__ import annotations

import logging
import math
import string
from pathlib import Path

import pytest
import pytest_asyncio
import structlog

from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.vector_store.memory_store import InMemoryVectorStore
from docrag.services.circuit_breaker import CircuitBreaker
from docrag.services.embedding_service import EmbeddingService
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.document_service import DocumentService
from docrag.services.ingestion.streaming_processor import StreamingDocumentProcessor
from docrag.utils.errors import EmbeddingError

FAKE_DIMENSION = len(string.ascii_lowercase)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Letter-frequency embeddings with scriptable failures.

    Texts sharing vocabulary get nearby vectors, which is enough for
    retrieval tests.  Any text containing a marker in ``fail_markers``
    always raises; ``transient_failures`` makes the first N calls raise.
    """

    def __init__(
        self,
        fail_markers: tuple[str, ...] = (),
        transient_failures: int = 0,
        error: Exception | None = None,
    ) -> None:
        self.fail_markers = fail_markers
        self.transient_failures = transient_failures
        self.error = error
        self.calls: list[str] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed_single(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise self.error or EmbeddingError("simulated transient failure", provider_name="fake")
        if any(marker in text for marker in self.fail_markers):
            raise self.error or EmbeddingError("simulated permanent failure", provider_name="fake")
        return letter_vector(text)

    def get_dimension(self) -> int:
        return FAKE_DIMENSION

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


class FakeLLMProvider(ILLMProvider):
    """Records every prompt and returns a canned reply."""

    def __init__(self, reply: str = "Paris is the capital [Document: Geography].") -> None:
        self.reply = reply
        self.calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        return self.reply

    def get_provider_name(self) -> str:
        return "fake_llm"

    def is_available(self) -> bool:
        return True


def letter_vector(text: str) -> list[float]:
    """Unit-length letter counts; text without letters gives the zero vector."""
    counts = [0.0] * FAKE_DIMENSION
    for ch in text.lower():
        idx = string.ascii_lowercase.find(ch)
        if idx >= 0:
            counts[idx] += 1.0
    norm = math.sqrt(sum(c * c for c in counts))
    if norm == 0.0:
        return counts
    return [c / norm for c in counts]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _uncached_structlog() -> None:
    """Resolve ``sys.stdout`` per log call so capsys streams never go stale."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def project_root() -> Path:
    return Path(__file__).parent.parent


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings with no sleeps, the memory backend and a temp database."""
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        embedding_dimension=FAKE_DIMENSION,
        embedding_retry_delay=0.0,
        embedding_batch_pause=0.0,
        stream_batch_pause=0.0,
        vector_store_backend="memory",
        document_db_path=str(tmp_path / "documents.db"),
        chromadb_persist_dir=str(tmp_path / "chromadb"),
    )


@pytest.fixture
def fake_embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest_asyncio.fixture
async def document_store(tmp_path: Path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(db_path=tmp_path / "documents.db")
    await store.initialize()
    return store


@pytest.fixture
def embedding_service(fake_embedding_provider: FakeEmbeddingProvider) -> EmbeddingService:
    return EmbeddingService(
        fake_embedding_provider,
        retry_delay=0.0,
        batch_pause=0.0,
    )


@pytest.fixture
def document_service(
    document_store: SQLiteDocumentStore,
    vector_store: InMemoryVectorStore,
    embedding_service: EmbeddingService,
) -> DocumentService:
    processor = StreamingDocumentProcessor(
        TextChunker(chunk_size=50, overlap=10, boundary_slack=5),
        embedding_service,
        vector_store,
        batch_size=2,
        batch_pause=0.0,
    )
    return DocumentService(
        document_store,
        vector_store,
        processor,
        CircuitBreaker(),
        streaming_threshold=200,
    )
