"""Integration tests for the FastAPI endpoints using TestClient.

The full component graph is built by ``build_components``; only the
embedding and generation providers are fakes.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from docrag.config.settings import Settings
from docrag.main import build_components, create_app
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.providers.vector_store.memory_store import InMemoryVectorStore
from docrag.services.qa_service import NO_CONTEXT_ANSWER
from tests.conftest import FAKE_DIMENSION, FakeEmbeddingProvider, FakeLLMProvider

_THREE_CHUNK_TEXT = "abcdefghij" * 12


def _settings(tmp_path: Path, **overrides) -> Settings:
    values = {
        "_env_file": None,
        "openai_api_key": "sk-test",
        "embedding_dimension": FAKE_DIMENSION,
        "embedding_retry_delay": 0.0,
        "embedding_batch_pause": 0.0,
        "stream_batch_pause": 0.0,
        "chunk_size": 50,
        "chunk_overlap": 10,
        "chunk_boundary_slack": 0,
        "vector_store_backend": "memory",
        "document_db_path": str(tmp_path / "documents.db"),
    }
    values.update(overrides)
    return Settings(**values)


def _create_test_app(tmp_path: Path, **overrides):
    settings = _settings(tmp_path, **overrides)
    llm = FakeLLMProvider()
    components = build_components(
        settings,
        embedding_provider=FakeEmbeddingProvider(fail_markers=("UNEMBEDDABLE",)),
        llm_provider=llm,
        vector_store=InMemoryVectorStore(),
        document_store=SQLiteDocumentStore(settings.document_db_path),
    )
    return create_app(settings, components=components), components, llm


@pytest.fixture
def api(tmp_path):
    app, components, llm = _create_test_app(tmp_path)
    with TestClient(app) as client:
        yield client, components, llm


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class TestDocumentEndpoints:
    def test_create_and_fetch(self, api) -> None:
        client, _, _ = api

        resp = client.post(
            "/api/v1/documents",
            json={"title": "Notes", "content": _THREE_CHUNK_TEXT, "document_type": "memo"},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert body["title"] == "Notes"
        assert body["document_type"] == "memo"
        assert body["content_length"] == 120

        fetched = client.get(f"/api/v1/documents/{body['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["content"] == _THREE_CHUNK_TEXT

        chunks = client.get(f"/api/v1/documents/{body['id']}/chunks").json()
        assert chunks["total"] == 3
        assert chunks["degraded"] == 0
        assert [c["chunk_index"] for c in chunks["chunks"]] == [0, 1, 2]

    def test_blank_title_is_400(self, api) -> None:
        client, _, _ = api

        resp = client.post("/api/v1/documents", json={"title": "  ", "content": "body"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "ValidationError"

    def test_missing_document_is_404(self, api) -> None:
        client, _, _ = api

        assert client.get("/api/v1/documents/nope").status_code == 404
        assert client.get("/api/v1/documents/nope/chunks").status_code == 404
        assert client.delete("/api/v1/documents/nope").status_code == 404

    def test_background_create_returns_202(self, api) -> None:
        client, _, _ = api

        resp = client.post(
            "/api/v1/documents?wait=false",
            json={"title": "Later", "content": "body text"},
        )
        assert resp.status_code == 202

    def test_list_search_and_type_filter(self, api) -> None:
        client, _, _ = api
        client.post("/api/v1/documents", json={"title": "Budget 2026", "content": "a", "document_type": "pdf"})
        client.post("/api/v1/documents", json={"title": "Roadmap", "content": "b"})

        listed = client.get("/api/v1/documents").json()
        assert listed["total"] == 2
        assert all(d["content"] is None for d in listed["documents"])

        assert client.get("/api/v1/documents", params={"type": "pdf"}).json()["total"] == 1
        found = client.get("/api/v1/documents/search", params={"title": "budget"}).json()
        assert [d["title"] for d in found["documents"]] == ["Budget 2026"]
        assert client.get("/api/v1/documents/search", params={"title": " "}).status_code == 400

    def test_update_and_delete(self, api) -> None:
        client, _, _ = api
        doc_id = client.post("/api/v1/documents", json={"title": "Old", "content": _THREE_CHUNK_TEXT}).json()["id"]

        resp = client.put(f"/api/v1/documents/{doc_id}", json={"title": "New", "content": "short"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "New"
        assert client.get(f"/api/v1/documents/{doc_id}/chunks").json()["total"] == 1

        assert client.delete(f"/api/v1/documents/{doc_id}").status_code == 204
        assert client.get(f"/api/v1/documents/{doc_id}").status_code == 404

    def test_degraded_chunks_reported(self, api) -> None:
        client, components, _ = api
        content = "a" * 40 + "UNEMBEDDABLE" + "b" * 68

        doc_id = client.post("/api/v1/documents", json={"title": "Partial", "content": content}).json()["id"]

        chunks = client.get(f"/api/v1/documents/{doc_id}/chunks").json()
        assert chunks["total"] == 3
        assert chunks["degraded"] >= 1
        assert components["embedding_service"].degraded_count == chunks["degraded"]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class TestChatEndpoint:
    def test_no_documents_gives_fixed_answer(self, api) -> None:
        client, _, llm = api

        resp = client.post("/api/v1/chat/ask", json={"question": "What is the capital?"})

        assert resp.status_code == 200
        assert resp.json()["answer"] == NO_CONTEXT_ANSWER
        assert resp.json()["sources"] == []
        assert llm.calls == []

    def test_grounded_answer_lists_sources(self, api) -> None:
        client, _, llm = api
        client.post(
            "/api/v1/documents",
            json={"title": "Geography", "content": "The capital of France is Paris."},
        )

        resp = client.post("/api/v1/chat/ask", json={"question": "What is the capital of France?"})

        body = resp.json()
        assert body["answer"] == llm.reply
        assert body["sources"][0]["document_title"] == "Geography"
        assert len(llm.calls) == 1

    def test_similar_chunks_ignore_threshold(self, api) -> None:
        client, _, llm = api
        client.post(
            "/api/v1/documents",
            json={"title": "Geography", "content": "The capital of France is Paris."},
        )

        resp = client.get("/api/v1/chat/similar", params={"text": "zzz", "limit": 2})

        assert resp.status_code == 200
        body = resp.json()
        assert body["text"] == "zzz"
        assert [c["content"] for c in body["chunks"]] == ["The capital of France is Paris."]
        assert body["chunks"][0]["distance"] > 0.7
        assert llm.calls == []

    def test_similar_chunks_blank_text_is_400(self, api) -> None:
        client, _, _ = api
        assert client.get("/api/v1/chat/similar", params={"text": " "}).status_code == 400

    def test_blank_question_is_400(self, api) -> None:
        client, _, _ = api
        assert client.post("/api/v1/chat/ask", json={"question": "   "}).status_code == 400

    def test_out_of_range_top_k_is_422(self, api) -> None:
        client, _, _ = api
        assert client.post("/api/v1/chat/ask", json={"question": "q", "top_k": 0}).status_code == 422


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealthEndpoints:
    def test_health(self, api) -> None:
        client, _, _ = api

        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["providers"]["circuit_breaker"] == "CLOSED"

    def test_breaker_status_and_reset(self, api) -> None:
        client, components, _ = api
        breaker = components["circuit_breaker"]
        for _ in range(5):
            breaker._on_failure(RuntimeError("down"))

        status = client.get("/api/v1/health/circuit-breaker").json()
        assert status["status"]["state"] == "OPEN"
        assert client.get("/api/v1/health").json()["status"] == "degraded"

        reset = client.post("/api/v1/health/circuit-breaker/reset").json()
        assert reset["status"]["state"] == "CLOSED"
        assert reset["message"] == "Circuit breaker reset successfully"

    def test_system_health_counts(self, api) -> None:
        client, _, _ = api
        client.post("/api/v1/documents", json={"title": "Notes", "content": _THREE_CHUNK_TEXT})

        body = client.get("/api/v1/health/system").json()

        assert body["status"] == "UP"
        assert body["documents"] == 1
        assert body["chunks"] == 3
        assert body["pending_ingestions"] == 0
        assert body["memory_rss_mb"] > 0
