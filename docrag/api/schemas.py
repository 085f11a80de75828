"""Pydantic request/response schemas for the docrag HTTP API.

Request schemas end with ``Request``, response schemas with ``Response``.
Blank-string checks are left to the services, so a blank title or
question comes back as a 400 ``ValidationError`` body rather than a 422.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from docrag.models.document import ChunkInfo, Document, RetrievedChunk
from docrag.models.resilience import CircuitBreakerStatus


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentRequest(BaseModel):
    """Body for creating or replacing a document."""

    title: str = Field(..., max_length=500)
    content: str
    source_url: str | None = Field(default=None, max_length=2000)
    document_type: str | None = Field(default=None, max_length=100)
    metadata: dict[str, Any] | None = None


class DocumentResponse(BaseModel):
    id: str
    title: str
    content: str | None = None
    source_url: str | None = None
    document_type: str
    content_length: int
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Document, include_content: bool = True) -> DocumentResponse:
        return cls(
            id=document.id,
            title=document.title,
            content=document.content if include_content else None,
            source_url=document.source_url,
            document_type=document.document_type_or_default(),
            content_length=document.content_length,
            created_at=document.created_at,
            updated_at=document.updated_at,
            metadata=document.metadata,
        )


class DocumentListResponse(BaseModel):
    documents: list[DocumentResponse]
    total: int


class DocumentChunksResponse(BaseModel):
    document_id: str
    chunks: list[ChunkInfo]
    total: int
    degraded: int


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """A question with optional per-request retrieval overrides."""

    question: str = Field(..., max_length=4000)
    top_k: int | None = Field(default=None, ge=1, le=50)
    threshold: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Maximum Euclidean distance (lower = stricter).",
    )


class SourceChunk(BaseModel):
    document_id: str
    document_title: str
    chunk_index: int
    distance: float

    @classmethod
    def from_retrieved(cls, rc: RetrievedChunk) -> SourceChunk:
        return cls(
            document_id=rc.chunk.document_id,
            document_title=rc.chunk.document_title,
            chunk_index=rc.chunk.chunk_index,
            distance=rc.distance,
        )


class ChatResponse(BaseModel):
    question: str
    answer: str
    sources: list[SourceChunk] = Field(default_factory=list)


class SimilarChunk(SourceChunk):
    content: str

    @classmethod
    def from_retrieved(cls, rc: RetrievedChunk) -> SimilarChunk:
        return cls(
            document_id=rc.chunk.document_id,
            document_title=rc.chunk.document_title,
            chunk_index=rc.chunk.chunk_index,
            distance=rc.distance,
            content=rc.chunk.content,
        )


class SimilarChunksResponse(BaseModel):
    """Nearest chunks to a text, closest first, with no distance cutoff."""

    text: str
    chunks: list[SimilarChunk] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class CircuitBreakerResponse(BaseModel):
    status: CircuitBreakerStatus
    message: str | None = None


class SystemHealthResponse(BaseModel):
    status: str
    circuit_breaker: CircuitBreakerStatus
    documents: int
    chunks: int
    embeddings_degraded: int
    pending_ingestions: int
    memory_rss_mb: float
