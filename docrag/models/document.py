"""Document and chunk models for the docrag knowledge base.

A :class:`Document` is a unit of source text owned by the relational
document store.  A :class:`DocumentChunk` is one contiguous slice of a
document's content plus its embedding, owned by the vector store.  Chunk
lifetime is bounded by the owning document: chunks are replaced wholesale
on update and cascade-deleted on delete.

All models are frozen; "changing" a document means ``model_copy(update=...)``
and saving the copy.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from docrag.utils.vector_math import cosine_similarity, is_zero_vector, l2_norm

DEFAULT_DOCUMENT_TYPE = "text"
RECENT_DAYS = 30
_SUMMARY_PREVIEW_CHARS = 200


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """A unit of source text.

    ``source_url`` doubles as the idempotence key for ingestion: creating a
    document whose source URL is already stored returns the stored document
    unchanged.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID hex) assigned on creation.")
    title: str = Field(description="Human-readable title.")
    content: str = Field(description="Full text content.")
    source_url: str | None = Field(
        default=None, description="Optional source locator used for idempotent re-ingestion."
    )
    document_type: str | None = Field(default=None, description="Optional type tag, e.g. 'pdf'.")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form metadata blob.")

    @property
    def content_length(self) -> int:
        return len(self.content)

    def document_type_or_default(self) -> str:
        return self.document_type or DEFAULT_DOCUMENT_TYPE

    def summary(self) -> str:
        """Return a short multi-line description for logs and the CLI."""
        preview = self.content[:_SUMMARY_PREVIEW_CHARS]
        if len(self.content) > _SUMMARY_PREVIEW_CHARS:
            preview += "..."
        return (
            f"Title: {self.title}\n"
            f"Type: {self.document_type_or_default()}\n"
            f"Source: {self.source_url or 'N/A'}\n"
            f"Length: {self.content_length} characters\n"
            f"Preview: {preview}"
        )

    def to_info(self) -> DocumentInfo:
        return DocumentInfo(
            id=self.id,
            title=self.title,
            document_type=self.document_type_or_default(),
            source_url=self.source_url,
            content_length=self.content_length,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class DocumentInfo(BaseModel):
    """Content-free view of a :class:`Document` for listings."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    document_type: str
    source_url: str | None = None
    content_length: int = Field(ge=0)
    created_at: datetime
    updated_at: datetime

    def age_in_days(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        return (now - self.created_at).days

    def is_recent(self, now: datetime | None = None) -> bool:
        """True when the document was created less than 30 days ago."""
        return self.age_in_days(now) < RECENT_DAYS


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A contiguous slice of a document plus its embedding.

    ``chunk_index`` values for one document are contiguous from 0 and follow
    left-to-right order in the source text.  An all-zero embedding marks a
    degraded chunk: it is stored and listed, but never returned by search.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str = Field(description="Identifier of the owning document.")
    document_title: str = Field(default="", description="Title of the owning document.")
    content: str = Field(default="", description="The chunk's text.")
    chunk_index: int = Field(ge=0, description="Zero-based position within the document.")
    embedding: list[float] = Field(default_factory=list, description="Embedding vector.")

    def embedding_norm(self) -> float:
        return l2_norm(self.embedding)

    def cosine_similarity(self, other: DocumentChunk | list[float]) -> float:
        """Cosine similarity against another chunk or a raw vector."""
        vector = other.embedding if isinstance(other, DocumentChunk) else other
        return cosine_similarity(self.embedding, vector)

    def is_degraded(self) -> bool:
        return is_zero_vector(self.embedding)

    def to_info(self) -> ChunkInfo:
        return ChunkInfo(
            chunk_id=self.chunk_id,
            document_id=self.document_id,
            chunk_index=self.chunk_index,
            content=self.content,
            content_length=len(self.content),
            embedding_dimension=len(self.embedding),
            embedding_norm=self.embedding_norm(),
            degraded=self.is_degraded(),
        )


class ChunkInfo(BaseModel):
    """Vector-free view of a :class:`DocumentChunk`."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    chunk_index: int
    content: str
    content_length: int
    embedding_dimension: int
    embedding_norm: float
    degraded: bool


class ChunkRef(BaseModel):
    """Reference to a persisted chunk, returned by ingestion."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    chunk_index: int = Field(ge=0)

    @classmethod
    def of(cls, chunk: DocumentChunk) -> ChunkRef:
        return cls(chunk_id=chunk.chunk_id, document_id=chunk.document_id, chunk_index=chunk.chunk_index)


class RetrievedChunk(BaseModel):
    """A chunk returned from a similarity query with its L2 distance."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    distance: float = Field(description="Euclidean distance to the query; lower is closer.")


class TextSpan(BaseModel):
    """One chunker output segment: ``text == content[start:end]``."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    start: int = Field(ge=0)
    end: int = Field(ge=0)
    text: str
