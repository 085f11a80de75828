"""docrag domain models.

    - document.py   -- Document, DocumentChunk and their read-only views,
                       chunk references, retrieval results, chunker spans
    - resilience.py -- embedding outcomes, circuit breaker snapshot,
                       ingestion reports
"""

from __future__ import annotations

from docrag.models.document import (
    ChunkInfo,
    ChunkRef,
    Document,
    DocumentChunk,
    DocumentInfo,
    RetrievedChunk,
    TextSpan,
)
from docrag.models.resilience import (
    CircuitBreakerStatus,
    CircuitState,
    EmbeddingOutcome,
    EmbeddingStatus,
    IngestionReport,
    IngestionStrategy,
)

__all__ = [
    "ChunkInfo",
    "ChunkRef",
    "CircuitBreakerStatus",
    "CircuitState",
    "Document",
    "DocumentChunk",
    "DocumentInfo",
    "EmbeddingOutcome",
    "EmbeddingStatus",
    "IngestionReport",
    "IngestionStrategy",
    "RetrievedChunk",
    "TextSpan",
]
