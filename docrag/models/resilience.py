"""Models describing degraded results, breaker state and ingestion outcomes."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from docrag.models.document import ChunkRef


class EmbeddingStatus(str, Enum):
    EMBEDDED = "embedded"
    DEGRADED = "degraded"


class EmbeddingOutcome(BaseModel):
    """Per-text result of a batch embedding.

    ``DEGRADED`` entries carry no vector; the gateway's flat contract turns
    them into zero vectors of the provider dimension.
    """

    model_config = ConfigDict(frozen=True)

    status: EmbeddingStatus
    vector: list[float] | None = None
    error: str | None = None

    @classmethod
    def embedded(cls, vector: list[float]) -> EmbeddingOutcome:
        return cls(status=EmbeddingStatus.EMBEDDED, vector=vector)

    @classmethod
    def degraded(cls, error: str) -> EmbeddingOutcome:
        return cls(status=EmbeddingStatus.DEGRADED, error=error)

    @property
    def is_degraded(self) -> bool:
        return self.status is EmbeddingStatus.DEGRADED


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreakerStatus(BaseModel):
    """Read-only snapshot of the circuit breaker."""

    model_config = ConfigDict(frozen=True)

    state: CircuitState
    failure_count: int = Field(ge=0)
    success_count: int = Field(ge=0)
    last_failure_time: datetime | None = None
    request_count: int = Field(ge=0)


class IngestionStrategy(str, Enum):
    DIRECT = "direct"
    STREAMING = "streaming"
    FALLBACK = "fallback"
    SKIPPED = "skipped"


class IngestionReport(BaseModel):
    """Summary of one ingestion attempt, logged by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    strategy: IngestionStrategy
    chunk_refs: list[ChunkRef] = Field(default_factory=list)
    degraded_count: int = Field(default=0, ge=0)
    failed_batches: int = Field(default=0, ge=0)
    fallback_reason: str | None = None
    elapsed_seconds: float = Field(default=0.0, ge=0.0)

    @property
    def chunk_count(self) -> int:
        return len(self.chunk_refs)
