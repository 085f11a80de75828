"""Utility modules for docrag.

- **errors** -- exception hierarchy rooted at DocRagError plus the
  ErrorKind classification used by retry and circuit-breaker logic.
- **logging** -- structlog setup with console/JSON renderers.
- **concurrency** -- semaphore-throttled gather and a background task
  registry for fire-and-forget ingestions.
- **vector_math** -- numpy cosine similarity, Euclidean distance, L2 norm
  and zero-vector helpers.
"""

from docrag.utils.concurrency import BackgroundTasks, throttled_gather
from docrag.utils.errors import (
    ConfigurationError,
    DocRagError,
    DocumentNotFoundError,
    DocumentStoreError,
    EmbeddingError,
    ErrorKind,
    IngestionError,
    LLMError,
    ProviderUnavailableError,
    RateLimitError,
    ValidationError,
    VectorStoreError,
    classify_error,
)
from docrag.utils.logging import configure_logging, get_logger
from docrag.utils.vector_math import (
    cosine_similarity,
    euclidean_distance,
    is_zero_vector,
    l2_norm,
    zero_vector,
)

__all__ = [
    "BackgroundTasks",
    "ConfigurationError",
    "DocRagError",
    "DocumentNotFoundError",
    "DocumentStoreError",
    "EmbeddingError",
    "ErrorKind",
    "IngestionError",
    "LLMError",
    "ProviderUnavailableError",
    "RateLimitError",
    "ValidationError",
    "VectorStoreError",
    "classify_error",
    "configure_logging",
    "cosine_similarity",
    "euclidean_distance",
    "get_logger",
    "is_zero_vector",
    "l2_norm",
    "throttled_gather",
    "zero_vector",
]
