"""Vector store provider implementations.

    - ChromaDBProvider    -- persistent on-disk store (l2 space), the default.
    - InMemoryVectorStore -- dict + numpy, for development and tests
                             (VECTOR_STORE_BACKEND=memory).

Both report Euclidean (L2) distances, so a retrieval threshold means the same
thing whichever backend is wired in main.py.
"""

from docrag.providers.vector_store.chromadb_provider import ChromaDBProvider
from docrag.providers.vector_store.memory_store import InMemoryVectorStore

__all__ = ["ChromaDBProvider", "InMemoryVectorStore"]
