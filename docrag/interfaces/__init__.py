"""Abstract interfaces for docrag's external collaborators.

Each interface is an ABC; concrete adapters live under
``docrag/providers/``.  Services depend only on these contracts, so tests
swap in fakes and deployments swap backends without touching services.
"""

from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
