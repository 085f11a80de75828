"""Embedding provider implementations.

OpenAIEmbeddingProvider talks to the OpenAI embeddings endpoint (or any
OpenAI-compatible one via OPENAI_BASE_URL).
"""

from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
