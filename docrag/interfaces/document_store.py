"""Abstract base class for the relational document store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.document import Document


# Concrete implementation: SQLiteDocumentStore (docrag/providers/document_store/)
class IDocumentStore(ABC):
    """Contract for persisting :class:`Document` records.

    Chunks are not stored here; they live in the vector store and are
    cascade-deleted by the document service.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist yet."""

    @abstractmethod
    async def save(self, document: Document) -> Document:
        """Insert or replace *document* (keyed by ``id``) and return it."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def find_by_source_url(self, source_url: str) -> Document | None:
        """Return the document ingested from *source_url*, or ``None``."""

    @abstractmethod
    async def search_by_title(self, fragment: str) -> list[Document]:
        """Return documents whose title contains *fragment*, case-insensitively."""

    @abstractmethod
    async def find_by_type(self, document_type: str) -> list[Document]:
        """Return documents with the given type tag."""

    @abstractmethod
    async def list_all(self) -> list[Document]:
        """Return every document, newest first."""

    @abstractmethod
    async def exists(self, document_id: str) -> bool: ...

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete the document; return ``False`` if it did not exist."""

    @abstractmethod
    async def count(self) -> int: ...
