"""SQLite-backed document store.

Persists :class:`Document` records to ``data/documents.db`` using
``aiosqlite``.  Each call opens its own connection, so the store is safe
to share across concurrent ingestions without a connection pool.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import aiosqlite
import structlog

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import Document
from docrag.utils.errors import DocumentStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    id             TEXT PRIMARY KEY,
    title          TEXT NOT NULL,
    content        TEXT NOT NULL,
    source_url     TEXT,
    document_type  TEXT,
    metadata       TEXT NOT NULL DEFAULT '{}',
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_source_url ON documents(source_url);",
    "CREATE INDEX IF NOT EXISTS idx_documents_type ON documents(document_type);",
]

_UPSERT_SQL = """\
INSERT INTO documents (id, title, content, source_url, document_type, metadata, created_at, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id)
DO UPDATE SET title         = excluded.title,
              content       = excluded.content,
              source_url    = excluded.source_url,
              document_type = excluded.document_type,
              metadata      = excluded.metadata,
              updated_at    = excluded.updated_at;
"""

_SELECT_COLUMNS = (
    "SELECT id, title, content, source_url, document_type, metadata, created_at, updated_at "
    "FROM documents"
)


def _escape_like(fragment: str) -> str:
    return fragment.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                for idx_sql in _CREATE_INDICES_SQL:
                    await db.execute(idx_sql)
                await db.commit()
        except aiosqlite.Error as exc:
            raise DocumentStoreError(
                message=f"Failed to initialise document store: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("document_db_initialized", path=str(self._db_path))

    async def save(self, document: Document) -> Document:
        row = (
            document.id,
            document.title,
            document.content,
            document.source_url,
            document.document_type,
            json.dumps(document.metadata),
            document.created_at.isoformat(),
            document.updated_at.isoformat(),
        )
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, row)
                await db.commit()
        except aiosqlite.Error as exc:
            raise DocumentStoreError(
                message=f"Failed to save document {document.id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return document

    async def get(self, document_id: str) -> Document | None:
        rows = await self._fetch(f"{_SELECT_COLUMNS} WHERE id = ?", (document_id,))
        return rows[0] if rows else None

    async def find_by_source_url(self, source_url: str) -> Document | None:
        rows = await self._fetch(
            f"{_SELECT_COLUMNS} WHERE source_url = ? ORDER BY created_at ASC LIMIT 1",
            (source_url,),
        )
        return rows[0] if rows else None

    async def search_by_title(self, fragment: str) -> list[Document]:
        pattern = f"%{_escape_like(fragment.lower())}%"
        return await self._fetch(
            f"{_SELECT_COLUMNS} WHERE LOWER(title) LIKE ? ESCAPE '\\' ORDER BY created_at DESC",
            (pattern,),
        )

    async def find_by_type(self, document_type: str) -> list[Document]:
        return await self._fetch(
            f"{_SELECT_COLUMNS} WHERE document_type = ? ORDER BY created_at DESC",
            (document_type,),
        )

    async def list_all(self) -> list[Document]:
        return await self._fetch(f"{_SELECT_COLUMNS} ORDER BY created_at DESC")

    async def exists(self, document_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("SELECT 1 FROM documents WHERE id = ?", (document_id,))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise DocumentStoreError(
                message=f"Failed to check document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return row is not None

    async def delete(self, document_id: str) -> bool:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("DELETE FROM documents WHERE id = ?", (document_id,))
                await db.commit()
                deleted = cursor.rowcount
        except aiosqlite.Error as exc:
            raise DocumentStoreError(
                message=f"Failed to delete document {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return deleted > 0

    async def count(self) -> int:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute("SELECT COUNT(*) FROM documents")
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise DocumentStoreError(
                message=f"Failed to count documents: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return int(row[0]) if row else 0

    def get_provider_name(self) -> str:
        return "sqlite_documents"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _fetch(self, sql: str, params: tuple = ()) -> list[Document]:
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                db.row_factory = aiosqlite.Row
                cursor = await db.execute(sql, params)
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise DocumentStoreError(
                message=f"Document query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return [self._row_to_document(r) for r in rows]

    @staticmethod
    def _row_to_document(row: aiosqlite.Row) -> Document:
        r = dict(row)
        return Document(
            id=r["id"],
            title=r["title"],
            content=r["content"],
            source_url=r["source_url"],
            document_type=r["document_type"],
            metadata=json.loads(r["metadata"] or "{}"),
            created_at=datetime.fromisoformat(r["created_at"]),
            updated_at=datetime.fromisoformat(r["updated_at"]),
        )
