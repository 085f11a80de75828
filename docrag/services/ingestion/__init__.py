"""Document ingestion pipeline: **chunk -> embed -> store**, guarded.

1. **Chunk** (chunker.py / TextChunker) -- overlapping character windows
   snapped forward to whitespace.

2. **Embed** (via EmbeddingService) -- batched, retried, and degraded to
   zero vectors when the provider keeps failing.

3. **Store** (streaming_processor.py / StreamingDocumentProcessor) -- the
   direct, streaming, single-chunk and fallback storage paths.

DocumentService (document_service.py) is the orchestrator: it chooses the
path, runs it through the circuit breaker, and owns document CRUD.
"""

from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.document_service import DocumentService
from docrag.services.ingestion.streaming_processor import StreamingDocumentProcessor

__all__ = [
    "DocumentService",
    "StreamingDocumentProcessor",
    "TextChunker",
]
