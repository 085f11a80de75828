"""Standalone CLI for ingesting documents and asking questions.

Usage::

    python -m docrag.cli ingest --file notes.txt --title "Team notes" [--source-url URL]
    python -m docrag.cli ask "What did the team decide?" [--top-k 5 --threshold 0.5]
    python -m docrag.cli list
    python -m docrag.cli show DOCUMENT_ID
    python -m docrag.cli similar "release schedule" [--limit 5]
    python -m docrag.cli delete DOCUMENT_ID
    python -m docrag.cli breaker

Every command builds the same component graph the API server uses
(``docrag.main.build_components``), so stores and models match.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from docrag.config.settings import Settings


async def _handle_ingest(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest a plain-text file as one document."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    content = path.read_text(encoding="utf-8")
    print(f"Ingesting: {args.title}")
    print(f"  File: {path} ({len(content)} characters)")

    document = await components["document_service"].create_document(
        title=args.title,
        content=content,
        source_url=args.source_url,
        document_type=args.type,
    )
    chunks = await components["document_service"].get_document_chunks(document.id)
    degraded = sum(1 for c in chunks if c.is_degraded())

    print("\nIngestion complete:")
    print(f"  Document ID:     {document.id}")
    print(f"  Chunks stored:   {len(chunks)}")
    print(f"  Degraded chunks: {degraded}")
    return 0


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    result = await components["rag_service"].ask(
        args.question, top_k=args.top_k, threshold=args.threshold
    )
    print(result.answer)
    if result.sources:
        print("\nSources:")
        for rc in result.sources:
            print(
                f"  {rc.chunk.document_title} (ID: {rc.chunk.document_id}) "
                f"chunk {rc.chunk.chunk_index}, distance {rc.distance:.3f}"
            )
    return 0


async def _handle_list(components: dict[str, Any]) -> int:
    documents = await components["document_service"].get_all_documents()
    if not documents:
        print("No documents stored.")
        return 0
    for document in documents:
        info = document.to_info()
        recent = " (recent)" if info.is_recent() else ""
        print(f"{info.id}  {info.title}  [{info.document_type}, {info.content_length} chars]{recent}")
    print(f"\n{len(documents)} document(s)")
    return 0


async def _handle_show(args: argparse.Namespace, components: dict[str, Any]) -> int:
    document = await components["document_service"].get_document(args.document_id)
    print(document.summary())
    return 0


async def _handle_similar(args: argparse.Namespace, components: dict[str, Any]) -> int:
    found = await components["rag_service"].find_similar_chunks(args.text, limit=args.limit)
    if not found:
        print("No chunks stored.")
        return 0
    for rc in found:
        preview = rc.chunk.content[:80].replace("\n", " ")
        print(f"{rc.distance:.3f}  {rc.chunk.document_title} #{rc.chunk.chunk_index}  {preview}")
    return 0


async def _handle_delete(args: argparse.Namespace, components: dict[str, Any]) -> int:
    if await components["document_service"].delete_document(args.document_id):
        print(f"Deleted document {args.document_id}")
        return 0
    print(f"Document not found: {args.document_id}", file=sys.stderr)
    return 1


def _handle_breaker(components: dict[str, Any], app_settings: Settings) -> int:
    """Print breaker thresholds and this process's breaker snapshot."""
    status = components["circuit_breaker"].get_status()
    print("Circuit Breaker")
    print("=" * 40)
    print(f"  State:             {status.state.value}")
    print(f"  Failures:          {status.failure_count}/{app_settings.breaker_failure_threshold}")
    print(f"  Half-open success: {status.success_count}/{app_settings.breaker_success_threshold}")
    print(f"  Open timeout:      {app_settings.breaker_open_timeout:.0f}s")
    print(
        f"  Rate cap:          {app_settings.breaker_max_requests_per_window}"
        f" per {app_settings.breaker_rate_window:.0f}s"
    )
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from docrag.main import build_components, shutdown_components

    components = build_components(app_settings)
    await components["document_store"].initialize()
    try:
        if args.command == "ingest":
            return await _handle_ingest(args, components)
        if args.command == "ask":
            return await _handle_ask(args, components)
        if args.command == "list":
            return await _handle_list(components)
        if args.command == "show":
            return await _handle_show(args, components)
        if args.command == "similar":
            return await _handle_similar(args, components)
        if args.command == "delete":
            return await _handle_delete(args, components)
        return _handle_breaker(components, app_settings)
    finally:
        await shutdown_components(components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m docrag.cli",
        description="Ingest documents and ask grounded questions.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a plain-text file")
    ingest_parser.add_argument("--file", required=True, help="Path to the text file")
    ingest_parser.add_argument("--title", required=True, help="Document title")
    ingest_parser.add_argument("--source-url", dest="source_url", default=None, help="Source locator")
    ingest_parser.add_argument("--type", default=None, help="Document type tag")

    ask_parser = subparsers.add_parser("ask", help="Ask a question")
    ask_parser.add_argument("question", help="The question text")
    ask_parser.add_argument("--top-k", dest="top_k", type=int, default=None)
    ask_parser.add_argument(
        "--threshold", type=float, default=None, help="Maximum Euclidean distance"
    )

    subparsers.add_parser("list", help="List stored documents")

    show_parser = subparsers.add_parser("show", help="Print a summary of one document")
    show_parser.add_argument("document_id")

    similar_parser = subparsers.add_parser("similar", help="Nearest stored chunks to a text")
    similar_parser.add_argument("text", help="Text to match")
    similar_parser.add_argument("--limit", type=int, default=None)

    delete_parser = subparsers.add_parser("delete", help="Delete a document and its chunks")
    delete_parser.add_argument("document_id")

    subparsers.add_parser("breaker", help="Show circuit breaker configuration and state")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    from docrag.utils.errors import DocRagError
    from docrag.utils.logging import configure_logging

    app_settings = Settings()
    configure_logging(app_settings.log_level)

    try:
        return asyncio.run(_run(args, app_settings))
    except DocRagError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
