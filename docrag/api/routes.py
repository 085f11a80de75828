"""FastAPI route definitions for the docrag API.

Services are resolved from ``app.state`` (populated by ``main.build_components``)
through ``Depends`` helpers and ``Annotated`` aliases.

    Endpoint                                   Method  Description
    ------------------------------------------------------------------------
    /api/v1/documents                          POST    Create + ingest (?wait=false -> 202)
    /api/v1/documents                          GET     List documents (?type= filter)
    /api/v1/documents/search                   GET     Title substring search (?title=)
    /api/v1/documents/{id}                     GET     One document
    /api/v1/documents/{id}                     PUT     Replace document, re-ingest
    /api/v1/documents/{id}                     DELETE  Delete document + chunks
    /api/v1/documents/{id}/chunks              GET     Stored chunks of a document
    /api/v1/chat/ask                           POST    Grounded answer to a question
    /api/v1/chat/similar                       GET     Nearest chunks, no threshold (?text=&limit=)
    /api/v1/health                             GET     Health + provider availability
    /api/v1/health/circuit-breaker             GET     Breaker snapshot
    /api/v1/health/circuit-breaker/reset       POST    Force breaker CLOSED
    /api/v1/health/system                      GET     Breaker, store counts, memory
"""

from __future__ import annotations

import resource
import sys
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Query, Request, Response, status

from docrag import __version__
from docrag.api.schemas import (
    ChatRequest,
    ChatResponse,
    CircuitBreakerResponse,
    DocumentChunksResponse,
    DocumentListResponse,
    DocumentRequest,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    SimilarChunk,
    SimilarChunksResponse,
    SourceChunk,
    SystemHealthResponse,
)
from docrag.models.resilience import CircuitState
from docrag.services.circuit_breaker import CircuitBreaker
from docrag.services.embedding_service import EmbeddingService
from docrag.services.ingestion.document_service import DocumentService
from docrag.services.qa_service import RagService
from docrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_rag_service(request: Request) -> RagService:
    return request.app.state.rag_service


def _get_circuit_breaker(request: Request) -> CircuitBreaker:
    return request.app.state.circuit_breaker


def _get_embedding_service(request: Request) -> EmbeddingService:
    return request.app.state.embedding_service


DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
RagServiceDep = Annotated[RagService, Depends(_get_rag_service)]
BreakerDep = Annotated[CircuitBreaker, Depends(_get_circuit_breaker)]
EmbeddingServiceDep = Annotated[EmbeddingService, Depends(_get_embedding_service)]


def _get_rss_mb() -> float:
    """Peak resident set size of this process in MB (macOS reports bytes, Linux KB)."""
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform == "darwin":
        return round(rss / (1024 * 1024), 2)
    return round(rss / 1024, 2)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create and ingest a document",
)
async def create_document(
    body: DocumentRequest,
    response: Response,
    documents: DocumentServiceDep,
    wait: bool = Query(default=True, description="Ingest before responding; false schedules it."),
) -> DocumentResponse:
    document = await documents.create_document(
        title=body.title,
        content=body.content,
        source_url=body.source_url,
        document_type=body.document_type,
        metadata=body.metadata,
        wait=wait,
    )
    if not wait:
        response.status_code = status.HTTP_202_ACCEPTED
    return DocumentResponse.from_document(document)


@router.get("/documents", response_model=DocumentListResponse, summary="List documents")
async def list_documents(
    documents: DocumentServiceDep,
    document_type: str | None = Query(default=None, alias="type"),
) -> DocumentListResponse:
    if document_type:
        found = await documents.find_documents_by_type(document_type)
    else:
        found = await documents.get_all_documents()
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d, include_content=False) for d in found],
        total=len(found),
    )


@router.get(
    "/documents/search",
    response_model=DocumentListResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Search documents by title",
)
async def search_documents(
    documents: DocumentServiceDep,
    title: str = Query(default=""),
) -> DocumentListResponse:
    found = await documents.search_documents_by_title(title)
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d, include_content=False) for d in found],
        total=len(found),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document",
)
async def get_document(document_id: str, documents: DocumentServiceDep) -> DocumentResponse:
    return DocumentResponse.from_document(await documents.get_document(document_id))


@router.get(
    "/documents/{document_id}/chunks",
    response_model=DocumentChunksResponse,
    responses={404: {"model": ErrorResponse}},
    summary="List the stored chunks of a document",
)
async def get_document_chunks(document_id: str, documents: DocumentServiceDep) -> DocumentChunksResponse:
    chunks = await documents.get_document_chunks(document_id)
    infos = [c.to_info() for c in chunks]
    return DocumentChunksResponse(
        document_id=document_id,
        chunks=infos,
        total=len(infos),
        degraded=sum(1 for i in infos if i.degraded),
    )


@router.put(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Replace a document and re-ingest it",
)
async def update_document(
    document_id: str,
    body: DocumentRequest,
    documents: DocumentServiceDep,
) -> DocumentResponse:
    document = await documents.update_document(
        document_id,
        title=body.title,
        content=body.content,
        source_url=body.source_url,
        document_type=body.document_type,
        metadata=body.metadata,
    )
    return DocumentResponse.from_document(document)


@router.delete(
    "/documents/{document_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document and its chunks",
)
async def delete_document(document_id: str, documents: DocumentServiceDep) -> Response:
    if not await documents.delete_document(document_id):
        return Response(
            status_code=status.HTTP_404_NOT_FOUND,
            content=ErrorResponse(
                error="DocumentNotFoundError",
                detail=f"Document not found with id: {document_id}",
            ).model_dump_json(),
            media_type="application/json",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat/ask",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Answer a question from the ingested documents",
)
async def ask(body: ChatRequest, rag: RagServiceDep) -> ChatResponse:
    result = await rag.ask(body.question, top_k=body.top_k, threshold=body.threshold)
    return ChatResponse(
        question=body.question,
        answer=result.answer,
        sources=[SourceChunk.from_retrieved(rc) for rc in result.sources],
    )


@router.get(
    "/chat/similar",
    response_model=SimilarChunksResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Nearest stored chunks to a text, no threshold",
)
async def similar_chunks(
    rag: RagServiceDep,
    text: str = Query(default="", max_length=4000),
    limit: int | None = Query(default=None, ge=1, le=50),
) -> SimilarChunksResponse:
    found = await rag.find_similar_chunks(text, limit=limit)
    return SimilarChunksResponse(
        text=text,
        chunks=[SimilarChunk.from_retrieved(rc) for rc in found],
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Application health check")
async def health_check(request: Request, breaker: BreakerDep) -> HealthResponse:
    providers: dict[str, Any] = {}
    for name in ("embedding_provider", "llm_provider", "vector_store"):
        provider = getattr(request.app.state, name, None)
        providers[name] = bool(provider is not None and provider.is_available())
    breaker_state = breaker.state
    providers["circuit_breaker"] = breaker_state.value

    if not all(providers[n] for n in ("embedding_provider", "llm_provider", "vector_store")):
        health = "unhealthy"
    elif breaker_state is not CircuitState.CLOSED:
        health = "degraded"
    else:
        health = "healthy"

    return HealthResponse(status=health, version=__version__, providers=providers)


@router.get(
    "/health/circuit-breaker",
    response_model=CircuitBreakerResponse,
    summary="Circuit breaker snapshot",
)
async def circuit_breaker_status(breaker: BreakerDep) -> CircuitBreakerResponse:
    return CircuitBreakerResponse(status=breaker.get_status())


@router.post(
    "/health/circuit-breaker/reset",
    response_model=CircuitBreakerResponse,
    summary="Force the circuit breaker closed",
)
async def reset_circuit_breaker(breaker: BreakerDep) -> CircuitBreakerResponse:
    breaker.reset()
    logger.warning("circuit_breaker_manual_reset")
    return CircuitBreakerResponse(
        status=breaker.get_status(),
        message="Circuit breaker reset successfully",
    )


@router.get("/health/system", response_model=SystemHealthResponse, summary="System health")
async def system_health(
    request: Request,
    breaker: BreakerDep,
    embeddings: EmbeddingServiceDep,
    documents: DocumentServiceDep,
) -> SystemHealthResponse:
    snapshot = breaker.get_status()
    return SystemHealthResponse(
        status="UP" if snapshot.state is CircuitState.CLOSED else "DEGRADED",
        circuit_breaker=snapshot,
        documents=await request.app.state.document_store.count(),
        chunks=await request.app.state.vector_store.count(),
        embeddings_degraded=embeddings.degraded_count,
        pending_ingestions=documents.pending_ingestions,
        memory_rss_mb=_get_rss_mb(),
    )
