"""Retrieval-augmented answering over the ingested chunks.

Data flow for one question:

  1. VALIDATE -- blank questions are rejected before any provider call.
  2. EMBED    -- the question goes through the embedding gateway.
  3. RETRIEVE -- the vector store returns at most ``top_k`` chunks whose
                 L2 distance to the question is below ``threshold``,
                 closest first.
  4. DECIDE   -- no qualifying chunk means the fixed "not enough
                 information" reply; the LLM is not called.
  5. GENERATE -- the chunks become an attributed context block and the
                 LLM answers from it alone.

Unlike ingestion there is no degrade path: provider errors in steps 2, 3
and 5 propagate to the caller.
"""

from __future__ import annotations

import structlog

from docrag.config.settings import Settings
from docrag.interfaces.llm_provider import ILLMProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import RetrievedChunk
from docrag.services.embedding_service import EmbeddingService
from docrag.utils.errors import ValidationError
from docrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NO_CONTEXT_ANSWER = (
    "I don't have enough information in my knowledge base to answer this question."
)

SYSTEM_PROMPT = (
    "You are a helpful assistant that answers questions based on the provided context.\n"
    "If the answer is not in the context, say so.\n"
    "Always cite the source of your information from the context."
)

USER_PROMPT_TEMPLATE = (
    "Context information is below.\n"
    "---------------------\n"
    "{context}\n"
    "---------------------\n"
    "\n"
    "Given the context information and not prior knowledge, answer the question: {question}"
)


class QAResult:
    """An answer plus the chunks it was grounded on.

    ``sources`` is empty when no chunk passed the threshold, in which case
    ``answer`` is :data:`NO_CONTEXT_ANSWER`.
    """

    def __init__(self, answer: str, sources: list[RetrievedChunk]) -> None:
        self._answer = answer
        self._sources = sources

    @property
    def answer(self) -> str:
        return self._answer

    @property
    def sources(self) -> list[RetrievedChunk]:
        return self._sources

    @property
    def grounded(self) -> bool:
        return bool(self._sources)


class RagService:
    """Answers questions from the chunks most similar to them."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
        top_k: int = 3,
        similarity_threshold: float = 0.7,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> None:
        self._embedding = embedding_service
        self._vector_store = vector_store
        self._llm = llm
        self._top_k = top_k
        self._threshold = similarity_threshold
        self._temperature = temperature
        self._max_tokens = max_tokens

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        embedding_service: EmbeddingService,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
    ) -> RagService:
        return cls(
            embedding_service,
            vector_store,
            llm,
            top_k=settings.rag_top_k,
            similarity_threshold=settings.rag_similarity_threshold,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def answer(
        self,
        question: str | None,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> str:
        """Return a grounded answer to *question*.

        *top_k* and *threshold* override the configured defaults for this
        call only.  *threshold* is a maximum Euclidean distance.

        Raises
        ------
        ValidationError
            If *question* is blank or the overrides are out of range.
        """
        result = await self.ask(question, top_k=top_k, threshold=threshold)
        return result.answer

    async def ask(
        self,
        question: str | None,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> QAResult:
        """Like :meth:`answer` but also returns the supporting chunks."""
        if question is None or not question.strip():
            raise ValidationError("Question must not be blank")
        k = self._top_k if top_k is None else top_k
        max_distance = self._threshold if threshold is None else threshold
        if k <= 0:
            raise ValidationError(f"top_k must be positive, got {k}")
        if max_distance < 0:
            raise ValidationError(f"threshold must not be negative, got {max_distance}")

        query_vector = await self._embedding.embed(question)
        retrieved = await self._vector_store.search(query_vector, max_distance, k)

        if not retrieved:
            logger.info("qa_no_relevant_chunks", top_k=k, threshold=max_distance)
            return QAResult(NO_CONTEXT_ANSWER, [])

        context = self.build_context(retrieved)
        reply = await self._llm.complete(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=USER_PROMPT_TEMPLATE.format(context=context, question=question),
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        logger.info(
            "qa_answered",
            chunks_used=len(retrieved),
            closest_distance=round(retrieved[0].distance, 4),
            answer_length=len(reply),
        )
        return QAResult(reply, retrieved)

    async def find_similar_chunks(self, text: str, limit: int | None = None) -> list[RetrievedChunk]:
        """Nearest chunks to *text* with no distance threshold."""
        if not text or not text.strip():
            raise ValidationError("Search text must not be blank")
        k = self._top_k if limit is None else limit
        query_vector = await self._embedding.embed(text)
        return await self._vector_store.search(query_vector, None, k)

    # ------------------------------------------------------------------
    # Prompt assembly
    # ------------------------------------------------------------------

    @staticmethod
    def build_context(chunks: list[RetrievedChunk]) -> str:
        """One attributed block per chunk, in the given order, blank-line separated."""
        return "\n\n".join(
            f"Document: {rc.chunk.document_title} (ID: {rc.chunk.document_id})\n{rc.chunk.content}"
            for rc in chunks
        )
