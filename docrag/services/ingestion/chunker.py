"""Character-window text chunking with overlap and word-boundary snapping.

Each chunk covers ``[start, start + chunk_size)`` clipped to the text.  When
that window ends inside the text, its end is pushed forward to the next
whitespace character, but only if that whitespace is fewer than
``boundary_slack`` characters away, so no chunk grows unboundedly.  The next
chunk starts ``overlap`` characters before the previous end.

Consecutive spans therefore overlap and together cover the whole input:
``spans[0].start == 0``, ``spans[-1].end == len(text)`` and
``spans[i + 1].start <= spans[i].end`` for every neighbour pair.
"""

from __future__ import annotations

import structlog

from docrag.models.document import TextSpan
from docrag.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into overlapping, word-boundary-respecting spans.

    Parameters
    ----------
    chunk_size:
        Target chunk length in characters (default 1000).
    overlap:
        Characters shared by consecutive chunks (default 200).  Must be
        smaller than *chunk_size*.
    boundary_slack:
        Maximum distance the end of a chunk may move forward to reach
        whitespace (default 50).

    Raises
    ------
    ValidationError
        If ``chunk_size <= 0``, ``overlap < 0`` or ``overlap >= chunk_size``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200, boundary_slack: int = 50) -> None:
        if chunk_size <= 0:
            raise ValidationError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValidationError(f"overlap must not be negative, got {overlap}")
        if overlap >= chunk_size:
            raise ValidationError(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        if boundary_slack < 0:
            raise ValidationError(f"boundary_slack must not be negative, got {boundary_slack}")
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._boundary_slack = boundary_slack

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str) -> list[TextSpan]:
        """Split *text* into ordered :class:`TextSpan` objects.

        Empty or whitespace-only input yields no spans; input no longer
        than ``chunk_size`` yields exactly one span equal to the whole text.
        """
        if not text or text.isspace():
            return []

        length = len(text)
        spans: list[TextSpan] = []
        start = 0
        while start < length:
            end = min(start + self._chunk_size, length)
            if end < length:
                end = self._snap_to_whitespace(text, end)

            spans.append(TextSpan(index=len(spans), start=start, end=end, text=text[start:end]))

            if end >= length:
                break
            # end >= start + chunk_size here, so the cursor always advances.
            start = end - self._overlap

        logger.debug(
            "chunking_complete",
            num_chunks=len(spans),
            text_length=length,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return spans

    def split(self, text: str) -> list[str]:
        """Return just the chunk strings of :meth:`chunk`."""
        return [span.text for span in self.chunk(text)]

    # ------------------------------------------------------------------
    # Boundary handling
    # ------------------------------------------------------------------

    def _snap_to_whitespace(self, text: str, end: int) -> int:
        limit = min(end + self._boundary_slack, len(text))
        for i in range(end, limit):
            if text[i].isspace():
                return i
        return end
