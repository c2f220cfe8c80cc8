"""Recursive character chunking with overlapping windows.

Splits extracted source text into overlapping, size-bounded chunks along
the most semantic boundary available.

The strategy has two phases:

1. **Segment** -- Split the text on the highest-priority separator it
   contains (paragraph, line, sentence end, clause punctuation, word,
   character).  Separators stay attached to the end of the piece they
   close.  Any piece still longer than ``chunk_size`` is split again with
   the remaining, finer separators.  The pieces concatenate back to the
   input exactly.

2. **Merge** -- Walk the pieces greedily.  Each chunk ends on the furthest
   piece boundary within ``chunk_size`` characters of its start.  The next
   chunk starts ``overlap`` characters before that end, nudged forward to
   the next word start, so consecutive chunks share a run of text that is
   a suffix of one and a prefix of the other.

Chunks are exact substrings of the input: dropping each chunk's overlap
prefix and concatenating reconstructs the text character for character.
"""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass

import structlog

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", ";", ",", " ", "")

_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass(frozen=True)
class ChunkSpan:
    """A chunk as a ``[start, end)`` slice of the chunked text."""

    start: int
    end: int
    text: str

    def __len__(self) -> int:
        return self.end - self.start


class TextChunker:
    """Splits text into overlapping chunks at the most semantic boundary available.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    overlap:
        Maximum characters shared by consecutive chunks (default 200).
        Must be smaller than *chunk_size*.
    min_length:
        Inputs shorter than this are returned as a single chunk untouched.
    separators:
        Boundary strings in priority order.  An empty string as the last
        entry allows splitting between any two characters.
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        overlap: int = 200,
        min_length: int = 50,
        separators: tuple[str, ...] | list[str] = DEFAULT_SEPARATORS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= overlap < chunk_size:
            raise ValueError(
                f"overlap must be in [0, chunk_size), got {overlap} for chunk_size {chunk_size}"
            )
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._min_length = min_length
        self._separators = tuple(separators)

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def min_length(self) -> int:
        return self._min_length

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str) -> list[str]:
        """Return the chunk strings for *text*, in order."""
        return [span.text for span in self.split_spans(text)]

    def split_spans(self, text: str) -> list[ChunkSpan]:
        """Return the chunks of *text* with their offsets.

        Empty input yields no chunks; input shorter than ``min_length`` or
        no longer than ``chunk_size`` yields exactly one.
        """
        if not text:
            return []
        n = len(text)
        if n < self._min_length or n <= self._chunk_size:
            return [ChunkSpan(0, n, text)]

        boundaries = self._piece_boundaries(text)
        spans: list[ChunkSpan] = []
        start = 0
        while True:
            end = self._furthest_boundary(boundaries, start)
            spans.append(ChunkSpan(start, end, text[start:end]))
            if end >= n:
                break
            # The piece after ``end`` must fit in the next chunk together
            # with whatever overlap is kept; shrink the overlap if not.
            next_piece_end = boundaries[bisect_right(boundaries, end)]
            window_start = max(end - self._overlap, next_piece_end - self._chunk_size, start)
            start = self._word_start(text, window_start, end)

        logger.debug(
            "text_chunked",
            text_length=n,
            chunks=len(spans),
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return spans

    # ------------------------------------------------------------------
    # Segmentation
    # ------------------------------------------------------------------

    def _piece_boundaries(self, text: str) -> list[int]:
        """Cumulative end offsets of the atomic pieces of *text*."""
        boundaries: list[int] = []
        offset = 0
        for piece in self._segment(text, self._separators):
            offset += len(piece)
            boundaries.append(offset)
        return boundaries

    def _segment(self, text: str, separators: tuple[str, ...]) -> list[str]:
        """Recursively split *text* into pieces no longer than ``chunk_size``."""
        for i, separator in enumerate(separators):
            if separator == "" or separator in text:
                remaining = separators[i + 1 :]
                break
        else:
            # No separator applies: hard cut at chunk_size.
            size = self._chunk_size
            return [text[i : i + size] for i in range(0, len(text), size)]

        if separator == "":
            pieces = list(text)
        else:
            parts = text.split(separator)
            pieces = [part + separator for part in parts[:-1]] + [parts[-1]]

        result: list[str] = []
        for piece in pieces:
            if not piece:
                continue
            if len(piece) <= self._chunk_size:
                result.append(piece)
            else:
                result.extend(self._segment(piece, remaining))
        return result

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def _furthest_boundary(self, boundaries: list[int], start: int) -> int:
        """Furthest piece boundary in ``(start, start + chunk_size]``."""
        limit = start + self._chunk_size
        idx = bisect_right(boundaries, limit) - 1
        end = boundaries[idx] if idx >= 0 else 0
        if end <= start:
            # Unreachable while every piece fits in chunk_size; hard cut.
            end = min(limit, boundaries[-1])
        return end

    @staticmethod
    def _word_start(text: str, pos: int, limit: int) -> int:
        """First word start in ``[pos, limit)``, or *pos* if there is none."""
        if pos <= 0 or text[pos - 1].isspace():
            return pos
        match = _WHITESPACE_RUN.search(text, pos, limit)
        if match and match.end() < limit:
            return match.end()
        return pos
