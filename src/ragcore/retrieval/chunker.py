"""
Boundary-aware text chunking.

Splits source text into overlapping chunks while preferring natural
breaks supplied by the caller:
    - break_end_chars: a chunk may stretch up to ``check`` characters past
      its target size to end right after one of these characters
    - break_start_chars: the next chunk may start up to ``check`` characters
      early when one of these characters is found
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ragcore.config import settings
from ragcore.errors import InvalidInputError
from ragcore.retrieval.models import DOCUMENT_PATH_NONE, Chunk, MemChunk

logger = logging.getLogger(__name__)

MIN_OVERLAP = 0.01
MAX_OVERLAP = 0.99

ParserFunction = Callable[[str, Any], list[Chunk]]


@dataclass
class TextSplitter:
    """
    Split plain text into overlapping MemChunks.

    Example:
        >>> splitter = TextSplitter(chunk_size=80, overlap=0.25,
        ...                         break_start_chars="<{", break_end_chars=">}")
        >>> chunks = splitter.split("/doc", text)
    """

    chunk_size: int = 0
    """Target chunk length in characters; <= 0 applies settings.chunk_size."""

    overlap: float | None = None
    """Fraction of a chunk repeated in the next one; None applies settings.chunk_overlap."""

    break_start_chars: Iterable[str] = field(default_factory=frozenset)
    break_end_chars: Iterable[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if self.chunk_size <= 0:
            self.chunk_size = settings.chunk_size
        if self.overlap is None:
            self.overlap = settings.chunk_overlap
        self.overlap = min(max(self.overlap, MIN_OVERLAP), MAX_OVERLAP)
        self.break_start_chars = frozenset(self.break_start_chars)
        self.break_end_chars = frozenset(self.break_end_chars)

    @property
    def step(self) -> int:
        """Cursor advance between consecutive chunks."""
        return max(int((1 - self.overlap) * self.chunk_size), 1)

    @property
    def check(self) -> int:
        """How far a boundary may drift while looking for a break character."""
        return int(min(self.step * 0.5, self.overlap * self.chunk_size))

    def get_parser(self) -> ParserFunction:
        """Return the parser used by Rag.indexing."""
        return self._parse

    def _parse(self, path: str, payload: Any) -> list[Chunk]:
        if not isinstance(payload, str):
            raise InvalidInputError(
                f"Payload must be str, got {type(payload).__name__}"
            )
        return self.split(path, payload)

    def split(self, path: str, text: str) -> list[Chunk]:
        """
        Split text into overlapping chunks.

        Args:
            path: Logical document path stored on every chunk
            text: Source text

        Returns:
            Chunks ordered by index, covering the whole text

        Raises:
            InvalidInputError: If path is empty or text is not a string
        """
        if path == DOCUMENT_PATH_NONE:
            raise InvalidInputError("Document path is empty")
        if not isinstance(text, str):
            raise InvalidInputError(f"Payload must be str, got {type(text).__name__}")

        size = self.chunk_size
        step = self.step
        check = self.check
        n = len(text)

        chunks: list[Chunk] = []
        i = 0
        while i < n:
            j = min(i + size, n)
            if self.break_end_chars:
                found = self._find_end(text, i, size, check)
                if found is not None:
                    j = found

            content = text[i:j]
            chunks.append(
                MemChunk(
                    index=len(chunks),
                    path=path,
                    query=content,
                    content=content,
                    byte_start=i,
                    byte_end=j,
                )
            )

            nexti = i + step
            if self.break_start_chars:
                found = self._find_start(text, i, step, check)
                if found is not None:
                    nexti = found
            i = nexti

        logger.debug(f"Split {path} ({n} chars) into {len(chunks)} chunks")
        return chunks

    def _find_end(self, text: str, i: int, size: int, check: int) -> int | None:
        """Last position in [i+size, i+size+check] right after a break-end char."""
        for p in range(min(i + size + check, len(text)), i + size - 1, -1):
            if text[p - 1] in self.break_end_chars:
                return p
        return None

    def _find_start(self, text: str, i: int, step: int, check: int) -> int | None:
        """First position in [i+step-check, i+step] holding a break-start char."""
        for p in range(max(i + step - check, i + 1), min(i + step, len(text) - 1) + 1):
            if text[p] in self.break_start_chars:
                return p
        return None
