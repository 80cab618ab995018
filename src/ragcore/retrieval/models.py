"""
Data model shared by the splitter, embedding pipeline and vector store.

Chunk is a structural protocol so the store can hold any chunk
representation exposing the same attributes; MemChunk is the concrete
in-memory implementation produced by TextSplitter.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

Embedding = list[float]
"""Ordered float64 vector; its length is defined by the embedding model."""

DOCUMENT_PATH_NONE = ""
"""Sentinel path: reserved for indexing, means "every path" when searching."""


@runtime_checkable
class Chunk(Protocol):
    """Capability set every stored chunk must expose."""

    index: int
    path: str
    query: str
    content: str
    byte_start: int
    byte_end: int
    payload: Any
    embedding: Embedding


@dataclass
class MemChunk:
    """A contiguous span of source text plus its computed embedding."""

    index: int
    """Position within its document, zero-based."""

    path: str
    """Logical document identifier."""

    query: str
    """Text sent to the embedding model (may differ from content)."""

    content: str
    """The span's text."""

    byte_start: int
    """Start offset into the source, in characters."""

    byte_end: int
    """End offset into the source, in characters (exclusive)."""

    payload: Any = None
    """Opaque caller metadata, carried through unchanged."""

    embedding: Embedding = field(default_factory=list)


@dataclass(frozen=True)
class Document:
    """Immutable snapshot of the chunks stored under one path."""

    path: str
    payload: Any
    chunks: tuple[Chunk, ...] = ()

    def __len__(self) -> int:
        return len(self.chunks)


@dataclass
class ScoredChunk:
    """A chunk paired with its cosine similarity to a query."""

    chunk: Chunk
    score: float


ScoredChunks = list[ScoredChunk]
"""Ranked results for one query, ordered by descending score."""


def format_embedding(embedding: Embedding, precision: int = 2) -> str:
    """
    Render an embedding for logs and debugging.

    Example:
        >>> format_embedding([0.5234, 0.1811], precision=2)
        '[0.52, 0.18, ]'
    """
    parts = "".join(f"{value:.{precision}f}, " for value in embedding)
    return f"[{parts}]"
