"""
In-memory vector store with partitioned cosine-similarity search.

Chunks are grouped by logical path into an append log of Document
snapshots. Search scores every (query block, candidate block) pair on a
thread pool, keeps a bounded top-k heap per query and merges the partial
results into one ranked list per query.
"""

import heapq
import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional, Protocol

import numpy as np
from numpy.typing import NDArray

from ragcore.config import settings
from ragcore.errors import InvalidInputError, NotFoundError
from ragcore.retrieval.models import (
    DOCUMENT_PATH_NONE,
    Chunk,
    Document,
    Embedding,
    ScoredChunk,
    ScoredChunks,
)

logger = logging.getLogger(__name__)

# (score, absolute candidate index)
_Candidate = tuple[float, int]


class Database(Protocol):
    """Storage capability used by Rag."""

    def append_chunks(self, path: str, payload: Any, chunks: Sequence[Chunk]) -> None: ...

    def save_chunks(self, path: str, payload: Any, chunks: Sequence[Chunk]) -> None: ...

    def get_documents(self, path: str) -> list[Document]: ...

    def search_chunks(
        self, path: str, embeddings: Sequence[Embedding], topk: int
    ) -> list[ScoredChunks]: ...


def norms(embeddings: NDArray[np.float64]) -> NDArray[np.float64]:
    """Euclidean norm of every row."""
    if embeddings.size == 0:
        return np.zeros(len(embeddings), dtype=np.float64)
    return np.linalg.norm(embeddings, axis=1)


def cosine_topk(
    queries: NDArray[np.float64],
    candidates: NDArray[np.float64],
    query_norms: NDArray[np.float64],
    candidate_norms: NDArray[np.float64],
    candidate_offset: int,
    topk: int,
) -> list[list[_Candidate]]:
    """
    Score one partition and keep the best ``topk`` candidates per query.

    Zero-norm vectors score 0.0 against everything. Among equal scores
    the candidate seen first is kept.

    Args:
        queries: Query block of shape (q, dim)
        candidates: Candidate block of shape (d, dim)
        query_norms: Norms of the query block
        candidate_norms: Norms of the candidate block
        candidate_offset: Absolute index of the first candidate in the block
        topk: Heap capacity

    Returns:
        Per query, (score, absolute index) pairs in ascending score order
    """
    dots = queries @ candidates.T
    denom = np.outer(query_norms, candidate_norms)
    scores = np.divide(dots, denom, out=np.zeros_like(dots), where=denom > 0)

    results: list[list[_Candidate]] = []
    for row in scores.tolist():
        # Keyed on (score, -offset) so ties evict the later candidate first
        heap: list[tuple[float, int]] = []
        for offset, score in enumerate(row):
            if len(heap) < topk:
                heapq.heappush(heap, (score, -offset))
            elif score > heap[0][0]:
                heapq.heapreplace(heap, (score, -offset))

        drained: list[_Candidate] = []
        while heap:
            score, neg_offset = heapq.heappop(heap)
            drained.append((score, candidate_offset - neg_offset))
        results.append(drained)
    return results


def merge_topk(partials: list[_Candidate], topk: int) -> list[_Candidate]:
    """Global top-k by descending score, ties by ascending index."""
    return heapq.nsmallest(topk, partials, key=lambda item: (-item[0], item[1]))


class MemoryDatabase:
    """
    Path-keyed append log of chunk snapshots.

    Snapshots are immutable at the Document level only: chunks are stored
    by reference, so mutating a chunk returned by a lookup changes what
    later searches see.

    Example:
        >>> db = MemoryDatabase()
        >>> db.append_chunks("/doc", payload, chunks)
        >>> results = db.search_chunks("/doc", [query_embedding], topk=3)
    """

    def __init__(
        self,
        query_block: Optional[int] = None,
        candidate_block: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> None:
        """
        Initialize an empty store.

        Args:
            query_block: Queries per search partition (default from settings)
            candidate_block: Stored chunks per search partition (default from settings)
            workers: Search threads (default from settings)
        """
        self.query_block = query_block or settings.search_query_block
        self.candidate_block = candidate_block or settings.search_candidate_block
        self.workers = workers or settings.search_workers
        self._lock = threading.RLock()
        self._documents: dict[str, list[Document]] = {}

    @property
    def size(self) -> int:
        """Number of stored chunks across all paths."""
        with self._lock:
            return sum(len(doc) for docs in self._documents.values() for doc in docs)

    def append_chunks(self, path: str, payload: Any, chunks: Sequence[Chunk]) -> None:
        """
        Add a new snapshot under path, keeping previous ones.

        Raises:
            InvalidInputError: If path is the "no path" sentinel
        """
        self._check_path(path)
        with self._lock:
            if path not in self._documents:
                self.save_chunks(path, payload, chunks)
                return
            doc = Document(path=path, payload=payload, chunks=tuple(chunks))
            self._documents[path] = [*self._documents[path], doc]
        logger.debug(f"Appended {len(chunks)} chunks to {path}")

    def save_chunks(self, path: str, payload: Any, chunks: Sequence[Chunk]) -> None:
        """
        Replace every snapshot under path with a single one.

        Raises:
            InvalidInputError: If path is the "no path" sentinel
        """
        self._check_path(path)
        doc = Document(path=path, payload=payload, chunks=tuple(chunks))
        with self._lock:
            self._documents[path] = [doc]
        logger.debug(f"Saved {len(chunks)} chunks to {path}")

    def get_documents(self, path: str) -> list[Document]:
        """Snapshots stored under path, oldest first."""
        with self._lock:
            if path not in self._documents:
                raise NotFoundError(f"Document not found: {path}")
            return list(self._documents[path])

    def del_documents(self, path: str) -> None:
        """Remove path and all its snapshots."""
        with self._lock:
            if path not in self._documents:
                raise NotFoundError(f"Document not found: {path}")
            del self._documents[path]
        logger.debug(f"Deleted {path}")

    def get_paths(self) -> list[str]:
        with self._lock:
            return list(self._documents)

    def get_path_chunks(self, path: str) -> list[Chunk]:
        """Chunks of every snapshot under path, in snapshot order."""
        return [chunk for doc in self.get_documents(path) for chunk in doc.chunks]

    def get_chunks(self) -> list[Chunk]:
        """Every stored chunk across all paths."""
        with self._lock:
            return [
                chunk
                for docs in self._documents.values()
                for doc in docs
                for chunk in doc.chunks
            ]

    def search_chunks(
        self,
        path: str,
        embeddings: Sequence[Embedding],
        topk: int,
    ) -> list[ScoredChunks]:
        """
        Find the ``topk`` most similar stored chunks for every query.

        Args:
            path: Path to search, or DOCUMENT_PATH_NONE for all paths
            embeddings: One embedding per query
            topk: Maximum results per query

        Returns:
            One ScoredChunks per query, sorted by descending score

        Raises:
            InvalidInputError: If topk is not positive
            NotFoundError: If path is unknown
        """
        if topk <= 0:
            raise InvalidInputError(f"topk must be positive, got {topk}")

        if path == DOCUMENT_PATH_NONE:
            chunks = self.get_chunks()
        else:
            chunks = self.get_path_chunks(path)

        if len(embeddings) == 0:
            return []
        if not chunks:
            return [[] for _ in embeddings]

        queries = np.asarray(embeddings, dtype=np.float64)
        candidates = np.asarray([chunk.embedding for chunk in chunks], dtype=np.float64)
        query_norms = norms(queries)
        candidate_norms = norms(candidates)

        partitions = [
            (
                qs,
                min(qs + self.query_block, len(queries)),
                ds,
                min(ds + self.candidate_block, len(candidates)),
            )
            for qs in range(0, len(queries), self.query_block)
            for ds in range(0, len(candidates), self.candidate_block)
        ]
        logger.debug(
            f"Searching {len(chunks)} chunks for {len(queries)} queries "
            f"in {len(partitions)} partitions"
        )

        merged: list[list[_Candidate]] = [[] for _ in range(len(queries))]
        with ThreadPoolExecutor(
            max_workers=min(self.workers, len(partitions)),
            thread_name_prefix="ragcore-search",
        ) as executor:
            futures = {
                executor.submit(
                    cosine_topk,
                    queries[qs:qe],
                    candidates[ds:de],
                    query_norms[qs:qe],
                    candidate_norms[ds:de],
                    ds,
                    topk,
                ): qs
                for qs, qe, ds, de in partitions
            }
            for future, qs in futures.items():
                for offset, partial in enumerate(future.result()):
                    merged[qs + offset].extend(partial)

        return [
            [
                ScoredChunk(chunk=chunks[index], score=score)
                for score, index in merge_topk(partial, topk)
            ]
            for partial in merged
        ]

    @staticmethod
    def _check_path(path: str) -> None:
        if path == DOCUMENT_PATH_NONE:
            raise InvalidInputError("Document path is empty")
