"""
Retrieval engine facade.

Composes a splitter, the embedding pipeline and a vector store into the
two calls used by agents and applications:
    - indexing: split a payload, embed the chunks, store them under a path
    - retrieval: embed queries and return the best chunks for each
"""

import logging
import threading
from collections.abc import Callable, Sequence
from typing import Any, Optional, Protocol

from ragcore.config import settings
from ragcore.errors import (
    EmbeddingCountError,
    EmbeddingError,
    InvalidInputError,
    RagError,
    SplitError,
    StoreError,
)
from ragcore.retrieval.chunker import ParserFunction
from ragcore.retrieval.embeddings import (
    EmbeddingCallback,
    EmbeddingModel,
    EmbeddingPipeline,
    EmbeddingStage,
)
from ragcore.retrieval.models import DOCUMENT_PATH_NONE, Embedding, ScoredChunks
from ragcore.retrieval.store import Database, MemoryDatabase

logger = logging.getLogger(__name__)

PostRetrieval = Callable[[list[str], list[ScoredChunks]], list[ScoredChunks]]


class Splitter(Protocol):
    """Anything that can turn a payload into chunks."""

    def get_parser(self) -> ParserFunction: ...


class Rag:
    """
    Index payloads and retrieve the most similar chunks.

    Example:
        >>> rag = Rag(embedding_model=model)
        >>> rag.indexing("/doc", text, TextSplitter(chunk_size=100, overlap=0.25))
        >>> results = rag.retrieval("/doc", ["what is AutoG?"], topk=3)
    """

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        database: Optional[Database] = None,
        embedding_callback: Optional[EmbeddingCallback] = None,
        embedding_batch: Optional[int] = None,
        embedding_routines: Optional[int] = None,
        embedding_dimensions: Optional[int] = None,
        post_retrieval: Optional[PostRetrieval] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            embedding_model: Model used for both chunks and queries
            database: Vector store (a new MemoryDatabase by default)
            embedding_callback: Retry predicate for embedding batches
            embedding_batch: Texts per model call (default from settings)
            embedding_routines: Maximum concurrent model calls (default from settings)
            embedding_dimensions: Output size forwarded to the model
            post_retrieval: Hook that may reorder or filter retrieval results
        """
        self.database = database if database is not None else MemoryDatabase()
        self.pipeline = EmbeddingPipeline(
            embedding_model,
            batch_size=embedding_batch,
            routines=embedding_routines,
            dimensions=embedding_dimensions,
            callback=embedding_callback,
        )
        self.post_retrieval = post_retrieval

    def indexing(
        self,
        path: str,
        payload: Any,
        splitter: Splitter,
        overwrite: bool = False,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Split, embed and store a payload under path.

        Args:
            path: Logical document path (must not be empty)
            payload: Source passed to the splitter's parser
            splitter: Splitter producing the chunks
            overwrite: Replace existing snapshots instead of appending
            cancel: Event aborting pending embedding calls
            timeout: Seconds allowed for embedding before it is cancelled

        Raises:
            InvalidInputError: If path is empty or the payload is rejected
            SplitError: If the splitter fails
            EmbeddingError: If embedding fails or returns the wrong count
            StoreError: If the store rejects the chunks
        """
        if path == DOCUMENT_PATH_NONE:
            raise InvalidInputError("Document path is empty")

        parser = splitter.get_parser()
        try:
            chunks = parser(path, payload)
        except RagError:
            raise
        except Exception as e:
            raise SplitError(f"Failed to split {path}: {e}") from e

        embeddings = self._embed(
            EmbeddingStage.INDEXING, [chunk.query for chunk in chunks], cancel, timeout
        )
        for chunk, embedding in zip(chunks, embeddings):
            chunk.embedding = embedding

        try:
            if overwrite:
                self.database.save_chunks(path, payload, chunks)
            else:
                self.database.append_chunks(path, payload, chunks)
        except RagError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to store {path}: {e}") from e

        logger.info(
            f"Indexed {len(chunks)} chunks under {path} "
            f"({'overwrite' if overwrite else 'append'})"
        )

    def retrieval(
        self,
        path: str,
        queries: Sequence[str],
        topk: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> list[ScoredChunks]:
        """
        Return the most similar chunks for every query.

        Args:
            path: Path to search, or DOCUMENT_PATH_NONE for all paths
            queries: Query texts
            topk: Results per query (default from settings)
            cancel: Event aborting pending embedding calls
            timeout: Seconds allowed for embedding before it is cancelled

        Returns:
            One ScoredChunks per query, best first

        Raises:
            InvalidInputError: If topk is not positive
            EmbeddingError: If a query could not be embedded
            NotFoundError: If path is unknown
            StoreError: If the search fails
        """
        if topk is None:
            topk = settings.retrieval_top_k
        if topk <= 0:
            raise InvalidInputError(f"topk must be positive, got {topk}")
        queries = list(queries)
        if path != DOCUMENT_PATH_NONE:
            # Unknown paths fail before any model call
            try:
                self.database.get_documents(path)
            except RagError:
                raise
            except Exception as e:
                raise StoreError(f"Lookup failed for {path}: {e}") from e

        embeddings = self._embed(EmbeddingStage.RETRIEVAL, queries, cancel, timeout)

        try:
            results = self.database.search_chunks(path, embeddings, topk)
        except RagError:
            raise
        except Exception as e:
            raise StoreError(f"Search failed for {path or '<all>'}: {e}") from e

        if self.post_retrieval is not None:
            results = self.post_retrieval(queries, results)

        logger.info(
            f"Retrieved {sum(len(r) for r in results)} chunks for "
            f"{len(queries)} queries from {path or '<all>'}"
        )
        return results

    def _embed(
        self,
        stage: EmbeddingStage,
        texts: list[str],
        cancel: Optional[threading.Event],
        timeout: Optional[float],
    ) -> list[Embedding]:
        try:
            result = self.pipeline.run(stage, texts, cancel=cancel, timeout=timeout)
        except RagError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Embedding callback failed: {e}") from e
        embeddings = result.raise_for_error()
        if len(embeddings) != len(texts):
            raise EmbeddingCountError(len(texts), len(embeddings))
        return embeddings

