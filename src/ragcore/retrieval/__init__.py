"""
Indexing and retrieval components.

Components:
    - models: Chunk protocol, MemChunk, Document and ScoredChunk
    - chunker: Boundary-aware overlapping text splitter
    - embeddings: Concurrent batch embedding with pluggable retry
    - store: In-memory vector store with partitioned top-k search
    - rag: Indexing/retrieval facade
"""

from ragcore.retrieval.chunker import TextSplitter
from ragcore.retrieval.embeddings import (
    EmbeddingModel,
    EmbeddingPipeline,
    EmbeddingResult,
    EmbeddingStage,
    RetryPolicy,
)
from ragcore.retrieval.models import (
    DOCUMENT_PATH_NONE,
    Chunk,
    Document,
    MemChunk,
    ScoredChunk,
    ScoredChunks,
)
from ragcore.retrieval.rag import Rag
from ragcore.retrieval.store import MemoryDatabase

__all__ = [
    "DOCUMENT_PATH_NONE",
    "Chunk",
    "Document",
    "EmbeddingModel",
    "EmbeddingPipeline",
    "EmbeddingResult",
    "EmbeddingStage",
    "MemChunk",
    "MemoryDatabase",
    "Rag",
    "RetryPolicy",
    "ScoredChunk",
    "ScoredChunks",
    "TextSplitter",
]
