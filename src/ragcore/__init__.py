"""
ragcore: Indexing and retrieval engine for retrieval-augmented generation

Turns text into overlapping, embedding-indexed chunks and answers
similarity queries against them for LLM-agent pipelines.

Key Components:
    - retrieval.chunker: Boundary-aware overlapping text splitter
    - retrieval.embeddings: Concurrent batch embedding pipeline
    - retrieval.store: In-memory vector store with top-k cosine search
    - retrieval.rag: Indexing/retrieval facade
    - errors: Exception taxonomy

Example:
    >>> from ragcore import Rag, TextSplitter
    >>> rag = Rag(embedding_model=my_model)
    >>> rag.indexing("/doc", text, TextSplitter(chunk_size=100, overlap=0.25))
    >>> for scored in rag.retrieval("/doc", ["what is AutoG?"], topk=3)[0]:
    ...     print(scored.score, scored.chunk.content)
"""

__version__ = "0.1.0"

from ragcore.config import settings
from ragcore.retrieval import DOCUMENT_PATH_NONE, MemoryDatabase, Rag, TextSplitter

__all__ = [
    "__version__",
    "settings",
    "DOCUMENT_PATH_NONE",
    "MemoryDatabase",
    "Rag",
    "TextSplitter",
]
