"""
Singleton resource management for the shared vector store.

Uses the same @lru_cache pattern as config.py so every Rag built with
the shared store sees the same indexed paths for the lifetime of the
process.

Usage:
    # In application code
    rag = Rag(embedding_model=model, database=get_memory_database())

    # In tests (reset cache)
    clear_resource_cache()
"""

import logging
from functools import lru_cache
from typing import TYPE_CHECKING

from ragcore.config import settings

if TYPE_CHECKING:
    from ragcore.retrieval.store import MemoryDatabase

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_memory_database() -> "MemoryDatabase":
    """
    Get or create the global MemoryDatabase instance.

    Returns:
        MemoryDatabase: Empty on first call, shared afterwards

    Example:
        >>> db = get_memory_database()
        >>> db.get_paths()
        []
    """
    from ragcore.retrieval.store import MemoryDatabase

    database = MemoryDatabase(
        query_block=settings.search_query_block,
        candidate_block=settings.search_candidate_block,
        workers=settings.search_workers,
    )
    logger.info(
        f"Memory database created (blocks {database.query_block}x"
        f"{database.candidate_block}, {database.workers} workers)"
    )
    return database


def clear_resource_cache() -> None:
    """
    Drop the shared store.

    The next get_memory_database() call returns a new, empty instance.
    """
    get_memory_database.cache_clear()
    logger.debug("Resource cache cleared")
