"""
Unit tests for resource caching in retrieval.resources module.

Tests the singleton caching behavior of:
    - get_memory_database()
    - clear_resource_cache()
"""

import pytest

from ragcore.retrieval.resources import clear_resource_cache, get_memory_database
from ragcore.retrieval.store import MemoryDatabase


@pytest.mark.unit
class TestResourceCaching:
    """Test that resource getters implement proper caching."""

    def setup_method(self):
        clear_resource_cache()

    def teardown_method(self):
        clear_resource_cache()

    def test_get_memory_database_caches_result(self):
        """Test that get_memory_database returns same instance on multiple calls."""
        db1 = get_memory_database()
        db2 = get_memory_database()

        assert db1 is db2
        assert isinstance(db1, MemoryDatabase)

    def test_shared_state_between_callers(self):
        """Chunks saved through one reference are visible through another."""
        from ragcore.retrieval.models import MemChunk

        get_memory_database().save_chunks(
            "/shared",
            None,
            [MemChunk(index=0, path="/shared", query="q", content="q", byte_start=0, byte_end=1)],
        )

        assert get_memory_database().get_paths() == ["/shared"]

    def test_clear_resource_cache_resets(self):
        """After clearing, a new empty store is returned."""
        db1 = get_memory_database()
        db1.save_chunks("/x", None, [])

        clear_resource_cache()
        db2 = get_memory_database()

        assert db1 is not db2
        assert db2.get_paths() == []
