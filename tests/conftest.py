"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Configuration with test values
    - Fake embedding models (no network access)
    - Sample texts and chunks
    - Fresh vector stores
"""

import string
import threading
import time
from unittest.mock import patch

import pytest


# =============================================================================
# Fake Embedding Models
# =============================================================================

class FakeEmbeddingModel:
    """
    Deterministic embedding model based on character counts.

    Each vector holds the count of every lowercase letter, the number of
    digits and a constant bias term, so identical texts map to identical
    vectors and no vector has a zero norm.
    """

    def __init__(self, delay: float = 0.0, fail_on: str | None = None, fail_times: int = -1):
        self.delay = delay
        self.fail_on = fail_on
        self.fail_times = fail_times
        self.calls: list[list[str]] = []
        self.dimensions_seen: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._failures = 0
        self._lock = threading.Lock()

    @staticmethod
    def vector(text: str) -> list[float]:
        lowered = text.lower()
        counts = [float(lowered.count(letter)) for letter in string.ascii_lowercase]
        digits = float(sum(ch.isdigit() for ch in text))
        return counts + [digits, 1.0]

    def embeddings(self, texts, dimensions=0, cancel=None):
        with self._lock:
            self.calls.append(list(texts))
            self.dimensions_seen.append(dimensions)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_on is not None and any(self.fail_on in text for text in texts):
                with self._lock:
                    self._failures += 1
                    failing = self.fail_times < 0 or self._failures <= self.fail_times
                if failing:
                    raise RuntimeError(f"model unavailable for {self.fail_on!r}")
            return [self.vector(text) for text in texts]
        finally:
            with self._lock:
                self.in_flight -= 1


class ShortEmbeddingModel(FakeEmbeddingModel):
    """Returns one vector fewer than requested."""

    def embeddings(self, texts, dimensions=0, cancel=None):
        return super().embeddings(texts, dimensions, cancel)[:-1]


@pytest.fixture
def fake_model():
    """Fresh character-count embedding model."""
    return FakeEmbeddingModel()


@pytest.fixture
def model_factory():
    """Build fake models with custom failure/delay behavior."""
    return FakeEmbeddingModel


@pytest.fixture
def short_model():
    """Model that drops the last vector of every batch."""
    return ShortEmbeddingModel()


# =============================================================================
# Configuration Fixtures
# =============================================================================

@pytest.fixture
def mock_settings():
    """Provide test settings without requiring .env file."""
    with patch.dict(
        "os.environ",
        {
            "CHUNK_SIZE": "256",
            "CHUNK_OVERLAP": "0.2",
            "EMBEDDING_BATCH": "4",
            "EMBEDDING_ROUTINES": "2",
            "RETRIEVAL_TOP_K": "5",
            "LOG_LEVEL": "DEBUG",
        },
    ):
        from ragcore.config import Settings
        yield Settings()


# =============================================================================
# Sample Data Fixtures
# =============================================================================

@pytest.fixture
def tagged_text():
    """Two tagged blocks, each followed by a braced block (186 chars)."""
    return (
        "<aaa> " + "a" * 37 + " </aaa>\n"
        "{ " + "a" * 37 + " }\n"
        "<bbb> " + "b" * 37 + " </bbb>\n"
        "{ " + "b" * 37 + " }\n"
    )


@pytest.fixture
def sample_documents():
    """Small documents with clearly different vocabularies."""
    return {
        "/harq": "The maximum number of HARQ processes for NR is sixteen for FDD and TDD.",
        "/rrc": "RRC connection re-establishment is initiated when timer T311 expires.",
        "/pdcch": "The PDCCH carries downlink control information known as DCI.",
    }


@pytest.fixture
def sample_chunks():
    """Chunks with hand-picked two-dimensional embeddings."""
    from ragcore.retrieval.models import MemChunk

    vectors = [[1.0, 0.0], [0.0, 1.0], [1.0, 1.0], [-1.0, 0.0]]
    return [
        MemChunk(
            index=i,
            path="/doc",
            query=f"chunk {i}",
            content=f"chunk {i}",
            byte_start=i * 10,
            byte_end=i * 10 + 10,
            embedding=vector,
        )
        for i, vector in enumerate(vectors)
    ]


@pytest.fixture
def memory_database():
    """Empty store with small partitions so tests cross block boundaries."""
    from ragcore.retrieval.store import MemoryDatabase

    return MemoryDatabase(query_block=2, candidate_block=3, workers=4)
