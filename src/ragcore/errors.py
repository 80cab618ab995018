"""
Exception hierarchy for indexing and retrieval.

Every expected failure is raised to the caller as a RagError subclass;
wrapped exceptions keep the original error as ``__cause__``.
"""


class RagError(Exception):
    """Base class for all ragcore errors."""


class InvalidInputError(RagError, ValueError):
    """Empty or reserved path, wrong payload type, or invalid argument."""


class SplitError(RagError):
    """The splitter failed to produce chunks."""


class EmbeddingError(RagError):
    """An embedding model call failed or returned the wrong number of vectors."""


class EmbeddingCancelledError(EmbeddingError):
    """The cancel event was set or the deadline passed before a model call."""


class EmbeddingCountError(EmbeddingError):
    """The model returned a different number of vectors than texts requested."""

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Expected {expected} embeddings, got {got}")
        self.expected = expected
        self.got = got


class StoreError(RagError):
    """The vector store failed to append, save or search."""


class NotFoundError(RagError, KeyError):
    """Unknown path on lookup."""

    def __str__(self) -> str:
        # KeyError quotes its argument
        return str(self.args[0]) if self.args else ""
