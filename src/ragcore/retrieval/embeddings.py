"""
Concurrent batch embedding.

Cuts texts into batches and sends them to an EmbeddingModel from a
bounded thread pool. Results land at their original positions whatever
the completion order, and a caller-supplied callback decides whether a
batch is retried.
"""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from tenacity import (
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ragcore.config import settings
from ragcore.errors import (
    EmbeddingCancelledError,
    EmbeddingCountError,
    EmbeddingError,
)
from ragcore.retrieval.models import Embedding

logger = logging.getLogger(__name__)


class EmbeddingStage(str, Enum):
    """Which side of the engine requested the embeddings."""

    INDEXING = "indexing"
    RETRIEVAL = "retrieval"


class EmbeddingModel(Protocol):
    """The only interface to a concrete language-model client."""

    def embeddings(
        self,
        texts: list[str],
        dimensions: int = 0,
        cancel: Optional[threading.Event] = None,
    ) -> list[Embedding]:
        """
        Compute one vector per text, in order.

        Args:
            texts: Texts to embed
            dimensions: Fixed output size, <= 0 for the model default
            cancel: Set when the caller gives up on the request
        """
        ...


EmbeddingCallback = Callable[
    [
        EmbeddingStage,
        Sequence[str],
        list[Optional[Embedding]],
        int,
        int,
        int,
        int,
        Optional[BaseException],
    ],
    bool,
]
"""(stage, texts, embeddings, batch_start, batch_end, finished, attempts, err) -> retry?"""


@dataclass
class EmbeddingResult:
    """Vectors aligned with the input texts plus the first permanent error."""

    embeddings: list[Optional[Embedding]] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> list[Embedding]:
        """
        Return the embeddings, raising if any batch failed.

        Raises:
            EmbeddingError: Wrapping the first recorded error
        """
        if self.error is not None:
            if isinstance(self.error, EmbeddingError):
                raise self.error
            raise EmbeddingError(f"Embedding failed: {self.error}") from self.error
        return self.embeddings  # type: ignore[return-value]


class _SharedState:
    """Result buffer bookkeeping guarded by one lock."""

    def __init__(self, size: int) -> None:
        self.lock = threading.Lock()
        self.embeddings: list[Optional[Embedding]] = [None] * size
        self.finished = 0
        self.error: Optional[BaseException] = None


def _check_cancelled(cancel: Optional[threading.Event], deadline: Optional[float]) -> None:
    if deadline is not None and time.monotonic() >= deadline:
        raise EmbeddingCancelledError("Embedding deadline exceeded")
    if cancel is not None and cancel.is_set():
        raise EmbeddingCancelledError("Embedding cancelled")


def _link_cancel(
    cancel: Optional[threading.Event],
    timeout: Optional[float],
) -> tuple[Optional[threading.Event], Callable[[], None]]:
    """
    Build the cancel token handed to every model call.

    Without a timeout the caller's event is used as is. With one, a fresh
    event is set by a timer when the timeout elapses and, while the run is
    active, whenever the caller's event is set.

    Returns:
        The token and a function that stops the timer and forwarding thread
    """
    if timeout is None:
        return cancel, lambda: None

    token = threading.Event()
    if cancel is not None and cancel.is_set():
        token.set()
    done = threading.Event()
    timer = threading.Timer(max(timeout, 0.0), token.set)
    timer.daemon = True
    timer.start()

    if cancel is not None:

        def forward() -> None:
            while not done.is_set():
                if cancel.wait(0.05):
                    token.set()
                    return

        threading.Thread(target=forward, name="ragcore-embed-cancel", daemon=True).start()

    def release() -> None:
        done.set()
        timer.cancel()

    return token, release


class EmbeddingPipeline:
    """
    Embed texts in concurrent batches.

    Example:
        >>> pipeline = EmbeddingPipeline(model, batch_size=16, routines=4)
        >>> result = pipeline.run(EmbeddingStage.INDEXING, texts)
        >>> vectors = result.raise_for_error()
    """

    def __init__(
        self,
        model: EmbeddingModel,
        batch_size: Optional[int] = None,
        routines: Optional[int] = None,
        dimensions: Optional[int] = None,
        callback: Optional[EmbeddingCallback] = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            model: Embedding model capability
            batch_size: Texts per model call (default from settings)
            routines: Maximum concurrent model calls (default from settings)
            dimensions: Output size forwarded to the model (default from settings)
            callback: Retry predicate invoked after every attempt
        """
        self.model = model
        self.batch_size = batch_size if batch_size and batch_size > 0 else settings.embedding_batch
        self.routines = routines if routines and routines > 0 else settings.embedding_routines
        self.dimensions = settings.embedding_dimensions if dimensions is None else dimensions
        self.callback = callback

    def run(
        self,
        stage: EmbeddingStage,
        texts: Sequence[str],
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> EmbeddingResult:
        """
        Embed all texts, keeping the output aligned with the input.

        Every batch runs to completion even after another one failed.
        Positions of permanently failed batches hold None.

        Args:
            stage: Indexing or retrieval, forwarded to the callback
            texts: Texts to embed
            cancel: Event that aborts pending model calls when set
            timeout: Seconds after which pending model calls are aborted.
                Models see the expiry through the cancel event they receive.

        Returns:
            EmbeddingResult with the vectors and the first permanent error
        """
        if not texts:
            return EmbeddingResult()

        deadline = time.monotonic() + timeout if timeout is not None else None
        token, release = _link_cancel(cancel, timeout)
        state = _SharedState(len(texts))
        batches = [
            (start, min(start + self.batch_size, len(texts)))
            for start in range(0, len(texts), self.batch_size)
        ]

        logger.debug(
            f"Embedding {len(texts)} texts in {len(batches)} batches "
            f"({self.routines} routines, stage={stage.value})"
        )

        try:
            with ThreadPoolExecutor(
                max_workers=min(self.routines, len(batches)),
                thread_name_prefix="ragcore-embed",
            ) as executor:
                futures = [
                    executor.submit(
                        self._run_batch, stage, texts, state, start, end, token, deadline
                    )
                    for start, end in batches
                ]
                # Re-raises exceptions thrown by the callback
                for future in futures:
                    future.result()
        finally:
            release()

        return EmbeddingResult(embeddings=state.embeddings, error=state.error)

    def embed(
        self,
        stage: EmbeddingStage,
        texts: Sequence[str],
        cancel: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> list[Embedding]:
        """Same as run() but raises EmbeddingError on any failure."""
        return self.run(stage, texts, cancel=cancel, timeout=timeout).raise_for_error()

    def _run_batch(
        self,
        stage: EmbeddingStage,
        texts: Sequence[str],
        state: _SharedState,
        start: int,
        end: int,
        cancel: Optional[threading.Event],
        deadline: Optional[float],
    ) -> None:
        batch = list(texts[start:end])
        attempts = 0

        while True:
            attempts += 1
            err: Optional[BaseException] = None
            vectors: list[Embedding] = []
            try:
                _check_cancelled(cancel, deadline)
                vectors = self.model.embeddings(batch, dimensions=self.dimensions, cancel=cancel)
                # The model may return early once the token fires
                _check_cancelled(cancel, deadline)
                if len(vectors) != len(batch):
                    raise EmbeddingCountError(len(batch), len(vectors))
                try:
                    vectors = [[float(value) for value in vector] for vector in vectors]
                except (TypeError, ValueError) as e:
                    raise EmbeddingError(f"Malformed embedding returned by model: {e}") from e
            except Exception as e:
                err = e
                logger.warning(
                    f"Embedding batch [{start}:{end}) attempt {attempts} failed: {e}"
                )

            with state.lock:
                if err is None:
                    state.embeddings[start:end] = vectors
                    state.finished += end - start
                finished = state.finished

            retry = False
            if self.callback is not None:
                retry = self.callback(
                    stage, texts, state.embeddings, start, end, finished, attempts, err
                )

            if retry:
                if err is None:
                    with state.lock:
                        state.finished -= end - start
                continue

            if err is not None:
                with state.lock:
                    state.embeddings[start:end] = [None] * (end - start)
                    if state.error is None:
                        state.error = err
            return


class RetryPolicy:
    """
    Embedding callback driven by tenacity strategies.

    Retries failed batches while ``retry`` accepts the error and ``stop``
    has not fired, sleeping ``wait`` seconds between attempts. Elapsed time
    for delay-based stop strategies counts from the first failed attempt.

    Example:
        >>> policy = RetryPolicy(stop=stop_after_attempt(5))
        >>> pipeline = EmbeddingPipeline(model, callback=policy)
    """

    def __init__(
        self,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(Exception),
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.stop = stop
        self.wait = wait
        self.retry = retry
        self.sleep = sleep
        self._lock = threading.Lock()
        self._started: dict[tuple[EmbeddingStage, int, int], float] = {}

    def __call__(
        self,
        stage: EmbeddingStage,
        texts: Sequence[str],
        embeddings: list[Optional[Embedding]],
        batch_start: int,
        batch_end: int,
        finished: int,
        attempts: int,
        err: Optional[BaseException],
    ) -> bool:
        key = (stage, id(texts), batch_start)
        if err is None:
            with self._lock:
                self._started.pop(key, None)
            return False

        with self._lock:
            started = self._started.setdefault(key, time.monotonic())

        retry_state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})
        retry_state.start_time = started
        retry_state.attempt_number = attempts
        retry_state.set_exception((type(err), err, err.__traceback__))

        if not self.retry(retry_state) or self.stop(retry_state):
            with self._lock:
                self._started.pop(key, None)
            logger.warning(
                f"Giving up on batch [{batch_start}:{batch_end}) after {attempts} attempts"
            )
            return False

        delay = self.wait(retry_state)
        logger.info(
            f"Retrying batch [{batch_start}:{batch_end}) in {delay:.1f}s "
            f"({finished}/{len(texts)} finished)"
        )
        self.sleep(delay)
        return True
