"""
In-memory result store for dashboard sessions.

Each session (one browser tab) holds the most recent classified batch. The
held tuple is only ever swapped whole, so readers between writes always see
a complete batch.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, Tuple

from app.schemas.sentiment import ClassificationResult, SessionStats
from app.utils.logger import get_logger

logger = get_logger(__name__)


class BatchInProgressError(Exception):
    """Raised when a session already has a batch classification in flight."""
    pass


class SessionResultStore:
    """Latest classification results for one session. Not persisted."""

    def __init__(self) -> None:
        self._results: Tuple[ClassificationResult, ...] = ()

    @property
    def results(self) -> Tuple[ClassificationResult, ...]:
        return self._results

    def replace(self, results: Iterable[ClassificationResult]) -> None:
        """Overwrite the held results in full."""
        self._results = tuple(results)

    def clear(self) -> None:
        self._results = ()

    def stats(self) -> SessionStats:
        """Counts per sentiment and mean confidence, in one pass."""
        results = self._results
        counts = {"positive": 0, "negative": 0, "neutral": 0}
        confidence_sum = 0.0
        for result in results:
            counts[result.sentiment] += 1
            confidence_sum += result.confidence

        return SessionStats(
            total=len(results),
            positive=counts["positive"],
            negative=counts["negative"],
            neutral=counts["neutral"],
            avg_confidence=confidence_sum / len(results) if results else 0.0,
        )


class SessionRegistry:
    """
    Owns one SessionResultStore per session ID.

    Also tracks which sessions have a batch in flight; a session may run
    only one batch at a time. Stores are created only by writes; reads of an
    unknown session see an empty view. Callers must run on the event loop
    thread (the session routes are all async handlers).
    """

    def __init__(self) -> None:
        self._stores: Dict[str, SessionResultStore] = {}
        self._in_flight: set = set()

    def get(self, session_id: str) -> SessionResultStore:
        """Return the session's store, creating it on first use."""
        store = self._stores.get(session_id)
        if store is None:
            store = SessionResultStore()
            self._stores[session_id] = store
            logger.info("Created session result store", session_id=session_id)
        return store

    def peek(self, session_id: str) -> SessionResultStore:
        """Return the session's store, or an empty unregistered one if it has none."""
        store = self._stores.get(session_id)
        if store is None:
            return SessionResultStore()
        return store

    def discard(self, session_id: str) -> None:
        """Forget a session entirely."""
        if self._stores.pop(session_id, None) is not None:
            logger.info("Discarded session result store", session_id=session_id)

    def reset(self, session_id: str) -> None:
        """
        Empty a session's results.

        An idle session is dropped from the registry; a busy one keeps its
        store so the running batch still lands where readers look.
        """
        if session_id in self._in_flight:
            self._stores[session_id].clear()
        else:
            self.discard(session_id)

    def is_busy(self, session_id: str) -> bool:
        return session_id in self._in_flight

    @asynccontextmanager
    async def batch_guard(self, session_id: str) -> AsyncIterator[SessionResultStore]:
        """
        Mark a session busy for the duration of one batch.

        Raises:
            BatchInProgressError: If the session already has a batch in flight
        """
        if session_id in self._in_flight:
            logger.warning("Rejected concurrent batch", session_id=session_id)
            raise BatchInProgressError("An analysis is already running for this session")

        self._in_flight.add(session_id)
        try:
            yield self.get(session_id)
        finally:
            self._in_flight.discard(session_id)

    def __len__(self) -> int:
        return len(self._stores)
