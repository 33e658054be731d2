"""Bounded in-memory buffer of sanitized execution records."""

import logging
import threading
from collections import deque
from collections.abc import Sequence

from result_relay.models.record import ExecutionRecord

log = logging.getLogger(__name__)


class ResultBuffer:
    """Insertion-ordered record store that drops the oldest records on overflow.

    Every mutation happens under one lock, so ``flush`` is a single
    snapshot-then-clear step: a record pushed while a flushed batch is being
    sent lands in the next flush, never in the one in progress.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"Buffer capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._records: deque[ExecutionRecord] = deque()
        self._dropped_count = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of records held at once."""
        return self._capacity

    @property
    def count(self) -> int:
        """Number of records currently buffered."""
        return len(self._records)

    @property
    def dropped_count(self) -> int:
        """Total records evicted by overflow since creation."""
        return self._dropped_count

    def push(self, record: ExecutionRecord) -> None:
        """Append a record, evicting the oldest records if over capacity."""
        with self._lock:
            self._records.append(record)
            self._evict_overflow()

    def flush(self) -> Sequence[ExecutionRecord]:
        """Return all buffered records in order and empty the buffer."""
        with self._lock:
            snapshot = tuple(self._records)
            self._records.clear()
        return snapshot

    def requeue(self, records: Sequence[ExecutionRecord]) -> None:
        """Put undelivered records back in front of newer arrivals.

        The undelivered records were buffered first, so they keep their
        place ahead of anything pushed since they were flushed. Capacity is
        then enforced by dropping the oldest.
        """
        if not records:
            return
        with self._lock:
            self._records.extendleft(reversed(records))
            self._evict_overflow()

    def _evict_overflow(self) -> None:
        overflow = len(self._records) - self._capacity
        if overflow <= 0:
            return
        for _ in range(overflow):
            self._records.popleft()
        self._dropped_count += overflow
        log.debug(
            "Buffer over capacity, dropped %d oldest record(s) (total dropped=%d)",
            overflow,
            self._dropped_count,
        )
