"""
Request-level admission gate.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from app.aggregation.exceptions import TooManyRequestsError
from app.aggregation.logging_utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 999


class AdmissionGate:
    """
    Bounds how many requests may be aggregating at the same time.

    Rejected callers are never queued. The gate counts requests, not
    outbound fetches: one admitted request may still fan out to any number
    of concurrent fetches.
    """

    def __init__(self, *, limit: int = DEFAULT_MAX_CONCURRENT) -> None:
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self._limit = limit
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def try_admit(self) -> bool:
        """
        Take one slot if the gate is below its limit; never blocks on capacity.
        """

        with self._lock:
            if self._in_flight >= self._limit:
                return False
            self._in_flight += 1
            return True

    def release(self) -> None:
        """
        Give back one slot taken by a successful `try_admit`.
        """

        with self._lock:
            if self._in_flight == 0:
                raise RuntimeError("release() called on an admission gate with no admitted requests")
            self._in_flight -= 1

    @contextmanager
    def admitted(self) -> Iterator[None]:
        """
        Hold one slot for the duration of the block.

        Raises TooManyRequestsError without entering the block when the gate
        is full. The slot is released exactly once on every exit path.
        """

        if not self.try_admit():
            log_event(
                logger,
                logging.WARNING,
                "admission_rejected",
                limit=self._limit,
            )
            raise TooManyRequestsError(self._limit)
        try:
            yield
        finally:
            self.release()
