"""
Errors raised while admitting and aggregating fetch requests.
"""

from __future__ import annotations

from app.aggregation.types import FetchFailure


class AggregationError(RuntimeError):
    """
    Base class for every failure that aborts one aggregation request.
    """


class TooManyRequestsError(AggregationError):
    """
    Raised when the admission gate is already at its limit.
    """

    def __init__(self, limit: int) -> None:
        super().__init__("too many concurrent requests")
        self.limit = limit


class FetchFailedError(AggregationError):
    """
    Raised as soon as any fetch of the request reports a failure.
    """

    def __init__(self, failure: FetchFailure) -> None:
        super().__init__(f"one fetch failed: {failure.message}")
        self.failure = failure


class AggregationStalledError(AggregationError):
    """
    Raised when no fetch outcome arrives within the rolling timeout window.
    """

    def __init__(self, *, timeout_seconds: float, received: int, expected: int) -> None:
        super().__init__("stalled waiting for a fetch outcome")
        self.timeout_seconds = timeout_seconds
        self.received = received
        self.expected = expected
