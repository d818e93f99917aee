"""
app/services/aggregation_service.py

Service orchestration for admitted URL size aggregation requests.

The service owns the process-wide AdmissionGate and one FetchAggregator.
Every call either fails fast with TooManyRequestsError, before any fetch is
launched, or holds one gate slot for the duration of the aggregation and
gives it back on every exit path.
"""

from __future__ import annotations

from functools import lru_cache

from starlette.concurrency import run_in_threadpool

from app.aggregation.admission import AdmissionGate
from app.aggregation.engine import FetchAggregator
from app.aggregation.fetcher import UrlFetcher
from app.aggregation.types import AggregateResult
from app.config import AggregatorSettings, get_aggregator_settings


class AggregationService:
    """
    Admits requests through the gate and runs the aggregator for them.
    """

    def __init__(
        self,
        *,
        gate: AdmissionGate,
        aggregator: FetchAggregator,
    ) -> None:
        self._gate = gate
        self._aggregator = aggregator

    @classmethod
    def from_settings(cls, settings: AggregatorSettings) -> "AggregationService":
        fetcher = UrlFetcher(
            user_agent=settings.user_agent,
            chunk_size=settings.chunk_size,
            pool_maxsize=settings.pool_maxsize,
        )
        return cls(
            gate=AdmissionGate(limit=settings.max_concurrent),
            aggregator=FetchAggregator(
                fetcher=fetcher,
                stall_timeout_seconds=settings.stall_timeout_seconds,
            ),
        )

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    def aggregate(self, body: bytes | str) -> AggregateResult:
        """
        Aggregate the URL list in `body` while holding one admission slot.

        Raises TooManyRequestsError when the gate is full, and propagates
        FetchFailedError / AggregationStalledError from the aggregator.
        """

        with self._gate.admitted():
            return self._aggregator.aggregate(body)

    async def aggregate_async(self, body: bytes | str) -> AggregateResult:
        """
        Async variant of `aggregate` for request handlers.

        The gate is checked on the calling event loop, so rejection never
        waits for a worker thread. Only admitted requests move the blocking
        aggregation onto the thread pool, and the slot is held until that
        work returns.
        """

        with self._gate.admitted():
            return await run_in_threadpool(self._aggregator.aggregate, body)


@lru_cache(maxsize=1)
def get_aggregation_service() -> AggregationService:
    """
    Build and cache the process-wide aggregation service.
    """

    return AggregationService.from_settings(get_aggregator_settings())
