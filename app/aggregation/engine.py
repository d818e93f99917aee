"""
Fan-out/fan-in engine aggregating body sizes for a list of URLs.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from app.aggregation.exceptions import AggregationStalledError, FetchFailedError
from app.aggregation.logging_utils import log_event
from app.aggregation.parsing import parse_request_lines
from app.aggregation.types import AggregateResult, FetchFailure, FetchOutcome

logger = logging.getLogger(__name__)

DEFAULT_STALL_TIMEOUT_SECONDS = 10.0


class Fetcher(Protocol):
    def fetch(self, url: str, cancel_event: threading.Event | None = None) -> FetchOutcome:
        ...


class FetchAggregator:
    """
    Launches one concurrent fetch per URL and merges their outcomes.

    The first failure aborts the whole request, as does a stall: no outcome
    arriving within `stall_timeout_seconds` of the previous one (or of the
    start of fan-in for the first). Sizes are reported in arrival order, not
    input order.
    """

    def __init__(
        self,
        *,
        fetcher: Fetcher,
        stall_timeout_seconds: float = DEFAULT_STALL_TIMEOUT_SECONDS,
    ) -> None:
        if stall_timeout_seconds <= 0:
            raise ValueError(
                f"stall_timeout_seconds must be positive, got {stall_timeout_seconds}"
            )
        self._fetcher = fetcher
        self._stall_timeout_seconds = stall_timeout_seconds

    @property
    def stall_timeout_seconds(self) -> float:
        return self._stall_timeout_seconds

    def aggregate(self, body: bytes | str) -> AggregateResult:
        """
        Fetch every URL listed in `body` and return their sizes.

        Raises FetchFailedError on the first failed fetch and
        AggregationStalledError on a stall. Partial results are discarded.
        """

        urls = parse_request_lines(body)
        if not urls:
            return AggregateResult()
        return self.aggregate_urls(urls)

    def aggregate_urls(self, urls: list[str]) -> AggregateResult:
        if not urls:
            return AggregateResult()

        # Unbounded and never closed: fetches abandoned after an abort can
        # still put their outcome without blocking or raising.
        outcomes: queue.SimpleQueue[FetchOutcome] = queue.SimpleQueue()
        cancel_event = threading.Event()
        started = time.monotonic()

        executor = ThreadPoolExecutor(
            max_workers=len(urls),
            thread_name_prefix="fetch",
        )
        try:
            for url in urls:
                executor.submit(self._run_fetch, url, outcomes, cancel_event)
            sizes = self._collect(outcomes, expected=len(urls))
        except FetchFailedError as exc:
            log_event(
                logger,
                logging.WARNING,
                "aggregation_failed",
                urls=len(urls),
                url=exc.failure.url,
                error=exc.failure.message,
            )
            raise
        except AggregationStalledError as exc:
            log_event(
                logger,
                logging.WARNING,
                "aggregation_stalled",
                urls=len(urls),
                received=exc.received,
                timeout_seconds=exc.timeout_seconds,
            )
            raise
        finally:
            cancel_event.set()
            executor.shutdown(wait=False)

        log_event(
            logger,
            logging.INFO,
            "aggregation_completed",
            urls=len(urls),
            total_bytes=sum(sizes),
            elapsed_seconds=round(time.monotonic() - started, 3),
        )
        return AggregateResult(sizes=sizes)

    def _collect(
        self,
        outcomes: queue.SimpleQueue[FetchOutcome],
        *,
        expected: int,
    ) -> list[int]:
        sizes: list[int] = []
        for _ in range(expected):
            # The timeout window restarts on every iteration.
            try:
                outcome = outcomes.get(timeout=self._stall_timeout_seconds)
            except queue.Empty:
                raise AggregationStalledError(
                    timeout_seconds=self._stall_timeout_seconds,
                    received=len(sizes),
                    expected=expected,
                ) from None

            if isinstance(outcome, FetchFailure):
                raise FetchFailedError(outcome)
            sizes.append(outcome.size)
        return sizes

    def _run_fetch(
        self,
        url: str,
        outcomes: queue.SimpleQueue[FetchOutcome],
        cancel_event: threading.Event,
    ) -> None:
        try:
            outcome = self._fetcher.fetch(url, cancel_event)
        except Exception as exc:
            logger.exception("Fetcher raised instead of returning an outcome for %s", url)
            outcome = FetchFailure(url=url, reason="unexpected fetch error", detail=str(exc))
        outcomes.put(outcome)
