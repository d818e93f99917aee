"""
Concurrent URL fetch aggregation.
"""

from app.aggregation.admission import DEFAULT_MAX_CONCURRENT, AdmissionGate
from app.aggregation.engine import DEFAULT_STALL_TIMEOUT_SECONDS, FetchAggregator
from app.aggregation.exceptions import (
    AggregationError,
    AggregationStalledError,
    FetchFailedError,
    TooManyRequestsError,
)
from app.aggregation.fetcher import UrlFetcher
from app.aggregation.parsing import parse_request_lines
from app.aggregation.types import AggregateResult, FetchFailure, FetchOutcome, FetchSize

__all__ = [
    "AdmissionGate",
    "AggregateResult",
    "AggregationError",
    "AggregationStalledError",
    "DEFAULT_MAX_CONCURRENT",
    "DEFAULT_STALL_TIMEOUT_SECONDS",
    "FetchAggregator",
    "FetchFailedError",
    "FetchFailure",
    "FetchOutcome",
    "FetchSize",
    "TooManyRequestsError",
    "UrlFetcher",
    "parse_request_lines",
]
