"""
Single-URL fetcher reporting the size of the retrieved body.
"""

from __future__ import annotations

import logging
import threading

import requests
from requests.adapters import HTTPAdapter

from app.aggregation.logging_utils import log_event
from app.aggregation.types import FetchFailure, FetchOutcome, FetchSize

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "url-size-aggregator/1.0"
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_POOL_MAXSIZE = 1000

SEND_FAILED = "failed to send request"
READ_FAILED = "failed to read body"
CANCELLED = "fetch cancelled"


class _FetchCancelled(Exception):
    pass


class UrlFetcher:
    """
    Retrieves one URL and reports its body length as a FetchOutcome.

    No retries and no per-request timeout are applied. Status codes are not
    inspected: any response whose body can be read counts as a success.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        pool_maxsize: int = DEFAULT_POOL_MAXSIZE,
    ) -> None:
        self._session = session or self._build_session(pool_maxsize)
        self._headers = {"User-Agent": user_agent}
        self._chunk_size = max(1, chunk_size)

    def fetch(self, url: str, cancel_event: threading.Event | None = None) -> FetchOutcome:
        """
        Fetch `url` and return either its size or the reason it failed.

        `cancel_event` is checked before the request is sent and between body
        chunks; once set, the connection is closed and a cancelled failure is
        returned.
        """

        if cancel_event is not None and cancel_event.is_set():
            return FetchFailure(url=url, reason=CANCELLED)

        try:
            url.encode("utf-8")
        except UnicodeEncodeError as exc:
            invalid = ValueError(f"URL is not valid UTF-8: {exc.reason}")
            return self._failed(url, SEND_FAILED, invalid)

        try:
            response = self._session.get(
                url,
                headers=self._headers,
                stream=True,
                allow_redirects=True,
            )
        except requests.RequestException as exc:
            return self._failed(url, SEND_FAILED, exc)

        with response:
            try:
                size = self._read_size(response, cancel_event)
            except _FetchCancelled:
                return FetchFailure(url=url, reason=CANCELLED)
            except requests.RequestException as exc:
                return self._failed(url, READ_FAILED, exc)

        log_event(
            logger,
            logging.DEBUG,
            "fetch_completed",
            url=url,
            status_code=response.status_code,
            size=size,
        )
        return FetchSize(url=url, size=size)

    def close(self) -> None:
        self._session.close()

    @staticmethod
    def _build_session(pool_maxsize: int) -> requests.Session:
        # Up to `pool_maxsize` reusable connections per host.
        session = requests.Session()
        adapter = HTTPAdapter(pool_maxsize=max(1, pool_maxsize))
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _read_size(
        self,
        response: requests.Response,
        cancel_event: threading.Event | None,
    ) -> int:
        size = 0
        for chunk in response.iter_content(chunk_size=self._chunk_size):
            if cancel_event is not None and cancel_event.is_set():
                raise _FetchCancelled()
            size += len(chunk)
        return size

    @staticmethod
    def _failed(url: str, reason: str, exc: Exception) -> FetchFailure:
        log_event(
            logger,
            logging.WARNING,
            "fetch_failed",
            url=url,
            reason=reason,
            error=str(exc),
        )
        return FetchFailure(url=url, reason=reason, detail=str(exc))
