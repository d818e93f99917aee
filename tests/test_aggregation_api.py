"""
tests/test_aggregation_api.py

HTTP-level tests for the aggregation endpoint using FastAPI's TestClient.

The aggregation service is swapped through `app.dependency_overrides` for
one built around a stub fetcher, so no test touches the network.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.aggregation.admission import AdmissionGate
from app.aggregation.engine import FetchAggregator
from app.aggregation.fetcher import UrlFetcher
from app.aggregation.types import FetchFailure, FetchOutcome, FetchSize
from app.api.dependencies import provide_aggregation_service
from app.config import get_aggregator_settings
from app.main import create_app
from app.services.aggregation_service import AggregationService

PLAIN_TEXT = {"Content-Type": "text/plain"}


class _StubFetcher:
    def __init__(self, outcomes: dict[str, int | str]) -> None:
        self._outcomes = outcomes
        self._lock = threading.Lock()
        self.calls: list[str] = []
        self.hang = threading.Event()

    def fetch(self, url: str, cancel_event: threading.Event | None = None) -> FetchOutcome:
        with self._lock:
            self.calls.append(url)
        value = self._outcomes[url]
        if value == "hang":
            self.hang.wait(timeout=5.0)
            return FetchSize(url=url, size=0)
        if isinstance(value, str):
            return FetchFailure(url=url, reason=value, detail="stubbed")
        return FetchSize(url=url, size=value)


def _override(application: FastAPI, service: AggregationService) -> None:
    async def provide() -> AggregationService:
        return service

    application.dependency_overrides[provide_aggregation_service] = provide


@pytest.fixture()
def fetcher() -> Iterator[_StubFetcher]:
    stub = _StubFetcher(
        {
            "http://a/x": 10,
            "http://a/y": 20,
            "http://a/broken": "failed to read body",
            "http://a/hang": "hang",
        }
    )
    yield stub
    stub.hang.set()


@pytest.fixture()
def gate() -> AdmissionGate:
    return AdmissionGate(limit=2)


@pytest.fixture()
def client(fetcher: _StubFetcher, gate: AdmissionGate) -> Iterator[TestClient]:
    application = create_app()
    service = AggregationService(
        gate=gate,
        aggregator=FetchAggregator(fetcher=fetcher, stall_timeout_seconds=0.2),
    )
    _override(application, service)
    yield TestClient(application)
    application.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Successful aggregation
# ---------------------------------------------------------------------------


class TestAggregateEndpoint:
    def test_two_urls_return_permutation_of_sizes(self, client: TestClient, gate: AdmissionGate) -> None:
        response = client.post("/", content=b"http://a/x\nhttp://a/y", headers=PLAIN_TEXT)

        assert response.status_code == 200
        assert response.text in {"10\n20", "20\n10"}
        assert response.headers["content-type"].startswith("text/plain")
        assert gate.in_flight == 0

    def test_charset_parameter_is_accepted(self, client: TestClient) -> None:
        response = client.post(
            "/",
            content=b"http://a/x",
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

        assert response.status_code == 200
        assert response.text == "10"

    def test_empty_body_returns_empty_payload(self, client: TestClient, fetcher: _StubFetcher) -> None:
        response = client.post("/", content=b"", headers=PLAIN_TEXT)

        assert response.status_code == 200
        assert response.text == ""
        assert fetcher.calls == []


# ---------------------------------------------------------------------------
# Aggregation failures
# ---------------------------------------------------------------------------


class TestAggregationFailures:
    def test_fetch_failure_is_internal_error(self, client: TestClient, gate: AdmissionGate) -> None:
        response = client.post("/", content=b"http://a/x\nhttp://a/broken", headers=PLAIN_TEXT)

        assert response.status_code == 500
        assert response.text == "one fetch failed: failed to read body: stubbed"
        assert gate.in_flight == 0

    def test_stall_is_internal_error(self, client: TestClient, gate: AdmissionGate) -> None:
        response = client.post("/", content=b"http://a/x\nhttp://a/hang", headers=PLAIN_TEXT)

        assert response.status_code == 500
        assert response.text == "stalled waiting for a fetch outcome"
        assert gate.in_flight == 0

    def test_unresolvable_url_is_fetch_failure(self) -> None:
        application = create_app()
        service = AggregationService(
            gate=AdmissionGate(limit=1),
            aggregator=FetchAggregator(fetcher=UrlFetcher(), stall_timeout_seconds=5.0),
        )
        _override(application, service)

        response = TestClient(application).post("/", content=b" ", headers=PLAIN_TEXT)

        assert response.status_code == 500
        assert response.text.startswith("one fetch failed: failed to send request")
        assert service.gate.in_flight == 0


# ---------------------------------------------------------------------------
# Request admission
# ---------------------------------------------------------------------------


class TestRequestAdmission:
    @pytest.mark.parametrize("content_type", ["application/json", "text/html", ""])
    def test_wrong_content_type_is_unsupported_media_type(
        self,
        client: TestClient,
        fetcher: _StubFetcher,
        gate: AdmissionGate,
        content_type: str,
    ) -> None:
        response = client.post("/", content=b"http://a/x", headers={"Content-Type": content_type})

        assert response.status_code == 415
        assert response.text == "Content-Type header is not text/plain"
        assert fetcher.calls == []
        assert gate.in_flight == 0

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "PROPFIND"])
    def test_wrong_method_is_not_allowed(self, client: TestClient, fetcher: _StubFetcher, method: str) -> None:
        response = client.request(method, "/", content=b"http://a/x", headers=PLAIN_TEXT)

        assert response.status_code == 405
        assert response.headers["allow"] == "POST, OPTIONS"
        assert response.text == f"Method {method} is not allowed."
        assert fetcher.calls == []

    def test_options_is_not_allowed_but_lists_allowed_methods(self, client: TestClient) -> None:
        response = client.options("/")

        assert response.status_code == 405
        assert response.headers["allow"] == "POST, OPTIONS"
        assert response.text == "Method OPTIONS is not allowed."

    def test_head_is_not_allowed(self, client: TestClient) -> None:
        response = client.head("/")

        assert response.status_code == 405
        assert response.headers["allow"] == "POST, OPTIONS"

    def test_unknown_path_is_not_found(self, client: TestClient, fetcher: _StubFetcher) -> None:
        response = client.post("/not-found", content=b"http://a/x", headers=PLAIN_TEXT)

        assert response.status_code == 404
        assert fetcher.calls == []

    def test_full_gate_is_too_many_requests(
        self,
        client: TestClient,
        fetcher: _StubFetcher,
        gate: AdmissionGate,
    ) -> None:
        assert gate.try_admit()
        assert gate.try_admit()

        response = client.post("/", content=b"http://a/x", headers=PLAIN_TEXT)

        assert response.status_code == 429
        assert response.text == "too many concurrent requests"
        assert fetcher.calls == []
        assert gate.in_flight == 2


# ---------------------------------------------------------------------------
# Admission under a saturated worker pool
# ---------------------------------------------------------------------------

_BUSY_LIMIT = 45


@pytest.fixture()
def busy_app(monkeypatch: pytest.MonkeyPatch) -> Iterator[FastAPI]:
    # Above AnyIO's default of 40 worker threads.
    monkeypatch.setenv("AGGREGATOR_MAX_CONCURRENT", str(_BUSY_LIMIT))
    get_aggregator_settings.cache_clear()
    yield create_app()
    get_aggregator_settings.cache_clear()


def test_request_over_limit_is_rejected_while_limit_requests_block(busy_app: FastAPI) -> None:
    fetcher = _StubFetcher({"http://a/hang": "hang"})
    service = AggregationService(
        gate=AdmissionGate(limit=get_aggregator_settings().max_concurrent),
        aggregator=FetchAggregator(fetcher=fetcher, stall_timeout_seconds=30.0),
    )
    _override(busy_app, service)
    statuses: list[int] = []
    lock = threading.Lock()

    with TestClient(busy_app) as test_client:

        def post_blocking() -> None:
            response = test_client.post("/", content=b"http://a/hang", headers=PLAIN_TEXT)
            with lock:
                statuses.append(response.status_code)

        workers = [threading.Thread(target=post_blocking) for _ in range(_BUSY_LIMIT)]
        try:
            for worker in workers:
                worker.start()

            deadline = time.monotonic() + 5.0
            while service.gate.in_flight < _BUSY_LIMIT and time.monotonic() < deadline:
                time.sleep(0.01)
            assert service.gate.in_flight == _BUSY_LIMIT

            started = time.monotonic()
            rejected = test_client.post("/", content=b"http://a/hang", headers=PLAIN_TEXT)

            assert rejected.status_code == 429
            assert rejected.text == "too many concurrent requests"
            assert time.monotonic() - started < 2.0
        finally:
            fetcher.hang.set()
            for worker in workers:
                worker.join(timeout=10.0)

    assert statuses == [200] * _BUSY_LIMIT
    assert service.gate.in_flight == 0
    assert len(fetcher.calls) == _BUSY_LIMIT


# ---------------------------------------------------------------------------
# Health and configuration
# ---------------------------------------------------------------------------


def test_health_reports_gate_state(client: TestClient, gate: AdmissionGate) -> None:
    assert gate.try_admit()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "in_flight": 1, "max_concurrent": 2}


@pytest.fixture()
def custom_path_app(monkeypatch: pytest.MonkeyPatch) -> Iterator[FastAPI]:
    monkeypatch.setenv("AGGREGATOR_PATH", "/custom-path/")
    get_aggregator_settings.cache_clear()
    yield create_app()
    get_aggregator_settings.cache_clear()


def test_endpoint_mounts_on_configured_path(custom_path_app: FastAPI, fetcher: _StubFetcher) -> None:
    service = AggregationService(
        gate=AdmissionGate(limit=1),
        aggregator=FetchAggregator(fetcher=fetcher),
    )
    _override(custom_path_app, service)
    test_client = TestClient(custom_path_app)

    mounted = test_client.post("/custom-path", content=b"http://a/y", headers=PLAIN_TEXT)
    root = test_client.post("/", content=b"http://a/y", headers=PLAIN_TEXT)

    assert mounted.status_code == 200
    assert mounted.text == "20"
    assert root.status_code == 404
