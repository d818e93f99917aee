from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from anyio import to_thread
from fastapi import Depends, FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.dependencies import provide_aggregation_service
from app.api.routers import build_aggregation_router
from app.config import get_aggregator_settings, load_env_files
from app.schemas.aggregation import HealthResponse
from app.services.aggregation_service import AggregationService

_INT_ENV_VARS = (
    "AGGREGATOR_MAX_CONCURRENT",
    "AGGREGATOR_CHUNK_SIZE",
    "AGGREGATOR_POOL_MAXSIZE",
    "PORT",
)
_FLOAT_ENV_VARS = ("AGGREGATOR_STALL_TIMEOUT_SECONDS",)
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
# Worker threads beyond one per admitted request, for other sync handlers.
_SPARE_WORKER_THREADS = 40


def _validate_env() -> None:
    """
    Validate aggregator environment variables at startup.

    Unset variables fall back to defaults; set ones must parse and be
    positive. Raises RuntimeError listing every invalid variable so the
    operator can fix all problems in one restart cycle.
    """

    load_env_files()

    errors: list[str] = []

    for name in _INT_ENV_VARS:
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            value = int(raw.strip())
        except ValueError:
            errors.append(f"{name}='{raw}' is not an integer.")
            continue
        if value < 1:
            errors.append(f"{name}={value} must be at least 1.")

    for name in _FLOAT_ENV_VARS:
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            value = float(raw.strip())
        except ValueError:
            errors.append(f"{name}='{raw}' is not a number.")
            continue
        if value <= 0:
            errors.append(f"{name}={value} must be positive.")

    log_level = os.getenv("LOG_LEVEL")
    if log_level is not None and log_level.strip().upper() not in _LOG_LEVELS:
        errors.append(
            f"LOG_LEVEL='{log_level}' is not valid. Allowed values: {sorted(_LOG_LEVELS)}."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed: invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Give every admitted request a worker thread, plus spares."""
    settings = get_aggregator_settings()
    limiter = to_thread.current_default_thread_limiter()
    limiter.total_tokens = max(
        limiter.total_tokens,
        settings.max_concurrent + _SPARE_WORKER_THREADS,
    )
    logging.getLogger(__name__).info(
        "Aggregator ready at %s (max_concurrent=%d, stall_timeout=%.1fs, worker_threads=%d)",
        settings.path,
        settings.max_concurrent,
        settings.stall_timeout_seconds,
        limiter.total_tokens,
    )
    yield


async def _plain_text_http_exception(
    request: Request,
    exc: StarletteHTTPException,
) -> PlainTextResponse:
    return PlainTextResponse(
        str(exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    settings = get_aggregator_settings()

    application = FastAPI(
        title="URL Size Aggregator",
        version="1.0.0",
        lifespan=_lifespan,
    )
    application.add_exception_handler(StarletteHTTPException, _plain_text_http_exception)
    application.include_router(build_aggregation_router(settings.path))

    @application.get("/health")
    async def healthcheck(
        aggregation_service: AggregationService = Depends(provide_aggregation_service),
    ) -> HealthResponse:
        gate = aggregation_service.gate
        return HealthResponse(in_flight=gate.in_flight, max_concurrent=gate.limit)

    return application


app = create_app()
