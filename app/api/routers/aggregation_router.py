"""
app/api/routers/aggregation_router.py

URL size aggregation endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse
from starlette.types import Receive, Scope, Send

from app.aggregation.exceptions import AggregationError, TooManyRequestsError
from app.api.dependencies import get_url_list_body, provide_aggregation_service
from app.services.aggregation_service import AggregationService

ALLOWED_METHODS = ("POST", "OPTIONS")
ALLOW_HEADER = ", ".join(ALLOWED_METHODS)


async def aggregate_urls(
    body: bytes = Depends(get_url_list_body),
    aggregation_service: AggregationService = Depends(provide_aggregation_service),
) -> PlainTextResponse:
    """
    Fetch every URL listed in the plain-text body and return their sizes,
    one per line, in the order the fetches completed.

    Admission runs on the event loop, so a full gate answers 429 without
    waiting for a worker thread.
    """

    try:
        result = await aggregation_service.aggregate_async(body)
    except TooManyRequestsError as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(exc),
        ) from exc
    except AggregationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    return PlainTextResponse(result.payload)


class MethodNotAllowed:
    """
    ASGI app answering 405 for any method that reaches it.

    Mounted without a method list, so it matches every method the POST
    route does not, including OPTIONS and non-standard ones.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail=f"Method {scope['method']} is not allowed.",
            headers={"Allow": ALLOW_HEADER},
        )


def build_aggregation_router(path: str = "/") -> APIRouter:
    """
    Build the router serving the aggregation endpoint at `path`.
    """

    router = APIRouter(tags=["aggregation"])
    router.add_api_route(
        path,
        aggregate_urls,
        methods=["POST"],
        response_class=PlainTextResponse,
    )
    router.add_route(path, MethodNotAllowed(), include_in_schema=False)
    return router
