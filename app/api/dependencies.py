"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and service lookup.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.services.aggregation_service import AggregationService, get_aggregation_service

PLAIN_TEXT_CONTENT_TYPE = "text/plain"


def media_type_of(content_type: str | None) -> str:
    """
    Return the bare media type of a Content-Type header value, lowercased.
    """

    return (content_type or "").split(";", 1)[0].strip().lower()


async def get_url_list_body(request: Request) -> bytes:
    """
    Validate that the request declares a plain-text body and return it raw.

    Media-type parameters such as `charset` are accepted.
    """

    if media_type_of(request.headers.get("content-type")) != PLAIN_TEXT_CONTENT_TYPE:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Content-Type header is not text/plain",
        )

    return await request.body()


async def provide_aggregation_service() -> AggregationService:
    """
    Return the process-wide aggregation service without a worker thread.

    FastAPI runs plain `def` dependencies in its thread pool; keeping this
    one async lets requests reach the admission gate when that pool is busy.
    """

    return get_aggregation_service()
