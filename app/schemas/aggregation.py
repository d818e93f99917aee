"""
app/schemas/aggregation.py

Response schemas for the aggregation service.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """
    API response model for the health endpoint.
    """

    model_config = ConfigDict(extra="forbid")

    status: str = "ok"
    in_flight: int = Field(..., ge=0)
    max_concurrent: int = Field(..., ge=1)
