"""
app/schemas package marker.
"""

from app.schemas.aggregation import HealthResponse

__all__ = [
    "HealthResponse",
]
