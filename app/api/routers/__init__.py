"""
app/api/routers package marker.
"""

from app.api.routers.aggregation_router import build_aggregation_router

__all__ = [
    "build_aggregation_router",
]
