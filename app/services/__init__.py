"""
app/services package marker.
"""

from app.services.aggregation_service import AggregationService, get_aggregation_service

__all__ = [
    "AggregationService",
    "get_aggregation_service",
]
