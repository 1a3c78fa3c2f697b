"""
Pydantic schemas for API responses.
"""

from api.schemas.health import (
    HealthResponse,
    ReadinessResponse,
)

__all__ = [
    "HealthResponse",
    "ReadinessResponse",
]
