"""
Health check response schemas.
"""

from typing import Literal

from pydantic import BaseModel, Field


CheckResult = Literal["ok", "error"]


class HealthResponse(BaseModel):
    """Liveness response."""

    status: Literal["healthy"] = "healthy"
    service: str = "blog-server"


class ReadinessResponse(BaseModel):
    """Readiness response with one entry per startup resource."""

    status: Literal["ready", "unavailable"]
    checks: dict[str, CheckResult] = Field(
        default_factory=dict,
        description="Check result per resource",
        examples=[{"database": "ok", "cache": "ok"}],
    )
