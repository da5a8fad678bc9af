"""Health probe value objects."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from bluegreen.domain.models.base import utc_now, ValueObject


class EndpointCheckResult(ValueObject):
    """Outcome of a single endpoint request."""

    url: str
    ok: bool
    status_code: int | None = None
    response_time_ms: float = 0.0
    error: str = ""


class HealthReport(ValueObject):
    """Reduced result of probing one color of an environment."""

    healthy: bool
    avg_response_time_ms: float = 0.0
    error_rate: float = 0.0
    issues: list[str] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=utc_now)
