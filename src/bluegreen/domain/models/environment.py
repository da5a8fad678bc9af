"""Environment state: the single source of truth for the live color."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import Field

from bluegreen.domain.models.base import DomainEntity, utc_now, ValueObject


class Color(str, Enum):
    """Deployment slot of an environment."""

    BLUE = "blue"
    GREEN = "green"
    UNKNOWN = "unknown"

    def inverse(self) -> Color | None:
        """Return the other standing color, or None when unknown."""
        if self is Color.BLUE:
            return Color.GREEN
        if self is Color.GREEN:
            return Color.BLUE
        return None


class HealthStatus(str, Enum):
    """Last known health of an environment."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class PerformanceSnapshot(ValueObject):
    """Rolling performance figures from the latest health probe."""

    avg_response_time_ms: float = 0.0
    error_rate: float = 0.0
    sampled_at: datetime = Field(default_factory=utc_now)


class EnvironmentState(DomainEntity):
    """Durable record of a logical environment.

    ``revision`` is bumped on every save and is what state stores compare
    when performing compare-and-swap writes.
    """

    name: str
    current_version: str = ""
    active_color: Color = Color.UNKNOWN
    last_deployment_time: datetime | None = None
    last_deployment_id: str | None = None
    health_status: HealthStatus = HealthStatus.UNKNOWN
    performance: PerformanceSnapshot = Field(default_factory=PerformanceSnapshot)
