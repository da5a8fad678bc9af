"""Routing switch between the two colors of an environment."""

from __future__ import annotations

import asyncio

import structlog

from bluegreen.domain.errors import SwitchFailedError
from bluegreen.domain.models.environment import Color
from bluegreen.domain.ports.services import PlatformAdapter
from bluegreen.infrastructure.observability.metrics import TRAFFIC_SWITCHES_TOTAL


logger = structlog.get_logger(__name__)


class TrafficSwitcher:
    """Moves routing to a color and waits until the change is observable."""

    def __init__(self, platform: PlatformAdapter, poll_interval_seconds: float = 5.0) -> None:
        self._platform = platform
        self._poll_interval = poll_interval_seconds

    async def switch(
        self,
        environment: str,
        from_color: Color,
        to_color: Color,
        timeout: float,
    ) -> None:
        """Switch routing; a switch to the color already served is a no-op."""
        try:
            await asyncio.wait_for(
                self._switch(environment, from_color, to_color), timeout
            )
        except asyncio.TimeoutError as e:
            TRAFFIC_SWITCHES_TOTAL.labels(environment=environment, result="timeout").inc()
            raise SwitchFailedError(
                f"Routing of {environment} did not reach {to_color.value} within {timeout}s",
                {"from": from_color.value, "to": to_color.value},
            ) from e
        except SwitchFailedError:
            TRAFFIC_SWITCHES_TOTAL.labels(environment=environment, result="failure").inc()
            raise
        except Exception as e:
            TRAFFIC_SWITCHES_TOTAL.labels(environment=environment, result="failure").inc()
            raise SwitchFailedError(
                f"Traffic switch failed: {e}",
                {"from": from_color.value, "to": to_color.value},
            ) from e

        TRAFFIC_SWITCHES_TOTAL.labels(environment=environment, result="success").inc()

    async def _switch(self, environment: str, from_color: Color, to_color: Color) -> None:
        if await self._is_routed(environment, to_color, polls=0):
            logger.info(
                "traffic_already_routed",
                environment=environment,
                color=to_color.value,
            )
            return

        logger.info(
            "switching_traffic",
            environment=environment,
            from_color=from_color.value,
            to_color=to_color.value,
        )
        await self._platform.update_routing(environment, to_color)

        polls = 0
        while True:
            polls += 1
            if await self._is_routed(environment, to_color, polls):
                logger.info(
                    "traffic_switched",
                    environment=environment,
                    color=to_color.value,
                    polls=polls,
                )
                return
            await asyncio.sleep(self._poll_interval)

    async def _is_routed(self, environment: str, color: Color, polls: int) -> bool:
        try:
            return await self._platform.verify_routing(environment, color)
        except Exception as e:
            logger.info(
                "traffic_verification_retry",
                environment=environment,
                polls=polls,
                error=str(e),
            )
            return False
