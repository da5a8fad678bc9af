"""Health probing of one color of an environment."""

from __future__ import annotations

import asyncio

import structlog

from bluegreen.domain.errors import HealthTimeoutError
from bluegreen.domain.models.environment import Color
from bluegreen.domain.models.health import EndpointCheckResult, HealthReport
from bluegreen.domain.ports.services import EndpointChecker
from bluegreen.infrastructure.observability.metrics import HEALTH_CHECKS_TOTAL


logger = structlog.get_logger(__name__)


def resolve_base_url(template: str, environment: str, color: Color) -> str:
    """Render the base URL for ``(environment, color)``."""
    return template.format(environment=environment, color=color.value).rstrip("/")


def join_url(base_url: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url}/{path.lstrip('/')}" if path else base_url


class HealthProbe:
    """Runs the configured endpoint checks and reduces them to a verdict.

    A check fails when it raises, exceeds its timeout or returns a non-2xx
    status. The color is healthy only with zero failures and an average
    latency under ``latency_threshold_ms``.
    """

    def __init__(
        self,
        checker: EndpointChecker,
        base_url_template: str,
        latency_threshold_ms: float = 2000.0,
    ) -> None:
        self._checker = checker
        self._base_url_template = base_url_template
        self._latency_threshold_ms = latency_threshold_ms

    async def check(
        self,
        environment: str,
        color: Color,
        endpoints: list[str],
        per_check_timeout: float,
        base_url_template: str | None = None,
    ) -> HealthReport:
        base_url = resolve_base_url(
            base_url_template or self._base_url_template, environment, color
        )
        if not endpoints:
            return HealthReport(healthy=True)

        issues: list[str] = []
        total_time = 0.0
        failures = 0
        for endpoint in endpoints:
            url = join_url(base_url, endpoint)
            result = await self._check_one(url, per_check_timeout)
            total_time += result.response_time_ms
            if not result.ok:
                failures += 1
                issues.append(f"{url}: {result.error or f'HTTP {result.status_code}'}")

        avg_response_time = total_time / len(endpoints)
        error_rate = failures / len(endpoints) * 100
        healthy = failures == 0 and avg_response_time < self._latency_threshold_ms
        if failures == 0 and not healthy:
            issues.append(
                f"average response time {avg_response_time:.0f}ms exceeds "
                f"{self._latency_threshold_ms:.0f}ms"
            )

        HEALTH_CHECKS_TOTAL.labels(
            environment=environment,
            color=color.value,
            result="healthy" if healthy else "unhealthy",
        ).inc()
        return HealthReport(
            healthy=healthy,
            avg_response_time_ms=avg_response_time,
            error_rate=error_rate,
            issues=issues,
        )

    async def _check_one(self, url: str, timeout: float) -> EndpointCheckResult:
        try:
            return await asyncio.wait_for(self._checker.check(url, timeout), timeout)
        except asyncio.TimeoutError:
            return EndpointCheckResult(
                url=url,
                ok=False,
                response_time_ms=timeout * 1000,
                error=f"timed out after {timeout}s",
            )
        except Exception as e:
            return EndpointCheckResult(url=url, ok=False, error=str(e) or type(e).__name__)

    async def wait_until_healthy(
        self,
        environment: str,
        color: Color,
        endpoints: list[str],
        per_check_timeout: float,
        max_retries: int,
        retry_delay: float,
        base_url_template: str | None = None,
    ) -> HealthReport:
        """Poll ``check`` with a fixed delay until healthy or retries run out."""
        attempts = max(max_retries, 1)
        report: HealthReport | None = None
        for attempt in range(1, attempts + 1):
            report = await self.check(
                environment, color, endpoints, per_check_timeout, base_url_template
            )
            if report.healthy:
                logger.info(
                    "environment_healthy",
                    environment=environment,
                    color=color.value,
                    attempt=attempt,
                )
                return report

            logger.info(
                "health_check_retry",
                environment=environment,
                color=color.value,
                attempt=attempt,
                max_retries=attempts,
                issues=report.issues,
            )
            if attempt < attempts:
                await asyncio.sleep(retry_delay)

        raise HealthTimeoutError(
            f"{environment}-{color.value} did not become healthy after {attempts} checks",
            last_report=report,
        )
