"""HTTP endpoint checker backed by httpx."""

from __future__ import annotations

import time

import httpx
import structlog

from bluegreen.domain.models.health import EndpointCheckResult
from bluegreen.domain.ports.services import EndpointChecker


logger = structlog.get_logger(__name__)


class HttpEndpointChecker(EndpointChecker):
    """GETs an endpoint and treats any 2xx response as healthy."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(follow_redirects=True)

    async def check(self, url: str, timeout: float) -> EndpointCheckResult:
        started = time.perf_counter()
        try:
            response = await self._client.get(url, timeout=timeout)
        except httpx.HTTPError as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.debug("endpoint_check_error", url=url, error=str(e))
            return EndpointCheckResult(
                url=url,
                ok=False,
                response_time_ms=elapsed_ms,
                error=f"{type(e).__name__}: {e}",
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        return EndpointCheckResult(
            url=url,
            ok=response.is_success,
            status_code=response.status_code,
            response_time_ms=elapsed_ms,
            error="" if response.is_success else f"HTTP {response.status_code}",
        )

    async def aclose(self) -> None:
        await self._client.aclose()
