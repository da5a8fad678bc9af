"""Unit tests for the httpx endpoint checker."""

from __future__ import annotations

import httpx
import pytest

from bluegreen.infrastructure.probes.http_checker import HttpEndpointChecker
from tests.fakes import mock_client


class TestHttpEndpointChecker:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        checker = HttpEndpointChecker(mock_client(lambda request: httpx.Response(200)))
        result = await checker.check("http://prod-green.test/health", timeout=1)
        assert result.ok
        assert result.status_code == 200
        assert result.error == ""
        assert result.response_time_ms >= 0
        await checker.aclose()

    @pytest.mark.asyncio
    async def test_non_2xx(self) -> None:
        checker = HttpEndpointChecker(mock_client(lambda request: httpx.Response(503)))
        result = await checker.check("http://prod-green.test/health", timeout=1)
        assert not result.ok
        assert result.status_code == 503
        assert result.error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        checker = HttpEndpointChecker(mock_client(handler))
        result = await checker.check("http://prod-green.test/health", timeout=1)
        assert not result.ok
        assert result.status_code is None
        assert result.error.startswith("ConnectError")
