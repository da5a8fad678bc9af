"""Hosting platform adapters.

Each adapter knows how to push a version to one color of an environment,
point production routing at a color, and read back which color is routed.
"""

from __future__ import annotations

import json
import os
from typing import Any

import httpx
import structlog

from bluegreen.config import PlatformKind, PlatformSettings
from bluegreen.domain.models.environment import Color
from bluegreen.domain.ports.services import PlatformAdapter
from bluegreen.infrastructure.process import run_command


logger = structlog.get_logger(__name__)


class PlatformCommandError(RuntimeError):
    """Raised when the platform refuses an operation."""


def slot_name(environment: str, color: Color) -> str:
    return f"{environment}-{color.value}"


class KubernetesPlatformAdapter(PlatformAdapter):
    """Drives a Kubernetes cluster through ``kubectl``.

    Each color is a Deployment named ``<environment>-<color>``; production
    traffic goes through the Service ``<environment>`` whose selector picks
    the live color.
    """

    def __init__(
        self,
        kubectl_binary: str = "kubectl",
        namespace: str = "default",
        manifest_dir: str = "k8s",
        image: str = "",
        selector_key: str = "color",
        command_timeout: float = 300.0,
    ) -> None:
        self._kubectl = kubectl_binary
        self._namespace = namespace
        self._manifest_dir = manifest_dir
        self._image = image
        self._selector_key = selector_key
        self._timeout = command_timeout

    async def deploy(self, environment: str, color: Color, version: str) -> None:
        name = slot_name(environment, color)
        manifest = os.path.join(self._manifest_dir, f"{name}.yaml")
        if os.path.exists(manifest):
            await self._kubectl_run("apply", "-f", manifest)
        if self._image:
            await self._kubectl_run(
                "set", "image", f"deployment/{name}", f"*={self._image}:{version}"
            )
        await self._kubectl_run(
            "annotate", f"deployment/{name}", f"bluegreen/version={version}", "--overwrite"
        )
        await self._kubectl_run(
            "rollout", "status", f"deployment/{name}", f"--timeout={int(self._timeout)}s"
        )
        logger.info("kubernetes_slot_deployed", deployment=name, version=version)

    async def update_routing(self, environment: str, color: Color) -> None:
        patch = {"spec": {"selector": {self._selector_key: color.value}}}
        await self._kubectl_run(
            "patch", "service", environment, "--type=merge", "-p", json.dumps(patch)
        )

    async def verify_routing(self, environment: str, color: Color) -> bool:
        output = await self._kubectl_run(
            "get", "service", environment,
            "-o", f"jsonpath={{.spec.selector.{self._selector_key}}}",
        )
        return output.strip() == color.value

    async def _kubectl_run(self, *args: str) -> str:
        argv = [self._kubectl, "--namespace", self._namespace, *args]
        result = await run_command(argv, self._timeout)
        if not result.ok:
            raise PlatformCommandError(
                f"kubectl {args[0]} failed ({result.returncode}): {result.stderr.strip()}"
            )
        return result.stdout


class RestPlatformAdapter(PlatformAdapter):
    """Base for platforms managed through a JSON REST API."""

    def __init__(
        self,
        api_url: str,
        api_token: str = "",
        request_timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = client or httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=request_timeout,
        )

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PlatformCommandError(
                f"{method} {path} returned {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise PlatformCommandError(f"{method} {path} failed: {e}") from e
        if not response.content:
            return {}
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()


class CdnPlatformAdapter(RestPlatformAdapter):
    """CDN with one origin per color and a routing rule per environment."""

    async def deploy(self, environment: str, color: Color, version: str) -> None:
        await self._request(
            "POST",
            f"/environments/{environment}/origins/{color.value}/deployments",
            {"version": version},
        )
        logger.info("cdn_origin_deployed", environment=environment, color=color.value)

    async def update_routing(self, environment: str, color: Color) -> None:
        await self._request(
            "PUT", f"/environments/{environment}/routing", {"origin": color.value}
        )

    async def verify_routing(self, environment: str, color: Color) -> bool:
        body = await self._request("GET", f"/environments/{environment}/routing")
        return body.get("origin") == color.value


class StaticHostPlatformAdapter(RestPlatformAdapter):
    """Static hosting where each color is a named deployment behind an alias."""

    async def deploy(self, environment: str, color: Color, version: str) -> None:
        name = slot_name(environment, color)
        await self._request(
            "POST", "/deployments", {"name": name, "version": version, "target": "preview"}
        )
        logger.info("static_slot_deployed", deployment=name, version=version)

    async def update_routing(self, environment: str, color: Color) -> None:
        await self._request(
            "PUT", f"/aliases/{environment}", {"deployment": slot_name(environment, color)}
        )

    async def verify_routing(self, environment: str, color: Color) -> bool:
        body = await self._request("GET", f"/aliases/{environment}")
        return body.get("deployment") == slot_name(environment, color)


class SimulatedPlatformAdapter(PlatformAdapter):
    """In-memory platform for local runs and tests.

    ``routing_lag`` makes ``verify_routing`` report the old color for that
    many polls after each routing update.
    """

    def __init__(self, routing_lag: int = 0) -> None:
        self.deployed: dict[tuple[str, Color], str] = {}
        self.routes: dict[str, Color] = {}
        self.calls: list[tuple[str, str, Color]] = []
        self.fail_deploy: Exception | None = None
        self.fail_routing: Exception | None = None
        self._routing_lag = routing_lag
        self._pending_lag: dict[str, int] = {}

    async def deploy(self, environment: str, color: Color, version: str) -> None:
        self.calls.append(("deploy", environment, color))
        if self.fail_deploy is not None:
            raise self.fail_deploy
        self.deployed[(environment, color)] = version

    async def update_routing(self, environment: str, color: Color) -> None:
        self.calls.append(("update_routing", environment, color))
        if self.fail_routing is not None:
            raise self.fail_routing
        self.routes[environment] = color
        self._pending_lag[environment] = self._routing_lag

    async def verify_routing(self, environment: str, color: Color) -> bool:
        lag = self._pending_lag.get(environment, 0)
        if lag > 0:
            self._pending_lag[environment] = lag - 1
            return False
        return self.routes.get(environment) == color


def create_platform_adapter(settings: PlatformSettings) -> PlatformAdapter:
    """Build the adapter selected by ``settings.kind``."""
    if settings.kind == PlatformKind.KUBERNETES:
        return KubernetesPlatformAdapter(
            kubectl_binary=settings.kubectl_binary,
            namespace=settings.namespace,
            manifest_dir=settings.manifest_dir,
            image=settings.image,
            selector_key=settings.service_selector_key,
        )
    if settings.kind in (PlatformKind.CDN, PlatformKind.STATIC_HOST):
        if not settings.api_url:
            raise ValueError(f"PLATFORM_API_URL is required for platform {settings.kind.value}")
        adapter_cls = (
            CdnPlatformAdapter if settings.kind == PlatformKind.CDN else StaticHostPlatformAdapter
        )
        return adapter_cls(
            api_url=settings.api_url,
            api_token=settings.api_token,
            request_timeout=settings.request_timeout_seconds,
        )
    return SimulatedPlatformAdapter()
