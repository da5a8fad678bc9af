"""Validation step executors, one per ``ValidationKind``."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import httpx
import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine

from bluegreen.domain.models.deployment import ValidationKind, ValidationStep
from bluegreen.domain.ports.services import (
    StepOutcome,
    ValidationContext,
    ValidationExecutor,
)
from bluegreen.domain.services.health_probe import join_url
from bluegreen.infrastructure.process import CommandTimeoutError, run_command


logger = structlog.get_logger(__name__)

CustomCheck = Callable[[ValidationStep, ValidationContext], Awaitable[StepOutcome]]


class HttpValidationExecutor(ValidationExecutor):
    """Requests ``params.endpoint`` on the target color.

    Params: ``endpoint`` (path or absolute URL), ``method`` (GET),
    ``headers``, ``expected_status``.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        url = join_url(context.base_url, step.params.get("endpoint", "/"))
        method = str(step.params.get("method", "GET")).upper()
        try:
            response = await self._client.request(
                method,
                url,
                headers=step.params.get("headers") or None,
                timeout=step.timeout_seconds,
            )
        except httpx.HTTPError as e:
            return StepOutcome(success=False, error=f"{method} {url} failed: {e}")

        expected = step.params.get("expected_status")
        ok = response.is_success and (expected is None or response.status_code == int(expected))
        output = f"{method} {url} -> {response.status_code}"
        if ok:
            return StepOutcome(success=True, output=output)
        return StepOutcome(success=False, output=output, error=f"Unexpected status {response.status_code}")


class FileValidationExecutor(ValidationExecutor):
    """Fetches a published file and optionally checks its content.

    Params: ``path``, ``expected_content``.
    """

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        path = step.params.get("path")
        if not path:
            return StepOutcome(success=False, error="File validation requires 'path'")
        url = join_url(context.base_url, path)
        try:
            response = await self._client.get(url, timeout=step.timeout_seconds)
        except httpx.HTTPError as e:
            return StepOutcome(success=False, error=f"GET {url} failed: {e}")

        if not response.is_success:
            return StepOutcome(success=False, error=f"GET {url} returned {response.status_code}")

        expected = step.params.get("expected_content")
        if expected is not None and str(expected) not in response.text:
            return StepOutcome(success=False, error=f"{path} does not contain expected content")
        return StepOutcome(success=True, output=f"{path} ok ({len(response.content)} bytes)")


class CommandValidationExecutor(ValidationExecutor):
    """Runs ``params.command`` without a shell; exit status 0 is success.

    The target color and base URL are exported as ``DEPLOY_COLOR`` and
    ``DEPLOY_BASE_URL``.
    """

    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        command = step.params.get("command")
        if not command:
            return StepOutcome(success=False, error="Command validation requires 'command'")
        env = {
            "DEPLOYMENT_ID": context.deployment_id,
            "DEPLOY_ENVIRONMENT": context.environment,
            "DEPLOY_COLOR": context.color.value,
            "DEPLOY_BASE_URL": context.base_url,
        }
        try:
            result = await run_command(command, step.timeout_seconds, env=env)
        except CommandTimeoutError as e:
            return StepOutcome(success=False, error=str(e))
        except (OSError, ValueError) as e:
            return StepOutcome(success=False, error=f"Could not run command: {e}")

        logger.debug("validation_command_finished", step=step.name, returncode=result.returncode)
        output = result.stdout.strip()
        if result.ok:
            return StepOutcome(success=True, output=output)
        return StepOutcome(
            success=False,
            output=output,
            error=f"exit status {result.returncode}: {result.stderr.strip()}",
        )


class DatabaseValidationExecutor(ValidationExecutor):
    """Runs a probe query against an SQLAlchemy async URL.

    Params: ``url``, ``query`` (defaults to ``SELECT 1``).
    """

    def __init__(self, default_url: str = "") -> None:
        self._default_url = default_url

    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        url = step.params.get("url") or self._default_url
        if not url:
            return StepOutcome(success=False, error="Database validation requires 'url'")
        query = step.params.get("query", "SELECT 1")

        engine = create_async_engine(url)
        try:
            async with engine.connect() as conn:
                result = await conn.execute(text(query))
                row = result.first()
        except SQLAlchemyError as e:
            return StepOutcome(success=False, error=f"Query failed: {e}")
        finally:
            await engine.dispose()
        return StepOutcome(success=True, output=str(tuple(row)) if row is not None else "")


class CustomValidationExecutor(ValidationExecutor):
    """Dispatches to a registered async check named by ``params.check``."""

    def __init__(self, checks: dict[str, CustomCheck] | None = None) -> None:
        self._checks: dict[str, CustomCheck] = dict(checks or {})

    def register(self, name: str, check: CustomCheck) -> None:
        self._checks[name] = check

    async def execute(self, step: ValidationStep, context: ValidationContext) -> StepOutcome:
        name = step.params.get("check", step.name)
        check = self._checks.get(name)
        if check is None:
            return StepOutcome(success=False, error=f"No custom check registered as '{name}'")
        return await check(step, context)


def default_executors(
    client: httpx.AsyncClient,
    custom_checks: dict[str, CustomCheck] | None = None,
    database_url: str = "",
) -> dict[ValidationKind, ValidationExecutor]:
    """Executors for every validation kind, sharing one HTTP client."""
    return {
        ValidationKind.HTTP: HttpValidationExecutor(client),
        ValidationKind.FILE: FileValidationExecutor(client),
        ValidationKind.COMMAND: CommandValidationExecutor(),
        ValidationKind.DATABASE: DatabaseValidationExecutor(database_url),
        ValidationKind.CUSTOM: CustomValidationExecutor(custom_checks),
    }
