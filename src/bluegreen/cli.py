"""``deploy`` command line interface.

Exit status of ``deploy start``: 0 completed, 1 failed or refused,
2 rolled back.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import click
import structlog

from bluegreen.config import get_settings, load_deployment_config, Settings
from bluegreen.container import ServiceContainer
from bluegreen.domain.errors import OrchestrationError
from bluegreen.domain.models.deployment import DeploymentOptions, DeploymentState
from bluegreen.infrastructure.observability.logging import setup_logging


logger = structlog.get_logger(__name__)

EXIT_CODES = {
    DeploymentState.COMPLETED: 0,
    DeploymentState.FAILED: 1,
    DeploymentState.ROLLED_BACK: 2,
}

ContainerFactory = Callable[[Settings], ServiceContainer]


def _run(ctx: click.Context, action: Callable[[ServiceContainer], Awaitable[int]]) -> None:
    """Run ``action`` inside a fresh container and exit with its status."""
    factory: ContainerFactory = ctx.obj.get("container_factory", ServiceContainer)
    settings: Settings = ctx.obj["settings"]

    async def _main() -> int:
        container = factory(settings)
        await container.initialize()
        try:
            return await action(container)
        except OrchestrationError as e:
            logger.warning("command_failed", code=e.code, error=e.message)
            _echo_error(e)
            return 1
        finally:
            await container.close()

    ctx.exit(asyncio.run(_main()))


def _echo_json(document: Any) -> None:
    click.echo(json.dumps(document, indent=2, default=str))


def _echo_error(error: OrchestrationError) -> None:
    click.echo(
        json.dumps({"error": error.code, "message": error.message, "details": error.details}),
        err=True,
    )


@click.group()
@click.option("--log-level", default=None, help="Log level (defaults to LOG_LEVEL).")
@click.option("--json-logs/--console-logs", default=True, help="Log renderer on stderr.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, json_logs: bool) -> None:
    """Blue/green deployment orchestrator."""
    ctx.ensure_object(dict)
    settings = ctx.obj.setdefault("settings", get_settings())
    setup_logging(log_level or settings.observability.log_level, json_output=json_logs)


@cli.command()
@click.option("--env", "environment", required=True, help="Target environment.")
@click.option("--version", "version", required=True, help="Version to deploy.")
@click.option("--force", is_flag=True, help="Skip conflict and health pre-checks.")
@click.option("--skip-validation", is_flag=True, help="Do not run validation steps.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Override the deployment timeout in seconds.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Deployment config YAML (default <config_dir>/<env>.yaml).")
@click.pass_context
def start(
    ctx: click.Context,
    environment: str,
    version: str,
    force: bool,
    skip_validation: bool,
    timeout: float | None,
    config_path: str | None,
) -> None:
    """Deploy VERSION to the idle color of ENV and switch traffic to it."""
    settings: Settings = ctx.obj["settings"]
    try:
        config = load_deployment_config(
            environment, config_path, settings.deployment.config_dir
        )
    except (OSError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint="--config") from e

    options = DeploymentOptions(
        force=force,
        skip_validation=skip_validation,
        custom_timeout_seconds=timeout,
    )

    async def action(container: ServiceContainer) -> int:
        status = await container.orchestrator.start_deployment(config, version, options)
        click.echo(status.model_dump_json(indent=2))
        return EXIT_CODES.get(status.status, 1)

    _run(ctx, action)


@cli.command()
@click.option("--id", "deployment_id", required=True, help="Deployment id.")
@click.pass_context
def status(ctx: click.Context, deployment_id: str) -> None:
    """Show a deployment."""

    async def action(container: ServiceContainer) -> int:
        deployment = await container.orchestrator.get_deployment(deployment_id)
        click.echo(deployment.model_dump_json(indent=2))
        return 0

    _run(ctx, action)


@cli.command()
@click.option("--id", "deployment_id", required=True, help="Deployment id.")
@click.option("--reason", required=True, help="Why the deployment is rolled back.")
@click.pass_context
def rollback(ctx: click.Context, deployment_id: str, reason: str) -> None:
    """Roll a finished deployment back to its previous color."""

    async def action(container: ServiceContainer) -> int:
        deployment = await container.orchestrator.rollback_deployment(deployment_id, reason)
        click.echo(deployment.model_dump_json(indent=2))
        return 0 if deployment.status == DeploymentState.ROLLED_BACK else 1

    _run(ctx, action)


@cli.command(name="list")
@click.option("--env", "environment", default=None, help="Only this environment.")
@click.pass_context
def list_deployments(ctx: click.Context, environment: str | None) -> None:
    """List deployments, newest first."""

    async def action(container: ServiceContainer) -> int:
        deployments = await container.orchestrator.list_deployments(environment)
        _echo_json([d.model_dump(mode="json") for d in deployments])
        return 0

    _run(ctx, action)


@cli.command()
@click.option("--env", "environment", default=None, help="Only this environment.")
@click.pass_context
def metrics(ctx: click.Context, environment: str | None) -> None:
    """Show aggregate deployment statistics."""

    async def action(container: ServiceContainer) -> int:
        summary = await container.orchestrator.get_metrics(environment)
        _echo_json(summary.model_dump(mode="json"))
        return 0

    _run(ctx, action)


@cli.command()
@click.option("--env", "environment", required=True, help="Environment to probe.")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              default=None, help="Deployment config YAML.")
@click.pass_context
def health(ctx: click.Context, environment: str, config_path: str | None) -> None:
    """Probe the live color of ENV and record the result."""
    settings: Settings = ctx.obj["settings"]
    config = load_deployment_config(environment, config_path, settings.deployment.config_dir)

    async def action(container: ServiceContainer) -> int:
        report = await container.orchestrator.check_environment_health(config)
        _echo_json(report.model_dump(mode="json"))
        return 0 if report.healthy else 1

    _run(ctx, action)


def main() -> None:
    cli(prog_name="deploy")


if __name__ == "__main__":
    main()
