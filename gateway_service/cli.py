"""Command line entry point for the gateway."""

from __future__ import annotations

import json
from pathlib import Path

import click
from pydantic import TypeAdapter, ValidationError

from gateway_service import __version__
from gateway_service.core.exceptions import CompositionError
from gateway_service.core.settings import (
    get_graphql_settings,
    get_logging_settings,
    get_redis_settings,
)
from gateway_service.features.graphql.pubsub import InMemoryPubSub
from gateway_service.features.graphql.schema_composer import compose
from gateway_service.features.graphql.types import ServiceDescriptor

_SERVICE_LIST = TypeAdapter(list[ServiceDescriptor])


def success(message: str) -> None:
    """Print a success message in green."""
    click.secho(f"✓ {message}", fg="green", err=True)


def error(message: str) -> None:
    """Print an error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def info(message: str) -> None:
    """Print an info message in blue."""
    click.secho(f"ℹ {message}", fg="blue", err=True)


@click.group()
@click.version_option(version=__version__, prog_name="graphql-gateway")
def cli() -> None:
    """GraphQL gateway management commands.

    \b
    Quick Start:
      graphql-gateway serve                       # Run the HTTP server
      graphql-gateway print-schema services.json  # Compose offline
      graphql-gateway show-config                 # Effective settings
    """


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind")
@click.option("--port", default=8000, type=int, help="Port to bind")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload on code changes")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["critical", "error", "warning", "info", "debug"]),
    help="Server log level (default: LOG_LEVEL)",
)
def serve(host: str, port: int, reload: bool, log_level: str | None) -> None:
    """Run the gateway HTTP server."""
    import uvicorn

    settings = get_graphql_settings()
    info(f"Serving GraphQL at http://{host}:{port}{settings.path}")
    uvicorn.run(
        "gateway_service.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level or get_logging_settings().level.lower(),
    )


@cli.command(name="print-schema")
@click.argument("services_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def print_schema_command(services_file: Path) -> None:
    """Compose the schema of the services described in SERVICES_FILE.

    SERVICES_FILE holds a JSON list of service descriptors.
    """
    try:
        services = _SERVICE_LIST.validate_json(services_file.read_text())
    except ValidationError as exc:
        error(f"Invalid service descriptors: {exc.error_count()} errors")
        raise SystemExit(2) from exc

    try:
        compiled = compose(services, pubsub=InMemoryPubSub(), generation=1)
    except CompositionError as exc:
        error(f"{exc.detail}: {exc.extra.get('reason', '')}")
        raise SystemExit(1) from exc

    click.echo(compiled.sdl)
    success(f"Composed schema from {len(compiled.services)} services")


@cli.command(name="show-config")
def show_config() -> None:
    """Print the effective settings as JSON."""
    redis_settings = get_redis_settings()
    payload = {
        "graphql": get_graphql_settings().model_dump(mode="json"),
        "logging": get_logging_settings().model_dump(mode="json"),
        "redis": {"configured": redis_settings.is_configured},
    }
    click.echo(json.dumps(payload, indent=2))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
