"""users-mcp CLI.

Usage:
    users-mcp host                       # Serve user capabilities over stdio
    users-mcp host --data-file users.json
    users-mcp driver                     # Spawn the host and open the menu
    users-mcp driver --model gemini-2.0-flash --max-steps 3
    users-mcp config                     # Show effective configuration
    users-mcp config --format json
"""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
import sys

import click

from . import __version__
from .config import Settings

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(level: str) -> None:
    """Send all logging to stderr; in host mode stdout carries protocol traffic only."""
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.WARNING),
        format=LOG_FORMAT,
        force=True,
    )


@click.group()
@click.version_option(__version__, prog_name="users-mcp")
@click.option("--log-level", default=None, help="Log level (overrides USERS_MCP_LOG_LEVEL)")
@click.pass_context
def main(ctx: click.Context, log_level: str | None) -> None:
    """Users capability host and interactive driver."""
    try:
        settings = Settings.from_env()
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    ctx.obj = settings.override(log_level=log_level.upper() if log_level else None)


# =============================================================================
# Host
# =============================================================================


@main.command()
@click.option("--data-file", type=click.Path(dir_okay=False), help="User data JSON file")
@click.option(
    "--request-timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Request timeout in seconds",
)
@click.option(
    "--sampling-timeout",
    type=click.FloatRange(min=0, min_open=True),
    help="Sampling timeout in seconds",
)
@click.pass_obj
def host(
    settings: Settings,
    data_file: str | None,
    request_timeout: float | None,
    sampling_timeout: float | None,
) -> None:
    """Serve the user capabilities over stdin/stdout."""
    settings = settings.override(
        data_file=data_file,
        request_timeout=request_timeout,
        sampling_timeout=sampling_timeout,
    )
    _configure_logging(settings.log_level)

    try:
        asyncio.run(_run_host(settings))
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


async def _run_host(settings: Settings) -> None:
    from .host import HostServer, build_registry
    from .store import UserStore
    from .transport import StdioTransport

    registry = build_registry(UserStore(settings.data_file))
    server = HostServer(
        registry,
        request_timeout=settings.request_timeout,
        sampling_timeout=settings.sampling_timeout,
    )
    await server.serve(StdioTransport())


# =============================================================================
# Driver
# =============================================================================


@main.command()
@click.option("--data-file", type=click.Path(dir_okay=False), help="User data file for the host")
@click.option("--model", help="Gemini model id")
@click.option("--max-steps", type=click.IntRange(min=1), help="Step ceiling for autonomous tasks")
@click.option(
    "--host-command",
    help="Command that launches the host (default: this interpreter with 'users_mcp host')",
)
@click.pass_obj
def driver(
    settings: Settings,
    data_file: str | None,
    model: str | None,
    max_steps: int | None,
    host_command: str | None,
) -> None:
    """Spawn the host and open the interactive menu."""
    settings = settings.override(data_file=data_file, model=model, max_steps=max_steps)
    _configure_logging(settings.log_level)

    if not settings.gemini_api_key:
        click.echo("Warning: GEMINI_API_KEY is not set; generation will fail", err=True)

    command = shlex.split(host_command) if host_command else None
    try:
        asyncio.run(_run_driver(settings, command))
    except (KeyboardInterrupt, click.Abort):
        click.echo("\nBye", err=True)


async def _run_driver(settings: Settings, command: list[str] | None) -> None:
    from .driver import (
        ClickPrompter,
        DriverClient,
        DriverSession,
        GeminiClient,
        SamplingHandler,
        host_command,
    )

    gemini = GeminiClient(
        settings.gemini_api_key, model=settings.model, timeout=settings.request_timeout
    )
    prompter = ClickPrompter()
    session: DriverSession | None = None

    async def confirm(text: str) -> bool:
        assert session is not None
        return await session.confirm_sampling(text)

    client = DriverClient.spawn(
        command or host_command(settings.data_file),
        env={"USERS_MCP_LOG_LEVEL": settings.log_level},
        # A tool call can span a full sampling round trip
        request_timeout=settings.request_timeout + settings.sampling_timeout,
        sampling_handler=SamplingHandler(gemini, model=settings.model, confirm=confirm),
    )
    session = DriverSession(client, gemini, prompter, max_steps=settings.max_steps)

    try:
        await client.connect()
        await session.run()
    finally:
        await client.close()
        await gemini.aclose()


# =============================================================================
# Config
# =============================================================================


@main.command("config")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
@click.pass_obj
def show_config(settings: Settings, output_format: str) -> None:
    """Show the effective configuration.

    Examples:

        users-mcp config
        users-mcp config --format json
    """
    data = settings.to_display()

    if output_format == FORMAT_JSON:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo("users-mcp Configuration")
    click.echo("-" * 40)
    click.echo(f"Gemini API key:     {data['gemini_api_key']}")
    click.echo(f"Model:              {data['model']}")
    click.echo(f"Data file:          {data['data_file']}")
    click.echo(f"Request timeout:    {data['request_timeout']}s")
    click.echo(f"Sampling timeout:   {data['sampling_timeout']}s")
    click.echo(f"Max steps:          {data['max_steps']}")
    click.echo(f"Log level:          {data['log_level']}")


if __name__ == "__main__":
    main()
