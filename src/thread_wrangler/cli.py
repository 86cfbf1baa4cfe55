"""thread-wrangler CLI - run the wrangler server and manage its config."""

import logging
import platform
import sys
from pathlib import Path

import click
import yaml

from . import __version__, conventions
from .config import config_path, read_settings

logger = logging.getLogger(__name__)


class _EpilogGroup(click.Group):
    """Click group that preserves epilog formatting."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        if self.epilog:
            formatter.write("\n")
            for line in self.epilog.splitlines():
                formatter.write(f"{line}\n")


EPILOG = """\
Quick-start examples:

  thread-wrangler serve             Run the server in the foreground
  thread-wrangler serve --simulator Run against an in-memory chat host
  thread-wrangler config validate   Check wrangler.yaml
  thread-wrangler version           Show version and environment info"""


@click.group(
    cls=_EpilogGroup,
    epilog=EPILOG,
    help="Thread Wrangler - move, copy and attach chat threads.",
)
@click.version_option(package_name=conventions.PYPI_PACKAGE_NAME)
def main() -> None:
    """Thread Wrangler management tool."""


# ── Server ───────────────────────────────────────────────────────


@main.command(help="Run the wrangler server in the foreground.")
@click.option(
    "--host",
    default="127.0.0.1",
    help="Bind host (use 0.0.0.0 for LAN)",
)
@click.option(
    "--port",
    default=conventions.SERVER_DEFAULT_PORT,
    type=int,
    help="Bind port",
)
@click.option(
    "--simulator",
    is_flag=True,
    help="Use an in-memory chat host instead of the configured server",
)
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, simulator: bool, reload: bool) -> None:
    """Run the server in the foreground."""
    import uvicorn

    from .server.app import create_server
    from .server.services import init_services
    from .server.startup import log_startup_info, setup_logging

    setup_logging()
    server_logger = logging.getLogger("thread_wrangler.server")

    services = init_services(simulator_mode=simulator)
    click.echo(f"Services: client={type(services.client).__name__}")

    server = create_server()
    loaded_apps = server.discover_apps(Path(__file__).parent / "server" / "apps")
    if loaded_apps:
        click.echo(f"Loaded {len(loaded_apps)} app(s): {', '.join(loaded_apps)}")

    log_startup_info(
        host=host,
        port=port,
        apps=loaded_apps,
        settings=services.config_store.get(),
        simulator_mode=services.simulator_mode,
        logger=server_logger,
    )

    click.echo(f"Starting Thread Wrangler Server on {host}:{port}")
    click.echo(f"  URL: http://{host}:{port}")
    click.echo(f"  API docs:  http://{host}:{port}/api/docs")

    uvicorn.run(
        server.app,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


# ── Config ───────────────────────────────────────────────────────


@main.group("config")
def config_group() -> None:
    """Inspect wrangler.yaml."""


@config_group.command("path", help="Print the location of wrangler.yaml.")
def config_path_cmd() -> None:
    click.echo(str(config_path()))


@config_group.command("show", help="Print the effective configuration.")
@click.option(
    "--file",
    "file_",
    default=None,
    type=click.Path(path_type=Path),
    help="Config file (default: ~/.wrangler/wrangler.yaml)",
)
def config_show(file_: Path | None) -> None:
    """Print the effective configuration as YAML."""
    try:
        settings = read_settings(file_)
    except (OSError, ValueError, yaml.YAMLError) as e:
        click.echo(f"Invalid: {e}", err=True)
        sys.exit(1)

    data = settings.model_dump()
    if data["server"]["api_key"]:
        data["server"]["api_key"] = "********"
    click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False), nl=False)


@config_group.command("validate", help="Validate wrangler.yaml.")
@click.option(
    "--file",
    "file_",
    default=None,
    type=click.Path(path_type=Path),
    help="Config file (default: ~/.wrangler/wrangler.yaml)",
)
def config_validate(file_: Path | None) -> None:
    """Validate wrangler.yaml."""
    path = file_ or config_path()
    click.echo(f"Validating {path}...\n")

    if not path.exists():
        click.echo(f"Not found: {path}")
        click.echo("Defaults apply: every optional move is disabled.")
        return

    try:
        settings = read_settings(path)
    except (OSError, ValueError, yaml.YAMLError) as e:
        click.echo(f"Invalid: {e}")
        sys.exit(1)

    policy = settings.wrangler
    click.echo(f"  private channels:  {policy.move_thread_from_private_channel_enable}")
    click.echo(
        f"  direct messages:   {policy.move_thread_from_direct_message_channel_enable}"
    )
    click.echo(
        f"  group messages:    {policy.move_thread_from_group_message_channel_enable}"
    )
    click.echo(f"  across teams:      {policy.move_thread_to_another_team_enable}")
    click.echo(f"  max thread length: {policy.max_thread_count or 'unlimited'}")
    click.echo(f"  host: {settings.host.url or '(not set)'}")
    click.echo("\nValid.")


# ── Info ─────────────────────────────────────────────────────────


@main.command(help="Show version, platform, and environment information.")
def version() -> None:
    """Show version information."""
    click.echo("Thread Wrangler - Version\n")
    click.echo(f"  thread-wrangler:   {__version__}")
    click.echo(f"  Python:            {platform.python_version()}")
    click.echo(f"  Platform:          {platform.platform()}")
    click.echo(f"  Config:            {config_path()}")
