"""unvcpfl - per-game launch profiles for Linux gaming."""

import logging

import click

from .commands.gpu import gpu as gpu_group
from .commands.monitors import monitors as monitors_group
from .commands.profile import profile as profile_group
from .commands.run import run as run_cmd
from .logging_setup import init_json_logging
from .paths import create_settings_manager

logger = logging.getLogger(__name__)


@click.group(invoke_without_command=True)
@click.version_option(package_name="unvcpfl")
@click.pass_context
def cli(ctx: click.Context):
    """unvcpfl - compile game profiles into launch environments and supervise game sessions."""
    settings = create_settings_manager()
    log_path = init_json_logging(level=settings.get_log_level())
    logger.debug(f"Logging to {log_path}")

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit()


cli.add_command(run_cmd)
cli.add_command(profile_group)
cli.add_command(monitors_group)
cli.add_command(gpu_group)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
