"""Launch a game command under a profile."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import click

from ..console import err_console
from ..errors import ChildLaunchError
from ..errors import ProfileStoreError
from ..events.bus import EventBus
from ..events.schemas import StateChanged
from ..launch.command import compose_launch
from ..launch.session import LaunchOutcome
from ..launch.supervisor import LaunchSupervisor
from ..paths import create_compositor
from ..paths import create_gpu_switch
from ..paths import create_profile_store
from ..paths import create_settings_manager
from ..profiles.compiler import compile_profile
from ..profiles.schema import Profile
from ..utils.error_format import escape_markup
from ..utils.error_format import format_error_message
from ..utils.error_format import format_issue

logger = logging.getLogger(__name__)

UNMATCHED_PROFILE = "(none)"


def guess_executable(command: tuple[str, ...]) -> str:
    """Pick the game binary out of a launcher command line.

    Compatibility-layer launches look like ``proton waitforexitandrun Game.exe``,
    so a Windows executable anywhere in the line wins over the program itself.
    """
    for arg in command:
        if arg.lower().endswith(".exe"):
            return Path(arg).name
    return Path(command[0]).name


def _print_state(event: StateChanged) -> None:
    err_console.print(f"[dim]state: {event.previous} -> {event.current}[/dim]")


async def _supervise(supervisor: LaunchSupervisor, profile: Profile, command: list[str]) -> LaunchOutcome:
    loop = asyncio.get_running_loop()
    interrupts = 0

    def on_sigint() -> None:
        nonlocal interrupts
        interrupts += 1
        session = supervisor.active_session
        if session is None:
            return
        if interrupts == 1:
            err_console.print("\n[yellow]Cancelling: restoring monitors and GPU profile (Ctrl-C again to stop the game)[/yellow]")
            supervisor.request_cancel(session.token)
        else:
            supervisor.terminate(session.token, force=interrupts > 2)

    loop.add_signal_handler(signal.SIGINT, on_sigint)
    try:
        return await supervisor.launch(profile, command)
    finally:
        loop.remove_signal_handler(signal.SIGINT)


@click.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.option("--profile", "-P", "profile_name", help="Profile to use (default: match by store id or executable)")
@click.option("--steam-appid", type=int, envvar="SteamAppId", help="Store id used to find the profile")
@click.option("--dry-run", is_flag=True, help="Print the command and environment instead of launching")
@click.option("--verbose", "-v", is_flag=True, help="Show session state changes")
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
def run(profile_name: str | None, steam_appid: int | None, dry_run: bool, verbose: bool, command: tuple[str, ...]):
    """Launch COMMAND with a profile applied.

    Use as a launcher option: unvcpfl run --profile NAME -- %command%
    """
    store = create_profile_store()

    if profile_name:
        try:
            profile = store.get(profile_name)
        except ProfileStoreError as e:
            err_console.print(f"[red]Error:[/red] {escape_markup(e)}")
            sys.exit(1)
        if profile is None:
            err_console.print(f"[red]Error:[/red] Profile '{escape_markup(profile_name)}' not found")
            sys.exit(1)
    else:
        profile = store.resolve(steam_appid=steam_appid or None, executable=guess_executable(command))
        if profile is None:
            logger.info(f"No profile matched {command[0]}; launching unchanged")
            profile = Profile(name=UNMATCHED_PROFILE)

    if dry_run:
        compiled = compile_profile(profile)
        launch_command = compose_launch(compiled, command)
        click.echo(f"# profile: {profile.name}")
        for key, value in compiled.env.items():
            click.echo(f"{key}={value}")
        click.echo(launch_command.display())
        return

    settings = create_settings_manager()
    event_bus = EventBus()
    if verbose:
        event_bus.subscribe(_print_state, StateChanged)

    supervisor = LaunchSupervisor(
        create_compositor(),
        create_gpu_switch(),
        event_bus,
        call_timeout=settings.get_external_call_timeout(),
    )

    try:
        outcome = asyncio.run(_supervise(supervisor, profile, list(command)))
    except ChildLaunchError as e:
        err_console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e, include_type=False))}")
        sys.exit(127)

    for issue in outcome.issues:
        err_console.print(f"[yellow]Warning:[/yellow] {escape_markup(format_issue(issue))}")

    if outcome.cancelled and outcome.spawned and outcome.returncode is None:
        err_console.print("[yellow]Session restored; the game is still running.[/yellow]")

    sys.exit(outcome.exit_code)


__all__ = ["run", "guess_executable"]
