"""Monitor inspection commands."""

from __future__ import annotations

import asyncio
import sys

import click
from rich.table import Table

from ..console import console
from ..errors import UnvcpflError
from ..paths import create_compositor
from ..paths import create_profile_store
from ..screen.models import CompositorKind
from ..screen.planner import resolve_layout
from ..utils.error_format import escape_markup
from ..utils.error_format import format_error_message


@click.group(invoke_without_command=True)
@click.pass_context
def monitors(ctx: click.Context):
    """Inspect monitors and preview layout changes."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@monitors.command(name="list")
def monitors_list():
    """List monitors reported by the compositor."""
    adapter = create_compositor()
    if adapter.kind is CompositorKind.UNSUPPORTED:
        console.print("[yellow]Monitor control is not supported on this desktop (Hyprland or Sway required).[/yellow]")
        return

    try:
        found = asyncio.run(adapter.list_monitors())
    except UnvcpflError as e:
        console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e, include_type=False))}")
        sys.exit(1)

    table = Table(title=f"Monitors ({adapter.kind.display_name})", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Description")
    table.add_column("Mode")
    table.add_column("Position")
    table.add_column("Scale")
    table.add_column("Status")

    for m in found:
        status = "[green]active[/green]" if m.active else "[dim]disabled[/dim]"
        if m.focused:
            status += " [cyan]focused[/cyan]"
        table.add_row(
            escape_markup(m.name),
            escape_markup(m.description),
            m.mode,
            f"{m.x},{m.y}",
            f"{m.scale:g}",
            status,
        )

    console.print(table)


@monitors.command(name="plan")
@click.argument("profile_name")
def monitors_plan(profile_name: str):
    """Show the directives a profile's screen settings would produce."""
    store = create_profile_store()
    profile = store.get(profile_name)
    if profile is None:
        console.print(f"[red]Error:[/red] Profile '{escape_markup(profile_name)}' not found")
        sys.exit(1)

    adapter = create_compositor()
    if adapter.kind is CompositorKind.UNSUPPORTED:
        console.print("[yellow]Monitor control is not supported on this desktop; nothing would change.[/yellow]")
        return

    try:
        snapshot = asyncio.run(adapter.list_monitors())
    except UnvcpflError as e:
        console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e, include_type=False))}")
        sys.exit(1)

    plan = resolve_layout(snapshot, profile.screen, adapter.kind)

    if plan.fell_back:
        console.print(
            f"[yellow]Monitor '{escape_markup(profile.screen.target_monitor)}' not connected; "
            f"using {escape_markup(plan.target)}[/yellow]"
        )
    if plan.is_noop:
        console.print("[dim]No layout changes[/dim]")
        return

    console.print(f"[bold]Target:[/bold] {escape_markup(plan.target)}")
    for directive in plan.directives:
        console.print(f"  • {escape_markup(directive.describe())}")
    if profile.screen.restore_monitors_after_exit:
        console.print("[dim]Layout is restored when the game exits.[/dim]")


__all__ = ["monitors"]
