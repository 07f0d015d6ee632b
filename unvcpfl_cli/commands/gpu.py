"""GPU power profile commands."""

from __future__ import annotations

import asyncio

import click

from ..console import console
from ..errors import UnvcpflError
from ..gpu.lact import LactProfileSwitch
from ..paths import create_gpu_switch
from ..utils.error_format import escape_markup
from ..utils.error_format import format_error_message


async def _read_status(switch: LactProfileSwitch) -> tuple[list[str], str | None]:
    profiles = await switch.list_profiles()
    active = await switch.get_active()
    return profiles, active


@click.group(invoke_without_command=True)
@click.pass_context
def gpu(ctx: click.Context):
    """GPU power profile integration (LACT)."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@gpu.command(name="status")
def gpu_status():
    """Show whether LACT is available and which profiles it offers."""
    switch = create_gpu_switch()
    if not switch.is_available():
        console.print("[yellow]LACT is not installed; GPU profile switching is disabled.[/yellow]")
        return

    try:
        profiles, active = asyncio.run(_read_status(switch))
    except UnvcpflError as e:
        console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e, include_type=False))}")
        return

    if not profiles:
        console.print("[yellow]LACT reports no profiles.[/yellow]")
        return

    console.print("[bold]LACT profiles:[/bold]")
    for name in profiles:
        marker = " [green](active)[/green]" if name == active else ""
        console.print(f"  • {escape_markup(name)}{marker}")


__all__ = ["gpu"]
