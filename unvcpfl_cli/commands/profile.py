"""Profile management commands."""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path

import click
import tomli_w
from pydantic import ValidationError
from rich.table import Table

from ..console import console
from ..errors import ProfileStoreError
from ..launch.command import RENDER_FLAVORS
from ..launch.command import render_command
from ..paths import create_profile_store
from ..paths import create_settings_manager
from ..profiles.compiler import compile_profile
from ..profiles.schema import Profile
from ..profiles.store import ProfileStore
from ..utils.error_format import escape_markup


def _load_or_exit(store: ProfileStore, name: str) -> Profile:
    try:
        profile = store.get(name)
    except ProfileStoreError as e:
        console.print(f"[red]Error:[/red] {escape_markup(e)}")
        sys.exit(1)
    if profile is None:
        console.print(f"[red]Error:[/red] Profile '{escape_markup(name)}' not found")
        sys.exit(1)
    return profile


def _binding_label(profile: Profile) -> str:
    parts = []
    if profile.steam_appid is not None:
        parts.append(f"appid {profile.steam_appid}")
    if profile.executable_match:
        parts.append(profile.executable_match)
    return ", ".join(parts)


@click.group(invoke_without_command=True)
@click.pass_context
def profile(ctx: click.Context):
    """Manage game launch profiles."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@profile.command(name="list")
def profile_list():
    """List per-game profiles."""
    store = create_profile_store()
    profiles = store.list_bindings()

    if not profiles:
        console.print("[yellow]No profiles found.[/yellow]")
        return

    table = Table(title="Profiles", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Binding", style="yellow")
    table.add_column("Wrappers")
    table.add_column("Status")

    for p in profiles:
        status = "[cyan]default[/cyan]" if p.name == store.default_profile else ""
        if p.degraded:
            status = ", ".join(filter(None, [status, f"[yellow]{len(p.degraded)} warning(s)[/yellow]"]))
        table.add_row(
            escape_markup(p.name),
            escape_markup(_binding_label(p)),
            " ".join(compile_profile(p).wrapper_names),
            status,
        )

    console.print(table)


@profile.command(name="templates")
def profile_templates():
    """List reusable profile templates."""
    store = create_profile_store()
    templates = store.list_templates()

    if not templates:
        console.print("[yellow]No templates found.[/yellow]")
        return

    table = Table(title="Templates", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Description")

    for t in templates:
        table.add_row(escape_markup(t.name), escape_markup(t.description or ""))

    console.print(table)


@profile.command(name="show")
@click.argument("name")
def profile_show(name: str):
    """Show a profile document and any substituted defaults."""
    store = create_profile_store()
    p = _load_or_exit(store, name)

    kind = "template" if p.is_template else "profile"
    console.print(f"[bold]{escape_markup(p.name)}[/bold] [dim]({kind})[/dim]")
    if p.description:
        console.print(escape_markup(p.description))
    console.print()
    console.print(escape_markup(tomli_w.dumps(p.to_document())), highlight=False)

    for message in p.degraded:
        console.print(f"[yellow]Warning:[/yellow] {escape_markup(message)}")


def _save_new_or_exit(store: ProfileStore, new_profile: Profile) -> None:
    try:
        existing = store.get(new_profile.name)
        if existing is not None and existing.name == new_profile.name:
            console.print(f"[red]Error:[/red] Profile '{escape_markup(new_profile.name)}' already exists")
            sys.exit(1)
        store.put(new_profile)
    except ProfileStoreError as e:
        console.print(f"[red]Error:[/red] {escape_markup(e)}")
        sys.exit(1)

    for message in new_profile.degraded:
        console.print(f"[yellow]Warning:[/yellow] {escape_markup(message)}")


@profile.command(name="create")
@click.argument("name")
@click.option("--template", "is_template", is_flag=True, help="Create a reusable template instead of a game profile")
@click.option("--description", help="Free-text description")
@click.option("--steam-appid", type=int, help="Bind the profile to a store id")
@click.option("--exe", "executable", help="Bind the profile to an executable file name")
def profile_create(
    name: str, is_template: bool, description: str | None, steam_appid: int | None, executable: str | None
):
    """Create an empty profile with default settings."""
    store = create_profile_store()
    try:
        new_profile = Profile(
            name=name,
            description=description,
            is_template=is_template,
            steam_appid=steam_appid,
            executable_match=executable,
        )
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid profile: {escape_markup(e)}")
        sys.exit(1)

    _save_new_or_exit(store, new_profile)
    kind = "template" if is_template else "profile"
    console.print(f"[green]✓ Created {kind} '{escape_markup(name)}'[/green]")


@profile.command(name="import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--name", help="Store under this name instead of the one in the file")
def profile_import(file: Path, name: str | None):
    """Import a profile from a TOML document."""
    store = create_profile_store()
    try:
        with open(file, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        console.print(f"[red]Error:[/red] Cannot read {escape_markup(file)}: {escape_markup(e)}")
        sys.exit(1)

    if name:
        data["name"] = name
    try:
        new_profile = Profile(**data)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid profile in {escape_markup(file)}: {escape_markup(e)}")
        sys.exit(1)

    _save_new_or_exit(store, new_profile)
    console.print(f"[green]✓ Imported '{escape_markup(new_profile.name)}' from {escape_markup(file)}[/green]")


@profile.command(name="delete")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
def profile_delete(name: str, yes: bool):
    """Delete a profile."""
    store = create_profile_store()
    if not yes and not click.confirm(f"Delete profile '{name}'?"):
        console.print("[dim]Cancelled[/dim]")
        return

    try:
        store.delete(name)
    except ProfileStoreError as e:
        console.print(f"[red]Error:[/red] {escape_markup(e)}")
        sys.exit(1)

    console.print(f"[green]✓ Deleted profile '{escape_markup(name)}'[/green]")


@profile.command(name="duplicate")
@click.argument("source")
@click.argument("new_name")
def profile_duplicate(source: str, new_name: str):
    """Copy a profile under a new name."""
    store = create_profile_store()
    try:
        store.duplicate(source, new_name)
    except ProfileStoreError as e:
        console.print(f"[red]Error:[/red] {escape_markup(e)}")
        sys.exit(1)

    console.print(f"[green]✓ Created '{escape_markup(new_name)}' from '{escape_markup(source)}'[/green]")


@profile.command(name="apply-template")
@click.argument("template")
@click.argument("game_name")
@click.option("--steam-appid", type=int, help="Bind the new profile to a store id")
@click.option("--exe", "executable", help="Bind the new profile to an executable file name")
def profile_apply_template(template: str, game_name: str, steam_appid: int | None, executable: str | None):
    """Create a per-game profile from a template."""
    store = create_profile_store()
    try:
        created = store.apply_template(template, game_name)
        if steam_appid is not None or executable:
            bound = created.model_copy(update={"steam_appid": steam_appid, "executable_match": executable})
            store.put(bound)
    except ProfileStoreError as e:
        console.print(f"[red]Error:[/red] {escape_markup(e)}")
        sys.exit(1)

    console.print(f"[green]✓ Created '{escape_markup(game_name)}' from template '{escape_markup(template)}'[/green]")


@profile.command(name="env")
@click.argument("name")
def profile_env(name: str):
    """Print the environment variables a profile sets."""
    store = create_profile_store()
    compiled = compile_profile(_load_or_exit(store, name))

    for key, value in compiled.env.items():
        click.echo(f"{key}={value}")


@profile.command(name="command")
@click.argument("name")
@click.option(
    "--flavor",
    type=click.Choice(list(RENDER_FLAVORS)),
    default="helper",
    show_default=True,
    help="helper: run through unvcpfl by name; inline: everything written out",
)
def profile_command(name: str, flavor: str):
    """Print a launch-options line for a game launcher."""
    store = create_profile_store()
    compiled = compile_profile(_load_or_exit(store, name))
    click.echo(render_command(compiled, flavor))


@profile.command(name="default")
@click.option("--set", "set_default", metavar="NAME", help="Set the fallback profile")
@click.option("--clear", is_flag=True, help="Disable the fallback profile")
def profile_default(set_default: str | None, clear: bool):
    """Show or change the profile used when no binding matches."""
    settings = create_settings_manager()

    if clear:
        settings.set_default_profile(None)
        console.print("[green]✓ Cleared default profile[/green]")
        return

    if set_default:
        settings.set_default_profile(set_default)
        console.print(f"[green]✓ Default profile set to '{escape_markup(set_default)}'[/green]")
        return

    current = settings.get_default_profile()
    if current:
        console.print(f"[bold green]Default profile:[/bold green] {escape_markup(current)}")
    else:
        console.print("[yellow]No default profile set[/yellow]")


__all__ = ["profile"]
