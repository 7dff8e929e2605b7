"""CLI commands that change installed plugins."""

from __future__ import annotations

import asyncio
import sys
from typing import NoReturn

import typer
from rich.prompt import Confirm

from pez.cli.output import console, print_error, print_outcomes
from pez.config.paths import load_settings
from pez.engine.context import EngineContext
from pez.errors import BatchError, PezError


def build_context(jobs: int | None = None) -> EngineContext:
    return EngineContext.from_settings(load_settings(jobs=jobs))


def _fail(error: PezError) -> NoReturn:
    if isinstance(error, BatchError):
        print_outcomes(error.outcomes)
    print_error(str(error))
    raise typer.Exit(code=1)


def install_command(targets: list[str] | None, force: bool = False, prune: bool = False, jobs: int | None = None) -> None:
    """Install plugins and report one line per plugin."""
    from pez.engine.install import install, install_from_config, undeclared_plugins

    ctx = build_context(jobs)
    try:
        if targets:
            outcomes = asyncio.run(install(ctx, targets, force=force))
        else:
            outcomes = asyncio.run(install_from_config(ctx, force=force))
    except PezError as e:
        _fail(e)

    print_outcomes(outcomes)

    if prune:
        prune_command(force=force, jobs=jobs, ctx=ctx)
    elif not targets:
        leftovers = undeclared_plugins(ctx)
        if leftovers:
            console.print("Notice: The following plugins are in pez-lock.toml but not in pez.toml:")
            for plugin in leftovers:
                console.print(f"  - {plugin.name} ({plugin.repo})", highlight=False)
            console.print("If you want to remove them completely, please run:")
            console.print("  pez install --prune")
            console.print("or:")
            console.print("  pez prune")


def upgrade_command(targets: list[str] | None, jobs: int | None = None) -> None:
    from pez.engine.upgrade import upgrade

    ctx = build_context(jobs)
    try:
        outcomes = asyncio.run(upgrade(ctx, targets))
    except PezError as e:
        _fail(e)
    print_outcomes(outcomes)


def uninstall_command(
    targets: list[str] | None,
    force: bool = False,
    stdin: bool = False,
    jobs: int | None = None,
) -> None:
    from pez.engine.uninstall import read_targets_from_stream, uninstall

    targets = list(targets or [])
    if stdin:
        # Read all of stdin up front, before any plugin is touched.
        targets.extend(read_targets_from_stream(sys.stdin.read().splitlines()))
    if not targets:
        print_error("No plugins specified")
        raise typer.Exit(code=1)

    ctx = build_context(jobs)
    try:
        outcomes = asyncio.run(uninstall(ctx, targets, force=force))
    except PezError as e:
        _fail(e)
    print_outcomes(outcomes, show_files=True)


def prune_command(
    force: bool = False,
    dry_run: bool = False,
    yes: bool = False,
    jobs: int | None = None,
    ctx: EngineContext | None = None,
) -> None:
    from pez.engine.prune import PrunePlan, prune

    ctx = ctx or build_context(jobs)

    def _confirm(plan: PrunePlan) -> bool:
        console.print(f"[yellow]No plugins are defined in {ctx.settings.config_path}.[/yellow]")
        console.print(f"[yellow]All {len(plan.removals)} plugin(s) in pez-lock.toml will be removed.[/yellow]")
        return Confirm.ask("Are you sure you want to continue?", default=False)

    try:
        result = asyncio.run(prune(ctx, force=force, dry_run=dry_run, yes=yes, confirm=_confirm))
    except PezError as e:
        _fail(e)

    if result.plan.is_empty:
        console.print("[green]No unused plugins found. Your environment is clean![/green]")
        return
    if result.aborted:
        console.print("[yellow]Aborted.[/yellow]")
        return
    print_outcomes(result.outcomes, show_files=True)
    if dry_run:
        console.print("\nDry run completed. No files have been removed.")


def migrate_command(force: bool = False, dry_run: bool = False, install: bool = False, jobs: int | None = None) -> None:
    from pez.engine.migrate import ChangeKind, migrate

    ctx = build_context(jobs)
    try:
        result = asyncio.run(migrate(ctx, force=force, dry_run=dry_run, install=install))
    except PezError as e:
        _fail(e)

    if dry_run:
        console.print("Dry run: planned updates to pez.toml")
    for change in result.changes:
        if change.kind is ChangeKind.UNCHANGED:
            continue
        selector = change.spec.selector.describe()
        suffix = f"@{selector}" if selector else ""
        console.print(f"  - {change.repo}{suffix} [dim]({change.kind.value})[/dim]", highlight=False)
    if not result.planned:
        console.print("Nothing to update.")
    print_outcomes(result.installed)
