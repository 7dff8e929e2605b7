"""CLI commands that only read state: list and files."""

from __future__ import annotations

import asyncio
import json
import sys
from enum import Enum

import typer
from rich.table import Table

from pez.cli.output import console, print_error, print_outcomes
from pez.cli.plugin_cmd import build_context
from pez.engine.outcome import OutcomeStatus
from pez.errors import BatchError, PezError


class ListFormat(str, Enum):
    PLAIN = "plain"
    TABLE = "table"
    JSON = "json"


class FilesDir(str, Enum):
    ALL = "all"
    CONF_D = "conf.d"


class FilesFormat(str, Enum):
    PATHS = "paths"
    JSON = "json"


def list_command(fmt: ListFormat = ListFormat.PLAIN, outdated: bool = False, jobs: int | None = None) -> None:
    """List installed plugins, optionally only those with newer commits upstream."""
    from pez.engine.listing import list_plugins, outdated as check_outdated

    ctx = build_context(jobs)
    try:
        plugins = list_plugins(ctx)
        if outdated:
            results = asyncio.run(check_outdated(ctx))
    except BatchError as e:
        print_outcomes(e.failures)
        print_error(str(e))
        raise typer.Exit(code=1)
    except PezError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    if not outdated:
        rows = [
            {"name": p.name, "repo": p.repo.as_str(), "source": p.source, "commit": p.commit_sha}
            for p in plugins
        ]
        _render_rows(rows, fmt, empty="No plugins installed")
        return

    by_repo = {p.repo.as_str(): p for p in plugins}
    rows = []
    for result in results:
        if result.status is not OutcomeStatus.OUTDATED:
            continue
        plugin = by_repo[result.target]
        rows.append(
            {
                "name": plugin.name,
                "repo": result.target,
                "source": plugin.source,
                "current": plugin.commit_sha,
                "latest": result.commit_sha,
            }
        )
    _render_rows(rows, fmt, empty="All plugins are up to date!")


def _render_rows(rows: list[dict[str, str]], fmt: ListFormat, empty: str) -> None:
    if fmt is ListFormat.JSON:
        typer.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        console.print(empty)
        return
    if fmt is ListFormat.PLAIN:
        for row in rows:
            typer.echo(row["repo"])
        return

    table = Table(show_header=True, header_style="bold cyan")
    for column in rows[0]:
        table.add_column(column.capitalize())
    for row in rows:
        table.add_row(*(_short(key, value) for key, value in row.items()))
    console.print(table)


def _short(key: str, value: str) -> str:
    if key in ("commit", "current", "latest"):
        return value[:7]
    return value


def files_command(
    targets: list[str] | None,
    all_plugins: bool = False,
    directory: FilesDir = FilesDir.ALL,
    fmt: FilesFormat = FilesFormat.PATHS,
    from_command: str | None = None,
    jobs: int | None = None,
) -> None:
    """Print the projected files of plugins, one path per line."""
    from pez.engine.listing import FilesFrom, collect_paths, parse_repo_args, repos_for_command
    from pez.models import TargetDir

    ctx = build_context(jobs)
    args = list(targets or [])
    try:
        if from_command is not None:
            try:
                command = FilesFrom(from_command)
            except ValueError:
                raise PezError(f"Unsupported --from target: {from_command}") from None
            stdin_lines = sys.stdin.read().splitlines() if "--stdin" in args else None
            repos = repos_for_command(ctx, command, args, stdin_lines)
            if repos is None:
                return
        elif all_plugins:
            repos = [p.repo for p in ctx.lock_store.load().plugins]
        elif any(not a.startswith("-") for a in args):
            repos = parse_repo_args([a for a in args if not a.startswith("-")])
        else:
            raise PezError("No plugins specified; pass --all or plugin names")

        if not repos:
            raise PezError("No plugins are installed.")
        dir_filter = TargetDir.CONF_D if directory is FilesDir.CONF_D else None
        paths = collect_paths(ctx, repos, dir_filter)
    except PezError as e:
        print_error(str(e))
        raise typer.Exit(code=1)

    if fmt is FilesFormat.JSON:
        typer.echo(json.dumps([str(p) for p in paths], indent=2))
    else:
        for path in paths:
            typer.echo(str(path))
