"""Terminal rendering and logging setup shared by the commands."""

from __future__ import annotations

import logging
import os

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pez.engine.outcome import OutcomeStatus, PluginOutcome

console = Console()
err_console = Console(stderr=True)

_STATUS_STYLES = {
    OutcomeStatus.INSTALLED: ("green", "✓", "installed"),
    OutcomeStatus.REINSTALLED: ("green", "✓", "reinstalled"),
    OutcomeStatus.RESTORED: ("green", "✓", "restored locked commit"),
    OutcomeStatus.ADOPTED: ("green", "✓", "installed from existing clone"),
    OutcomeStatus.SKIPPED: ("yellow", "•", "skipped"),
    OutcomeStatus.UPGRADED: ("green", "✓", "upgraded"),
    OutcomeStatus.UP_TO_DATE: ("cyan", "•", "already up to date"),
    OutcomeStatus.OUTDATED: ("yellow", "↑", "outdated"),
    OutcomeStatus.MISSING_DIRECTORY: ("yellow", "⚠", "repository directory missing"),
    OutcomeStatus.UNINSTALLED: ("green", "✓", "uninstalled"),
    OutcomeStatus.KEPT: ("yellow", "⚠", "kept"),
    OutcomeStatus.DRY_RUN: ("cyan", "•", "dry run"),
    OutcomeStatus.ABORTED: ("yellow", "✗", "aborted"),
    OutcomeStatus.FAILED: ("red", "✗", "failed"),
}


def configure_logging(verbosity: int = 0) -> None:
    """Send log records to stderr through rich.

    ``PEZ_LOG`` (e.g. ``debug``) overrides the level picked from ``-v`` flags.
    """
    level_name = os.environ.get("PEZ_LOG")
    if level_name:
        level = logging.getLevelName(level_name.upper())
        if not isinstance(level, int):
            level = logging.INFO
    else:
        level = logging.DEBUG if verbosity >= 2 else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=verbosity >= 2)],
        force=True,
    )


def print_outcome(outcome: PluginOutcome, show_files: bool = False) -> None:
    style, mark, label = _STATUS_STYLES[outcome.status]
    line = f"[{style}]{mark}[/{style}] [bold]{escape(outcome.target)}[/bold] {label}"
    if outcome.commit_sha and outcome.status is not OutcomeStatus.FAILED:
        line += f" [dim]({outcome.commit_sha[:7]})[/dim]"
    if outcome.detail:
        line += f": {escape(outcome.detail)}"
    console.print(line, highlight=False)

    if show_files or outcome.status in (OutcomeStatus.KEPT, OutcomeStatus.DRY_RUN):
        for path in outcome.files:
            console.print(f"   - {escape(str(path))}", highlight=False)


def print_outcomes(outcomes: list[PluginOutcome], show_files: bool = False) -> None:
    for outcome in outcomes:
        print_outcome(outcome, show_files=show_files)


def print_error(message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]")
