"""Doctor command - check pez's files and directories."""

import json

import typer
from rich.table import Table

from pez.cli.output import console
from pez.cli.plugin_cmd import build_context
from pez.engine.doctor import CheckStatus, collect_checks, has_error

_MARKS = {
    CheckStatus.OK: "[green]✓[/green]",
    CheckStatus.WARN: "[yellow]⚠[/yellow]",
    CheckStatus.ERROR: "[red]✗[/red]",
}


def doctor_command(as_json: bool = False) -> None:
    """Run health checks and exit with 1 if any check reports an error."""
    checks = collect_checks(build_context())

    if as_json:
        typer.echo(json.dumps([c.to_dict() for c in checks], indent=2))
    else:
        table = Table(title="pez doctor", show_header=True, header_style="bold cyan")
        table.add_column("Check", style="white")
        table.add_column("Status")
        table.add_column("Details", style="dim")
        for check in checks:
            table.add_row(check.name, _MARKS[check.status], check.details)
        console.print(table)
        if has_error(checks):
            console.print("[bold red]Errors detected. Please resolve the above items.[/bold red]")

    if has_error(checks):
        raise typer.Exit(code=1)
