"""Main CLI application using Typer."""

import sys

import typer
from rich.console import Console

from pez import __version__
from pez.cli.list_cmd import FilesDir, FilesFormat, ListFormat

app = typer.Typer(
    name="pez",
    help="pez - a plugin manager for the fish shell",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def callback(
    ctx: typer.Context,
    verbose: int = typer.Option(0, "--verbose", "-v", count=True, help="Increase log verbosity (-vv for debug)"),
    jobs: int = typer.Option(None, "--jobs", "-j", min=1, help="Maximum concurrent plugin operations (env: PEZ_JOBS)"),
):
    """Manage fish plugins declared in pez.toml."""
    from pez.cli.output import configure_logging

    configure_logging(verbose)
    ctx.obj = {"jobs": jobs}


def _jobs(ctx: typer.Context):
    return (ctx.obj or {}).get("jobs")


@app.command()
def version():
    """Show pez version."""
    console.print(f"pez version {__version__}")


@app.command()
def init():
    """Create pez.toml in the config directory."""
    from pez.cli.init_cmd import init_command

    init_command()


@app.command()
def install(
    ctx: typer.Context,
    plugins: list[str] = typer.Argument(None, help="Plugins to install (owner/repo[@ref], URL or path)"),
    force: bool = typer.Option(False, "--force", "-f", help="Reinstall plugins that are already installed"),
    prune: bool = typer.Option(False, "--prune", help="Remove plugins that are no longer declared"),
):
    """Install plugins, or every plugin declared in pez.toml."""
    from pez.cli.plugin_cmd import install_command

    install_command(plugins, force=force, prune=prune, jobs=_jobs(ctx))


@app.command()
def uninstall(
    ctx: typer.Context,
    plugins: list[str] = typer.Argument(None, help="Plugins to uninstall"),
    force: bool = typer.Option(False, "--force", "-f", help="Remove files even if the repository directory is missing"),
    stdin: bool = typer.Option(False, "--stdin", help="Read plugins from standard input, one per line"),
):
    """Uninstall plugins and remove them from pez.toml."""
    from pez.cli.plugin_cmd import uninstall_command

    uninstall_command(plugins, force=force, stdin=stdin, jobs=_jobs(ctx))


@app.command()
def upgrade(
    ctx: typer.Context,
    plugins: list[str] = typer.Argument(None, help="Plugins to upgrade (default: all declared)"),
):
    """Upgrade plugins to the newest commit their selector allows."""
    from pez.cli.plugin_cmd import upgrade_command

    upgrade_command(plugins, jobs=_jobs(ctx))


@app.command("list")
def list_(
    ctx: typer.Context,
    fmt: ListFormat = typer.Option(ListFormat.PLAIN, "--format", help="Output format"),
    outdated: bool = typer.Option(False, "--outdated", help="Only show plugins with newer commits upstream"),
):
    """List installed plugins."""
    from pez.cli.list_cmd import list_command

    list_command(fmt=fmt, outdated=outdated, jobs=_jobs(ctx))


@app.command()
def prune(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Remove files even if the repository directory is missing"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be removed without removing anything"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove plugins that are locked but not declared in pez.toml."""
    from pez.cli.plugin_cmd import prune_command

    prune_command(force=force, dry_run=dry_run, yes=yes, jobs=_jobs(ctx))


@app.command()
def migrate(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Replace pez.toml plugins with the imported ones"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the planned changes without writing pez.toml"),
    install: bool = typer.Option(False, "--install", help="Install the migrated plugins"),
):
    """Import plugins from fisher's fish_plugins file."""
    from pez.cli.plugin_cmd import migrate_command

    migrate_command(force=force, dry_run=dry_run, install=install, jobs=_jobs(ctx))


@app.command(context_settings={"ignore_unknown_options": True, "allow_extra_args": True})
def files(
    ctx: typer.Context,
    plugins: list[str] = typer.Argument(None, help="Plugins to show files for"),
    all_plugins: bool = typer.Option(False, "--all", help="Show files of every installed plugin"),
    directory: FilesDir = typer.Option(FilesDir.ALL, "--dir", help="Only show files in this directory"),
    fmt: FilesFormat = typer.Option(FilesFormat.PATHS, "--format", help="Output format"),
    from_command: str = typer.Option(
        None,
        "--from",
        help="Show files the given command (install, upgrade, uninstall) would touch; remaining arguments are passed to it",
    ),
):
    """Print files projected by installed plugins."""
    from pez.cli.list_cmd import files_command

    args = list(plugins or []) + list(ctx.args)
    files_command(
        args,
        all_plugins=all_plugins,
        directory=directory,
        fmt=fmt,
        from_command=from_command,
        jobs=_jobs(ctx),
    )


@app.command()
def doctor(
    fmt: str = typer.Option(None, "--format", help="Output format (json)"),
):
    """Check configuration, lock file and installed files."""
    from pez.cli.doctor import doctor_command

    doctor_command(as_json=fmt == "json")


def main():
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
