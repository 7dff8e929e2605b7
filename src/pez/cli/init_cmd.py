"""Init command - create pez.toml from a template."""

from pez.cli.output import console
from pez.config.loader import init_config
from pez.config.paths import load_settings


def init_command() -> None:
    """Create pez.toml in the config directory unless it already exists."""
    settings = load_settings()
    path = settings.config_path
    if init_config(path):
        console.print(f"[green]Created {path}[/green]", highlight=False)
    else:
        console.print(f"{path} already exists", highlight=False)
