"""Loading, saving and creating pez.toml."""

from __future__ import annotations

import logging
import threading
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import tomli_w
from pydantic import ValidationError

from pez.config.schema import PezConfig
from pez.errors import ConfigError
from pez.fsutil import atomic_write_text

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONFIG_TEMPLATE = """\
# This file defines the plugins to be installed by pez.

# Example of a plugin:
# [[plugins]]
# repo = "owner/repo"  # The package identifier in the format <owner>/<repo>

# Add more plugins below by copying the [[plugins]] block.
"""


def load_config(path: Path) -> PezConfig:
    """Load and validate pez.toml.

    A missing file is treated as an empty configuration.

    Raises:
        ConfigError: If the file exists but is not valid TOML or fails validation
    """
    if not path.exists():
        return PezConfig()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return PezConfig(**data)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed for {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def dump_config(config: PezConfig, header: str = "") -> str:
    """Render pez.toml with one ``[[plugins]]`` table per entry."""
    data = config.to_toml()
    if "plugins" not in data:
        body = ""
    elif not data["plugins"]:
        body = "plugins = []\n"
    else:
        body = "\n".join("[[plugins]]\n" + tomli_w.dumps(entry) for entry in data["plugins"])
    if header and body:
        return header + "\n" + body
    return header or body


def _leading_comments(path: Path) -> str:
    """Comment block at the top of an existing file, kept across rewrites."""
    if not path.exists():
        return ""
    lines = []
    for line in path.read_text().splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            break
        lines.append(line)
    text = "\n".join(lines).strip()
    return text + "\n" if text else ""


def save_config(config: PezConfig, path: Path) -> None:
    """Write pez.toml, creating its directory if needed.

    Comments at the top of an existing file are preserved; comments between
    entries are not.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write_text(path, dump_config(config, header=_leading_comments(path)))


def init_config(path: Path) -> bool:
    """Create pez.toml from the template.

    Returns:
        False if the file already existed and was left untouched
    """
    if path.exists():
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE)
    logger.debug("Created %s", path)
    return True


class ConfigStore:
    """Serialized read-modify-write access to pez.toml."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> PezConfig:
        with self._lock:
            return load_config(self.path)

    def update(self, mutate: Callable[[PezConfig], T]) -> T:
        """Re-read the file, apply ``mutate`` and write it back if it changed."""
        with self._lock:
            config = load_config(self.path)
            before = config.to_toml()
            result = mutate(config)
            if config.to_toml() != before:
                save_config(config, self.path)
            return result

    def replace(self, config: PezConfig) -> None:
        with self._lock:
            save_config(config, self.path)
