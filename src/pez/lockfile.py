"""The lock record: which commit of each plugin is installed and which files it projected."""

from __future__ import annotations

import logging
import threading
import tomllib
from collections import defaultdict
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any, TypeVar

import tomli_w
from pydantic import BaseModel, Field, ValidationError, field_serializer, field_validator

from pez.errors import ConfigError, ConflictError, LockConflictError, ParseError
from pez.fsutil import atomic_write_text
from pez.models import LOCAL_HOST, PluginRepo, TargetDir

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCK_VERSION = 1
LOCK_HEADER = (
    "# This file is automatically generated by pez.\n"
    "# It is not intended for manual editing.\n"
)


class PluginFile(BaseModel):
    """A file projected into the fish configuration tree."""

    dir: TargetDir = Field(description="Category directory")
    name: str = Field(description="Path relative to the category directory")

    def get_path(self, target_dir: Path) -> Path:
        return target_dir / self.dir.value / self.name


class LockedPlugin(BaseModel):
    """An installed plugin."""

    name: str = Field(description="Display name")
    repo: PluginRepo = Field(description="Canonical identity")
    source: str = Field(description="Resolved remote URL (or local directory)")
    commit_sha: str = Field(description="Installed commit")
    files: list[PluginFile] = Field(default_factory=list, description="Projected files, in copy order")

    @field_validator("repo", mode="before")
    @classmethod
    def _parse_repo(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        # Local identities use directory names, which need not be valid repo names.
        parts = value.split("/")
        if len(parts) == 3 and parts[0] == LOCAL_HOST and all(parts):
            return PluginRepo(owner=parts[1], repo=parts[2], host=LOCAL_HOST)
        try:
            return PluginRepo.parse(value)
        except ParseError as e:
            raise ValueError(str(e)) from e

    @field_serializer("repo")
    def _serialize_repo(self, repo: PluginRepo) -> str:
        return repo.as_str()

    def destinations(self, target_dir: Path) -> list[Path]:
        return [f.get_path(target_dir) for f in self.files]


class LockFile(BaseModel):
    """The pez-lock.toml document."""

    version: int = Field(default=LOCK_VERSION, description="Lock file schema version")
    plugins: list[LockedPlugin] = Field(default_factory=list)

    def get_plugin(self, source: str) -> LockedPlugin | None:
        return next((p for p in self.plugins if p.source == source), None)

    def get_plugin_by_repo(self, repo: PluginRepo) -> LockedPlugin | None:
        return next((p for p in self.plugins if p.repo == repo), None)

    def add_plugin(self, plugin: LockedPlugin) -> None:
        """Insert a new entry.

        Raises:
            LockConflictError: If an entry with the same source or name exists
        """
        for existing in self.plugins:
            if existing.source == plugin.source or existing.name == plugin.name:
                raise LockConflictError(
                    f"Plugin already exists in lock file: name={plugin.name}, source={plugin.source}"
                )
        self.plugins.append(plugin)

    def remove_plugin(self, source: str) -> LockedPlugin | None:
        plugin = self.get_plugin(source)
        if plugin is not None:
            self.plugins.remove(plugin)
        return plugin

    def remove_plugin_by_repo(self, repo: PluginRepo) -> LockedPlugin | None:
        plugin = self.get_plugin_by_repo(repo)
        if plugin is not None:
            self.plugins.remove(plugin)
        return plugin

    def upsert_plugin(self, plugin: LockedPlugin) -> None:
        """Replace the entry for the plugin's repo (or source), or insert it."""
        self.remove_plugin_by_repo(plugin.repo)
        self.remove_plugin(plugin.source)
        self.add_plugin(plugin)

    def claimed_paths(self, target_dir: Path, exclude: Iterable[PluginRepo] = ()) -> set[Path]:
        """Destinations owned by every plugin not listed in ``exclude``."""
        skip = set(exclude)
        return {
            path
            for plugin in self.plugins
            if plugin.repo not in skip
            for path in plugin.destinations(target_dir)
        }

    def find_conflicts(self, target_dir: Path) -> dict[Path, list[str]]:
        """Destination paths claimed by more than one plugin."""
        owners: dict[Path, list[str]] = defaultdict(list)
        for plugin in self.plugins:
            for path in plugin.destinations(target_dir):
                owners[path].append(plugin.repo.as_str())
        return {path: names for path, names in owners.items() if len(names) > 1}

    def check_conflicts(self, target_dir: Path) -> None:
        """Raise :class:`ConflictError` if two plugins share a destination."""
        conflicts = self.find_conflicts(target_dir)
        if conflicts:
            details = "; ".join(f"{path} ({', '.join(owners)})" for path, owners in sorted(conflicts.items()))
            raise ConflictError(f"conflicting destinations: {details}")

    def to_toml(self) -> str:
        plugins = sorted(self.plugins, key=lambda p: p.repo.as_str())
        data = {
            "version": self.version,
            "plugins": [p.model_dump(mode="json") for p in plugins],
        }
        return LOCK_HEADER + "\n" + tomli_w.dumps(data)


def load_lock(path: Path) -> LockFile:
    """Read pez-lock.toml. A missing file is an empty lock.

    Raises:
        ConfigError: If the file cannot be read or parsed
        LockConflictError: If it holds two entries with the same source or name
    """
    if not path.exists():
        return LockFile()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
        raw = LockFile(**data)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"Lock file validation failed for {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read lock file {path}: {e}") from e

    lock = LockFile(version=raw.version)
    for plugin in raw.plugins:
        lock.add_plugin(plugin)
    return lock


def save_lock(lock: LockFile, path: Path) -> None:
    atomic_write_text(path, lock.to_toml())


class LockStore:
    """Serialized read-modify-write access to pez-lock.toml.

    Every update re-reads the file under the lock, so concurrent units never
    overwrite each other's entries.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def load(self) -> LockFile:
        with self._lock:
            return load_lock(self.path)

    def update(self, mutate: Callable[[LockFile], T]) -> T:
        with self._lock:
            lock = load_lock(self.path)
            result = mutate(lock)
            save_lock(lock, self.path)
            logger.debug("Saved %s", self.path)
            return result
