"""Pydantic models for pez.toml and runtime settings."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pez.errors import ParseError
from pez.models import (
    SELECTOR_FIELDS,
    PathSource,
    PluginRepo,
    PluginSource,
    RefSelector,
    RepoSource,
    UrlSource,
)
from pez.resolver import resolve_source, url_plugin_repo

CONFIG_FILENAME = "pez.toml"
LOCK_FILENAME = "pez-lock.toml"
FISH_PLUGINS_FILENAME = "fish_plugins"

REPO_PATTERN = re.compile(r"^(?:[A-Za-z0-9.-]+/)?[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
PATH_PATTERN = re.compile(r"^(?:/|~(?:/|$))")

DEFAULT_JOBS = 4


class PluginSpec(BaseModel):
    """A single ``[[plugins]]`` entry of pez.toml.

    Exactly one of ``repo``, ``url`` or ``path`` is set, with at most one
    revision selector. Path entries cannot be pinned.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, description="Display name override")
    repo: str | None = Field(default=None, description="Repository as <owner>/<repo> or <host>/<owner>/<repo>")
    url: str | None = Field(default=None, description="Any git URL")
    path: str | None = Field(default=None, description="Local directory (absolute or ~-relative)")
    version: str | None = Field(default=None, description="Version, or 'latest'")
    branch: str | None = Field(default=None, description="Branch to track")
    tag: str | None = Field(default=None, description="Tag to check out")
    commit: str | None = Field(default=None, description="Exact commit SHA")

    @field_validator("repo")
    @classmethod
    def _check_repo(cls, value: str | None) -> str | None:
        if value is not None and not REPO_PATTERN.match(value):
            raise ValueError(f"Invalid repo '{value}'. Expected format: <owner>/<repo>")
        return value

    @field_validator("path")
    @classmethod
    def _check_path(cls, value: str | None) -> str | None:
        if value is not None and not PATH_PATTERN.match(value):
            raise ValueError(f"Path '{value}' must be absolute or start with '~'")
        return value

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                url_plugin_repo(value)
            except ParseError as e:
                raise ValueError(str(e)) from e
        return value

    @model_validator(mode="after")
    def _check_one_source(self) -> PluginSpec:
        sources = [f for f in ("repo", "url", "path") if getattr(self, f) is not None]
        if len(sources) != 1:
            raise ValueError("Exactly one of 'repo', 'url' or 'path' is required")
        selectors = [f for f in SELECTOR_FIELDS if getattr(self, f) is not None]
        if self.path is not None and selectors:
            raise ValueError("'path' plugins cannot set version, branch, tag or commit")
        if len(selectors) > 1:
            raise ValueError(f"At most one of {', '.join(SELECTOR_FIELDS)} may be set")
        return self

    @property
    def selector(self) -> RefSelector:
        return RefSelector.from_fields(self.version, self.tag, self.branch, self.commit)

    @property
    def source(self) -> PluginSource:
        if self.path is not None:
            return PathSource(path=self.path)
        if self.url is not None:
            return UrlSource(url=self.url, selector=self.selector)
        return RepoSource(repo=PluginRepo.parse(self.repo), selector=self.selector)

    def raw_target(self) -> str:
        """Identifier string equivalent to this entry, for the resolver."""
        base = self.repo or self.url or self.path
        ref = self.selector.describe()
        return f"{base}@{ref}" if ref else base

    def get_plugin_repo(self) -> PluginRepo:
        """Canonical identity of this entry."""
        return resolve_source(self.source).plugin_repo

    def get_name(self) -> str:
        return self.name or self.get_plugin_repo().repo

    @classmethod
    def from_source(cls, source: PluginSource, name: str | None = None) -> PluginSpec:
        if isinstance(source, PathSource):
            return cls(name=name, path=source.path)
        fields = source.selector.as_fields()
        if isinstance(source, UrlSource):
            return cls(name=name, url=source.url, **fields)
        return cls(name=name, repo=source.repo.as_str(), **fields)

    def to_toml(self) -> dict[str, Any]:
        """Entry as a TOML table, omitting unset keys."""
        return self.model_dump(exclude_none=True)


class PezConfig(BaseModel):
    """The pez.toml document."""

    model_config = ConfigDict(extra="forbid")

    plugins: list[PluginSpec] | None = Field(default=None, description="Declared plugins")

    @property
    def declared(self) -> list[PluginSpec]:
        return list(self.plugins or [])

    @property
    def has_plugins(self) -> bool:
        return bool(self.plugins)

    def find(self, repo: PluginRepo) -> int | None:
        """Index of the entry with the given canonical identity."""
        for index, spec in enumerate(self.declared):
            if spec.get_plugin_repo() == repo:
                return index
        return None

    def ensure_plugin(self, spec: PluginSpec) -> bool:
        """Append ``spec`` unless its repo is already declared. Returns True if added."""
        if self.find(spec.get_plugin_repo()) is not None:
            return False
        self.plugins = self.declared + [spec]
        return True

    def remove_plugin(self, repo: PluginRepo) -> bool:
        index = self.find(repo)
        if index is None:
            return False
        plugins = self.declared
        del plugins[index]
        self.plugins = plugins
        return True

    def to_toml(self) -> dict[str, Any]:
        if self.plugins is None:
            return {}
        return {"plugins": [spec.to_toml() for spec in self.plugins]}


class PezSettings(BaseModel):
    """Resolved locations and knobs threaded through every engine entry point."""

    config_dir: Path = Field(description="Directory holding pez.toml and pez-lock.toml")
    data_dir: Path = Field(description="Directory where plugin repositories are cloned")
    target_dir: Path = Field(description="Live fish configuration directory files are copied into")
    jobs: int = Field(default=DEFAULT_JOBS, description="Maximum concurrent plugin operations", ge=1)
    suppress_emit: bool = Field(default=False, description="Do not send fish events on uninstall")

    @property
    def config_path(self) -> Path:
        return self.config_dir / CONFIG_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.config_dir / LOCK_FILENAME

    @property
    def fish_plugins_path(self) -> Path:
        return self.target_dir / FISH_PLUGINS_FILENAME
