"""Core identity and source types."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from pez.errors import ParseError

DEFAULT_HOST = "github.com"
LOCAL_HOST = "local"

_OWNER_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_REPO_RE = re.compile(r"^[A-Za-z0-9_.-]+$")
_HOST_RE = re.compile(r"^[A-Za-z0-9.-]+(?::\d+)?$")


class TargetDir(str, Enum):
    """Fish configuration directories a plugin can project files into."""

    FUNCTIONS = "functions"
    COMPLETIONS = "completions"
    CONF_D = "conf.d"
    THEMES = "themes"

    @property
    def extension(self) -> str:
        """File suffix (without the dot) that is copied from this directory."""
        return "theme" if self is TargetDir.THEMES else "fish"


@dataclass(frozen=True)
class PluginRepo:
    """Canonical identity of a plugin.

    ``host`` is ``None`` for the default hosting provider, so ``owner/repo``
    and ``https://github.com/owner/repo`` compare equal.
    """

    owner: str
    repo: str
    host: str | None = None

    def as_str(self) -> str:
        if self.host:
            return f"{self.host}/{self.owner}/{self.repo}"
        return f"{self.owner}/{self.repo}"

    def __str__(self) -> str:
        return self.as_str()

    @property
    def is_local(self) -> bool:
        return self.host == LOCAL_HOST

    def default_remote_source(self) -> str:
        return f"https://{self.host or DEFAULT_HOST}/{self.owner}/{self.repo}"

    @classmethod
    def create(cls, owner: str, repo: str, host: str | None = None) -> PluginRepo:
        """Build a repo identity, folding the default host away."""
        if host is not None:
            host = host.lower()
            if host in (DEFAULT_HOST, f"www.{DEFAULT_HOST}"):
                host = None
        return cls(owner=owner, repo=repo, host=host)

    @classmethod
    def parse(cls, value: str) -> PluginRepo:
        """Parse ``owner/repo`` or ``host/owner/repo``."""
        parts = value.split("/")
        if len(parts) == 2:
            host, owner, repo = None, parts[0], parts[1]
        elif len(parts) == 3:
            host, owner, repo = parts
            if not _HOST_RE.match(host):
                raise ParseError(f"Invalid host in '{value}'")
        else:
            raise ParseError(f"Invalid format: {value}. Expected format: <owner>/<repo>")

        if not _OWNER_RE.match(owner) or not _REPO_RE.match(repo) or repo.endswith("."):
            raise ParseError(f"Invalid format: {value}. Expected format: <owner>/<repo>")
        return cls.create(owner, repo, host)


class RefKind(str, Enum):
    """Which kind of revision a selector pins."""

    NONE = "none"
    LATEST = "latest"
    VERSION = "version"
    TAG = "tag"
    BRANCH = "branch"
    COMMIT = "commit"


# Precedence when more than one selector field is present.
SELECTOR_FIELDS = ("version", "tag", "branch", "commit")


@dataclass(frozen=True)
class RefSelector:
    """Requested revision of a plugin."""

    kind: RefKind = RefKind.NONE
    value: str | None = None

    @classmethod
    def none(cls) -> RefSelector:
        return cls()

    @classmethod
    def latest(cls) -> RefSelector:
        return cls(RefKind.LATEST)

    @classmethod
    def version(cls, value: str) -> RefSelector:
        return cls(RefKind.VERSION, value)

    @classmethod
    def tag(cls, value: str) -> RefSelector:
        return cls(RefKind.TAG, value)

    @classmethod
    def branch(cls, value: str) -> RefSelector:
        return cls(RefKind.BRANCH, value)

    @classmethod
    def commit(cls, value: str) -> RefSelector:
        return cls(RefKind.COMMIT, value)

    @property
    def is_pinned(self) -> bool:
        return self.kind is not RefKind.NONE

    def describe(self) -> str | None:
        """Render the selector as an ``@ref`` suffix (without the ``@``)."""
        if self.kind is RefKind.NONE:
            return None
        if self.kind is RefKind.LATEST:
            return "latest"
        if self.kind is RefKind.VERSION:
            assert self.value is not None
            # A bare value that would re-parse as something else keeps its prefix.
            if ":" in self.value or self.value.lower() == "latest":
                return f"version:{self.value}"
            return self.value
        return f"{self.kind.value}:{self.value}"

    def as_fields(self) -> dict[str, str]:
        """Selector as pez.toml fields."""
        if self.kind is RefKind.NONE:
            return {}
        if self.kind is RefKind.LATEST:
            return {"version": "latest"}
        assert self.value is not None
        return {self.kind.value: self.value}

    @classmethod
    def from_fields(
        cls,
        version: str | None = None,
        tag: str | None = None,
        branch: str | None = None,
        commit: str | None = None,
    ) -> RefSelector:
        """Build a selector from pez.toml fields (version > tag > branch > commit)."""
        if version is not None:
            if version.lower() == "latest":
                return cls.latest()
            return cls.version(version)
        if tag is not None:
            return cls.tag(tag)
        if branch is not None:
            return cls.branch(branch)
        if commit is not None:
            return cls.commit(commit)
        return cls.none()


@dataclass(frozen=True)
class RepoSource:
    """A plugin addressed by hosted-repo shorthand."""

    repo: PluginRepo
    selector: RefSelector = field(default_factory=RefSelector)


@dataclass(frozen=True)
class UrlSource:
    """A plugin addressed by an arbitrary git URL."""

    url: str
    selector: RefSelector = field(default_factory=RefSelector)


@dataclass(frozen=True)
class PathSource:
    """A plugin read from a local directory. Paths cannot be pinned."""

    path: str

    @property
    def selector(self) -> RefSelector:
        return RefSelector()


PluginSource = RepoSource | UrlSource | PathSource
