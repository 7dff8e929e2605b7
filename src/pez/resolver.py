"""Resolve raw plugin identifiers into canonical sources.

Recognized shapes, checked in this order:

1. A local path (``/abs``, ``~/rel``, ``./rel``, ``../rel``). Paths cannot carry
   an ``@ref`` suffix.
2. A URL: anything containing ``://`` or starting with ``git@``. The trailing
   path segments are parsed into a :class:`PluginRepo` for identity, while the
   literal URL stays the clone source.
3. ``owner/repo[@ref]`` shorthand for the default host, or
   ``host/owner/repo[@ref]`` for another host.

Resolution never touches the network or the filesystem.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from packaging.version import InvalidVersion, Version

from pez.errors import ParseError
from pez.models import (
    LOCAL_HOST,
    PathSource,
    PluginRepo,
    PluginSource,
    RefKind,
    RefSelector,
    RepoSource,
    UrlSource,
)

_SCP_RE = re.compile(r"^(?P<user>[^@/:]+)@(?P<host>[^:/]+):(?P<path>.+)$")

LOCAL_PREFIXES = ("/", "~", "./", "../")


@dataclass(frozen=True)
class ResolvedTarget:
    """A raw identifier resolved into its canonical parts."""

    raw: str
    plugin_repo: PluginRepo
    source: str
    selector: RefSelector
    is_local: bool = False
    is_url: bool = False
    # Text after an '@' that could not be read as a ref (e.g. on an scp-style URL).
    unrecognized_ref: str | None = None

    def to_plugin_source(self) -> PluginSource:
        if self.is_local:
            return PathSource(path=self.source)
        if self.is_url:
            return UrlSource(url=self.source, selector=self.selector)
        return RepoSource(repo=self.plugin_repo, selector=self.selector)


def parse_ref_selector(value: str) -> RefSelector:
    """Parse the text after ``@``.

    ``latest``, ``tag:X``, ``branch:X``, ``commit:X`` and ``version:X`` are
    recognized; anything else is a version.
    """
    if not value:
        raise ParseError("Empty ref after '@'")
    if value.lower() == "latest":
        return RefSelector.latest()
    for kind in (RefKind.TAG, RefKind.BRANCH, RefKind.COMMIT, RefKind.VERSION):
        prefix = f"{kind.value}:"
        if value.startswith(prefix):
            rest = value[len(prefix) :]
            if not rest:
                raise ParseError(f"Empty {kind.value} in ref '{value}'")
            return RefSelector(kind, rest)
    return RefSelector.version(value)


def is_local_source(value: str) -> bool:
    return value.startswith(LOCAL_PREFIXES)


def is_url_source(value: str) -> bool:
    return "://" in value or value.startswith("git@")


def resolve_target(raw: str) -> ResolvedTarget:
    """Resolve a raw identifier.

    Raises:
        ParseError: If the identifier is malformed or carries an empty ref.
    """
    value = raw.strip()
    if not value:
        raise ParseError("Empty plugin identifier")
    if value.endswith("@"):
        raise ParseError(f"Empty ref after '@' in '{value}'")

    if is_local_source(value):
        return _resolve_path(value)
    if is_url_source(value):
        return _resolve_url(value)
    return _resolve_shorthand(value)


def resolve_source(source: PluginSource, raw: str | None = None) -> ResolvedTarget:
    """Resolve an already structured source, e.g. a pez.toml entry."""
    if isinstance(source, PathSource):
        path = Path(os.path.abspath(os.path.expanduser(source.path)))
        return ResolvedTarget(
            raw=raw or source.path,
            plugin_repo=local_plugin_repo(path),
            source=str(path),
            selector=RefSelector.none(),
            is_local=True,
        )
    if isinstance(source, UrlSource):
        return ResolvedTarget(
            raw=raw or source.url,
            plugin_repo=url_plugin_repo(source.url),
            source=source.url,
            selector=source.selector,
            is_url=True,
        )
    return ResolvedTarget(
        raw=raw or source.repo.as_str(),
        plugin_repo=source.repo,
        source=source.repo.default_remote_source(),
        selector=source.selector,
    )


def local_plugin_repo(path: Path) -> PluginRepo:
    """Identity of a local plugin directory."""
    return PluginRepo(owner=path.parent.name or LOCAL_HOST, repo=path.name, host=LOCAL_HOST)


def url_plugin_repo(url: str) -> PluginRepo:
    """Parse ``{host, owner, repo}`` out of a git URL for identity purposes."""
    scp = _SCP_RE.match(url)
    if scp and "://" not in url:
        host = scp.group("host")
        path = scp.group("path")
    else:
        parts = urlsplit(url)
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        path = parts.path

    segments = [s for s in path.strip("/").split("/") if s]
    if len(segments) < 2 or not host:
        raise ParseError(f"Cannot determine owner/repo from URL '{url}'")
    repo = segments[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    if not repo:
        raise ParseError(f"Cannot determine owner/repo from URL '{url}'")
    return PluginRepo.create(segments[-2], repo, host)


def _resolve_path(value: str) -> ResolvedTarget:
    if "@" in value:
        raise ParseError(f"Local paths cannot be pinned to a ref: '{value}'")
    path = Path(os.path.abspath(os.path.expanduser(value)))
    return ResolvedTarget(
        raw=value,
        plugin_repo=local_plugin_repo(path),
        source=str(path),
        selector=RefSelector.none(),
        is_local=True,
    )


def _resolve_url(value: str) -> ResolvedTarget:
    scp = _SCP_RE.match(value) if "://" not in value else None
    if scp is not None:
        # user@host:path - an extra '@' cannot be told apart from the URL itself.
        path = scp.group("path")
        if "@" in path:
            base, _, apparent = value.rpartition("@")
            return ResolvedTarget(
                raw=value,
                plugin_repo=url_plugin_repo(base),
                source=value,
                selector=RefSelector.none(),
                is_url=True,
                unrecognized_ref=apparent,
            )
        return ResolvedTarget(
            raw=value,
            plugin_repo=url_plugin_repo(value),
            source=value,
            selector=RefSelector.none(),
            is_url=True,
        )

    scheme, sep, rest = value.partition("://")
    authority, slash, path = rest.partition("/")
    selector = RefSelector.none()
    url = value
    if "@" in path:
        path, _, ref = path.rpartition("@")
        selector = parse_ref_selector(ref)
        url = f"{scheme}{sep}{authority}{slash}{path}"
    return ResolvedTarget(
        raw=value,
        plugin_repo=url_plugin_repo(url),
        source=url,
        selector=selector,
        is_url=True,
    )


def _resolve_shorthand(value: str) -> ResolvedTarget:
    base, selector = value, RefSelector.none()
    if "@" in value:
        base, _, ref = value.rpartition("@")
        selector = parse_ref_selector(ref)

    repo = PluginRepo.parse(base)
    return ResolvedTarget(
        raw=value,
        plugin_repo=repo,
        source=repo.default_remote_source(),
        selector=selector,
    )


def describe(target: ResolvedTarget) -> str:
    """Render a resolved target back into a canonical identifier."""
    if target.is_local:
        return target.source
    base = target.source if target.is_url else target.plugin_repo.as_str()
    ref = target.selector.describe()
    return f"{base}@{ref}" if ref else base


def pick_tag_for_version(tags: list[str], version: str) -> str | None:
    """Choose the tag that best matches a requested version.

    In order: an exact semver match, the highest semver tag sharing the
    requested major (and minor) number, an exact non-semver tag, and finally
    the highest tag of the form ``<version>.N`` or ``v<version>.N``.
    Pre-release tags are ignored by the semver steps.
    """
    wanted = version.lstrip("v")
    parts = wanted.split(".")

    semver_tags: list[tuple[Version, str]] = []
    for tag in tags:
        name = tag.strip()
        parsed = _parse_semver(name.lstrip("v"))
        if parsed is not None:
            semver_tags.append((parsed, name))

    if semver_tags:
        if len(parts) == 3 and all(p.isdigit() for p in parts):
            exact = _parse_semver(wanted)
            for parsed, name in semver_tags:
                if parsed == exact:
                    return name

        major = int(parts[0]) if parts[0].isdigit() else None
        minor = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else None
        if major is not None:
            candidates = [
                (parsed, name)
                for parsed, name in semver_tags
                if parsed.major == major and (minor is None or parsed.minor == minor)
            ]
            if candidates:
                return max(candidates, key=lambda c: c[0])[1]

    if version in tags:
        return version

    dotted: list[tuple[list[int], str]] = []
    for tag in tags:
        for prefix in (f"{version}.", f"v{version}."):
            if tag.startswith(prefix):
                rest = tag[len(prefix) :]
                dotted.append(([_leading_int(p) for p in rest.split(".")], tag))
                break
    if dotted:
        return max(dotted, key=lambda c: c[0])[1]
    return None


def _parse_semver(value: str) -> Version | None:
    try:
        parsed = Version(value)
    except InvalidVersion:
        return None
    if len(parsed.release) != 3 or parsed.is_prerelease or parsed.is_postrelease:
        return None
    if parsed.epoch or parsed.local:
        return None
    return parsed


def _leading_int(value: str) -> int:
    return int(value) if value.isdigit() else 0
