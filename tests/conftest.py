"""Pytest configuration and shared fixtures."""

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from pez.config.schema import PezSettings
from pez.engine.context import EngineContext
from pez.errors import CollaboratorError
from pez.models import RefKind, RefSelector
from pez.notify import Event
from pez.resolver import pick_tag_for_version

MARKER = ".fake-git"


@dataclass
class FakeRemote:
    """An upstream repository held in memory."""

    commits: dict[str, dict[str, str]] = field(default_factory=dict)
    branches: dict[str, str] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    default_branch: str = "main"

    def commit(self, sha: str, files: dict[str, str], branch: str | None = None) -> str:
        self.commits[sha] = dict(files)
        self.branches[branch or self.default_branch] = sha
        return sha

    def tag(self, name: str, sha: str) -> None:
        self.tags[name] = sha

    @property
    def head(self) -> str:
        return self.branches[self.default_branch]


class FakeVersionControl:
    """VersionControl that clones from in-memory remotes."""

    def __init__(self):
        self.remotes: dict[str, FakeRemote] = {}
        self.calls: list[tuple[str, str]] = []

    def add_remote(self, source: str) -> FakeRemote:
        remote = FakeRemote()
        self.remotes[source] = remote
        return remote

    def _read_marker(self, repo_dir: Path) -> dict:
        return json.loads((repo_dir / MARKER).read_text())

    def _write_tree(self, repo_dir: Path, source: str, sha: str) -> None:
        for child in repo_dir.iterdir():
            if child.name == MARKER:
                continue
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()
        for rel, content in self.remotes[source].commits[sha].items():
            path = repo_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        (repo_dir / MARKER).write_text(json.dumps({"source": source, "head": sha}))

    def clone(self, source: str, dest: Path) -> None:
        self.calls.append(("clone", source))
        if source not in self.remotes:
            raise CollaboratorError(f"Repository not found: {source}")
        dest.mkdir(parents=True)
        self._write_tree(dest, source, self.remotes[source].head)

    def resolve_commit(self, repo_dir: Path, selector: RefSelector) -> str:
        source = self._read_marker(repo_dir)["source"]
        self.calls.append(("resolve", source))
        remote = self.remotes[source]
        kind, value = selector.kind, selector.value
        if kind in (RefKind.NONE, RefKind.LATEST):
            return remote.head
        if kind is RefKind.BRANCH:
            if value not in remote.branches:
                raise CollaboratorError(f"Branch not found: {value}")
            return remote.branches[value]
        if kind is RefKind.TAG:
            if value not in remote.tags:
                raise CollaboratorError(f"Tag not found: {value}")
            return remote.tags[value]
        if kind is RefKind.COMMIT:
            if value not in remote.commits:
                raise CollaboratorError(f"Failed to resolve commit '{value}'")
            return value
        if value in remote.branches:
            return remote.branches[value]
        tag = pick_tag_for_version(list(remote.tags), value)
        if tag is None:
            raise CollaboratorError(f"No matching branch or tag for version: {value}")
        return remote.tags[tag]

    def checkout(self, repo_dir: Path, commit: str) -> None:
        source = self._read_marker(repo_dir)["source"]
        self.calls.append(("checkout", commit))
        if commit not in self.remotes[source].commits:
            raise CollaboratorError(f"Unknown commit {commit}")
        self._write_tree(repo_dir, source, commit)

    def head_commit(self, repo_dir: Path) -> str:
        return self._read_marker(repo_dir)["head"]

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


class RecordingNotifier:
    """Notifier that remembers every event it was asked to emit."""

    def __init__(self):
        self.events: list[tuple[str, Event]] = []

    def emit(self, file_name: str, event: Event) -> None:
        self.events.append((file_name, event))


@pytest.fixture
def settings(tmp_path: Path) -> PezSettings:
    """Provide settings rooted in a temporary directory."""
    return PezSettings(
        config_dir=tmp_path / "config",
        data_dir=tmp_path / "data",
        target_dir=tmp_path / "fish",
        jobs=2,
    )


@pytest.fixture
def fake_vcs() -> FakeVersionControl:
    """Provide a fake version control collaborator."""
    return FakeVersionControl()


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Provide a notifier that records events."""
    return RecordingNotifier()


@pytest.fixture
def ctx(settings: PezSettings, fake_vcs: FakeVersionControl, notifier: RecordingNotifier) -> EngineContext:
    """Provide an engine context wired to the fakes."""
    return EngineContext.from_settings(settings, vcs=fake_vcs, notifier=notifier)


@pytest.fixture
def remote(fake_vcs: FakeVersionControl) -> FakeRemote:
    """Provide a remote for owner/plugin with one commit."""
    remote = fake_vcs.add_remote("https://github.com/owner/plugin")
    remote.commit(
        "a" * 40,
        {
            "functions/plugin.fish": "function plugin; end",
            "conf.d/plugin.fish": "set -g plugin_loaded 1",
            "completions/plugin.fish": "complete -c plugin",
            "README.md": "# plugin",
        },
    )
    return remote
