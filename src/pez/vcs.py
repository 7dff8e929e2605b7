"""Version control collaborator.

The engine only needs four capabilities from git, captured by
:class:`VersionControl`. :class:`GitCLI` implements them by shelling out to
the ``git`` executable.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol

from pez.errors import CollaboratorError
from pez.models import RefKind, RefSelector
from pez.resolver import pick_tag_for_version

logger = logging.getLogger(__name__)


class VersionControl(Protocol):
    """What the reconciliation engine needs from a VCS."""

    def clone(self, source: str, dest: Path) -> None:
        """Clone ``source`` into ``dest`` with the default branch checked out."""
        ...

    def resolve_commit(self, repo_dir: Path, selector: RefSelector) -> str:
        """Fetch from upstream and return the commit ``selector`` points at."""
        ...

    def checkout(self, repo_dir: Path, commit: str) -> None:
        """Detach HEAD at ``commit``."""
        ...

    def head_commit(self, repo_dir: Path) -> str:
        """Commit currently checked out."""
        ...


class GitCLI:
    """:class:`VersionControl` backed by the ``git`` command."""

    def __init__(self, executable: str = "git"):
        self.executable = executable

    def run(self, args: list[str], cwd: Path | None = None) -> str:
        """Run a git command and return its stripped stdout.

        Raises:
            CollaboratorError: If git is missing or exits non-zero
        """
        command = [self.executable, *args]
        logger.debug("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise CollaboratorError(f"git executable not found: {self.executable}", command) from e
        if result.returncode != 0:
            stderr = result.stderr.strip() or result.stdout.strip()
            raise CollaboratorError(f"Git command failed: {' '.join(command)}\n{stderr}", command, stderr)
        return result.stdout.strip()

    def _try(self, args: list[str], cwd: Path) -> str | None:
        try:
            return self.run(args, cwd=cwd)
        except CollaboratorError:
            return None

    def clone(self, source: str, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        self.run(["clone", "--quiet", source, str(dest)])

    def fetch(self, repo_dir: Path) -> None:
        self.run(
            ["fetch", "--quiet", "--tags", "--force", "origin", "+refs/heads/*:refs/remotes/origin/*"],
            cwd=repo_dir,
        )

    def remote_head_commit(self, repo_dir: Path) -> str:
        commit = self._try(["rev-parse", "--verify", "refs/remotes/origin/HEAD^{commit}"], repo_dir)
        if commit is None:
            # Clones made by other tools may lack origin/HEAD.
            self.run(["remote", "set-head", "origin", "--auto"], cwd=repo_dir)
            commit = self.run(["rev-parse", "--verify", "refs/remotes/origin/HEAD^{commit}"], cwd=repo_dir)
        return commit

    def branch_commit(self, repo_dir: Path, branch: str) -> str | None:
        return self._try(["rev-parse", "--verify", f"refs/remotes/origin/{branch}^{{commit}}"], repo_dir)

    def tag_commit(self, repo_dir: Path, tag: str) -> str | None:
        return self._try(["rev-parse", "--verify", f"refs/tags/{tag}^{{commit}}"], repo_dir)

    def list_tags(self, repo_dir: Path) -> list[str]:
        output = self.run(["tag", "--list"], cwd=repo_dir)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def resolve_commit(self, repo_dir: Path, selector: RefSelector) -> str:
        self.fetch(repo_dir)
        kind, value = selector.kind, selector.value

        if kind in (RefKind.NONE, RefKind.LATEST):
            return self.remote_head_commit(repo_dir)
        if kind is RefKind.BRANCH:
            commit = self.branch_commit(repo_dir, value)
            if commit is None:
                raise CollaboratorError(f"Branch not found: {value}")
            return commit
        if kind is RefKind.TAG:
            commit = self.tag_commit(repo_dir, value)
            if commit is None:
                raise CollaboratorError(f"Tag not found: {value}")
            return commit
        if kind is RefKind.COMMIT:
            commit = self._try(["rev-parse", "--verify", f"{value}^{{commit}}"], repo_dir)
            if commit is None:
                raise CollaboratorError(f"Failed to resolve commit '{value}'")
            return commit

        if value.lower() == "latest":
            return self.remote_head_commit(repo_dir)
        commit = self.branch_commit(repo_dir, value)
        if commit is not None:
            return commit
        tag = pick_tag_for_version(self.list_tags(repo_dir), value)
        if tag is not None:
            commit = self.tag_commit(repo_dir, tag)
            if commit is not None:
                logger.debug("Resolved version %s to tag %s", value, tag)
                return commit
        raise CollaboratorError(f"No matching branch or tag for version: {value}")

    def checkout(self, repo_dir: Path, commit: str) -> None:
        self.run(["checkout", "--quiet", "--force", "--detach", commit], cwd=repo_dir)

    def head_commit(self, repo_dir: Path) -> str:
        return self.run(["rev-parse", "HEAD"], cwd=repo_dir)
