"""Read-only queries over the lock file: list, outdated and files."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from pez.engine.context import EngineContext
from pez.engine.outcome import OutcomeStatus, PluginOutcome
from pez.engine.scheduler import raise_for_failures, run_batch
from pez.engine.uninstall import read_targets_from_stream
from pez.errors import NotInstalledError, ParseError
from pez.lockfile import LockedPlugin
from pez.models import PluginRepo, RefSelector, TargetDir
from pez.resolver import resolve_target

logger = logging.getLogger(__name__)


class FilesFrom(str, Enum):
    """Commands whose targets ``pez files --from`` can mirror."""

    INSTALL = "install"
    UPGRADE = "upgrade"
    UPDATE = "update"
    UNINSTALL = "uninstall"
    REMOVE = "remove"


def list_plugins(ctx: EngineContext) -> list[LockedPlugin]:
    """Locked plugins ordered by repo."""
    return sorted(ctx.lock_store.load().plugins, key=lambda p: p.repo.as_str())


def declared_selector(ctx: EngineContext, repo: PluginRepo) -> RefSelector:
    config = ctx.config_store.load()
    index = config.find(repo)
    if index is None:
        return RefSelector.none()
    return config.declared[index].selector


def check_outdated(ctx: EngineContext, plugin: LockedPlugin) -> PluginOutcome:
    """Compare a plugin's locked commit with the newest one its selector allows.

    ``detail`` holds the locked commit and ``commit_sha`` the latest one.
    """
    label = plugin.repo.as_str()
    if plugin.repo.is_local:
        return PluginOutcome(target=label, status=OutcomeStatus.UP_TO_DATE, commit_sha=plugin.commit_sha)
    repo_dir = ctx.locked_repo_dir(plugin)
    if not repo_dir.exists():
        return PluginOutcome(target=label, status=OutcomeStatus.MISSING_DIRECTORY, detail=plugin.commit_sha)
    latest = ctx.vcs.resolve_commit(repo_dir, declared_selector(ctx, plugin.repo))
    status = OutcomeStatus.UP_TO_DATE if latest == plugin.commit_sha else OutcomeStatus.OUTDATED
    return PluginOutcome(target=label, status=status, detail=plugin.commit_sha, commit_sha=latest)


async def outdated(ctx: EngineContext) -> list[PluginOutcome]:
    """Check every locked plugin for a newer commit.

    Raises:
        BatchError: If any check failed, e.g. because fetching failed
    """
    plugins = list_plugins(ctx)
    units = [(p.repo.as_str(), _outdated_unit(ctx, p)) for p in plugins]
    return raise_for_failures(await run_batch(units, ctx.settings.jobs))


def _outdated_unit(ctx: EngineContext, plugin: LockedPlugin):
    return lambda: check_outdated(ctx, plugin)


def collect_paths(
    ctx: EngineContext,
    repos: Iterable[PluginRepo],
    dir_filter: TargetDir | None = None,
) -> list[Path]:
    """Projected destinations of the given plugins, sorted and de-duplicated.

    Raises:
        NotInstalledError: If a plugin has no lock entry
    """
    lock = ctx.lock_store.load()
    paths: set[Path] = set()
    for repo in repos:
        plugin = lock.get_plugin_by_repo(repo)
        if plugin is None:
            raise NotInstalledError(f"Plugin {repo} is not installed")
        for plugin_file in plugin.files:
            if dir_filter is None or plugin_file.dir is dir_filter:
                paths.add(plugin_file.get_path(ctx.target_dir))
    return sorted(paths)


def parse_repo_args(values: Iterable[str]) -> list[PluginRepo]:
    """Canonical repos of identifiers; any ``@ref`` is ignored for lookups."""
    return [resolve_target(value).plugin_repo for value in values]


def repos_for_command(
    ctx: EngineContext,
    command: FilesFrom,
    args: list[str],
    stdin_lines: Iterable[str] | None = None,
) -> list[PluginRepo] | None:
    """Repos the given command would act on for the same arguments.

    Returns None when the arguments only ask for help.

    Raises:
        ParseError: If uninstall is mirrored without targets or ``--stdin``
    """
    if "--help" in args or "-h" in args:
        return None
    targets = [a for a in args if not a.startswith("-")]
    if targets:
        return parse_repo_args(targets)

    if command in (FilesFrom.UNINSTALL, FilesFrom.REMOVE):
        if "--stdin" in args and stdin_lines is not None:
            return parse_repo_args(read_targets_from_stream(stdin_lines))
        raise ParseError("No plugins specified for uninstall")
    return [p.repo for p in list_plugins(ctx)]
