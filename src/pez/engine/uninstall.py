"""Uninstall: remove plugins from disk, the lock file and pez.toml."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable

from pez.engine.context import EngineContext, resolve_targets
from pez.engine.outcome import OutcomeStatus, PluginOutcome
from pez.engine.scheduler import raise_for_failures, run_batch
from pez.errors import NotInstalledError, ParseError
from pez.fsutil import prune_empty_parents
from pez.lockfile import LockedPlugin
from pez.notify import Event
from pez.projection import remove_files
from pez.resolver import ResolvedTarget, describe, resolve_target

logger = logging.getLogger(__name__)


def read_targets_from_stream(lines: Iterable[str]) -> list[str]:
    """Collect plugin identifiers from batch input, one per line.

    Blank lines and ``#`` comments are ignored, unparseable lines are skipped
    with a warning and duplicates keep their first spelling. The result is
    sorted.
    """
    targets: list[str] = []
    seen = set()
    for number, line in enumerate(lines, start=1):
        value = line.split(" #", 1)[0].strip()
        if not value or value.startswith("#"):
            continue
        try:
            repo = resolve_target(value).plugin_repo
        except ParseError as e:
            logger.warning("Skipping line %d '%s': %s", number, value, e)
            continue
        if repo in seen:
            continue
        seen.add(repo)
        targets.append(value)
    return sorted(targets)


def uninstall_locked(
    ctx: EngineContext,
    locked: LockedPlugin,
    label: str,
    force: bool = False,
    remove_spec: bool = True,
) -> PluginOutcome:
    """Remove one locked plugin.

    If its repository directory is missing and ``force`` is not set, nothing
    is touched and the expected files are reported instead.
    """
    repo_dir = ctx.locked_repo_dir(locked)
    is_local = locked.repo.is_local
    expected = locked.destinations(ctx.target_dir)

    if not is_local and not repo_dir.exists():
        logger.warning("Repository directory at %s does not exist", repo_dir)
        if not force:
            return PluginOutcome(
                target=label,
                status=OutcomeStatus.KEPT,
                detail="repository directory is missing; use --force to remove these files",
                commit_sha=locked.commit_sha,
                files=expected,
            )

    ctx.notify(locked.files, Event.UNINSTALL)

    if not is_local and repo_dir.exists():
        shutil.rmtree(repo_dir)
        prune_empty_parents(repo_dir.parent, ctx.settings.data_dir)

    def _remove(lock) -> list:
        keep = lock.claimed_paths(ctx.target_dir, exclude=[locked.repo])
        removed = remove_files(locked.files, ctx.target_dir, keep=keep)
        lock.remove_plugin_by_repo(locked.repo)
        return removed

    removed = ctx.lock_store.update(_remove)
    if remove_spec:
        ctx.config_store.update(lambda config: config.remove_plugin(locked.repo))
    return PluginOutcome(
        target=label,
        status=OutcomeStatus.UNINSTALLED,
        commit_sha=locked.commit_sha,
        files=removed,
    )


def uninstall_one(ctx: EngineContext, target: ResolvedTarget, force: bool = False) -> PluginOutcome:
    label = describe(target)
    locked = ctx.lock_store.load().get_plugin_by_repo(target.plugin_repo)
    if locked is None:
        raise NotInstalledError(f"Plugin {label} is not installed")
    return uninstall_locked(ctx, locked, label, force=force)


async def uninstall(ctx: EngineContext, targets: list[str], force: bool = False) -> list[PluginOutcome]:
    """Uninstall the given plugins.

    Raises:
        ParseError: If no target can be resolved
        BatchError: If any plugin failed, e.g. because it is not installed
    """
    if not targets:
        raise ParseError("No plugins specified")
    resolved, failures = resolve_targets(targets)
    units = [(describe(t), _unit(ctx, t, force)) for t in resolved]
    outcomes = failures + await run_batch(units, ctx.settings.jobs)
    return raise_for_failures(outcomes)


def _unit(ctx: EngineContext, target: ResolvedTarget, force: bool):
    return lambda: uninstall_one(ctx, target, force=force)
