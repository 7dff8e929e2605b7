"""Upgrade: move installed plugins to the newest commit their selector allows."""

from __future__ import annotations

import logging

from pez.engine.context import EngineContext, resolve_targets
from pez.engine.outcome import OutcomeStatus, PluginOutcome
from pez.engine.scheduler import raise_for_failures, run_batch
from pez.errors import NotInstalledError
from pez.lockfile import LockedPlugin
from pez.models import RefSelector
from pez.notify import Event
from pez.projection import project_files, remove_files
from pez.resolver import ResolvedTarget, describe, resolve_source

logger = logging.getLogger(__name__)


def upgrade_one(ctx: EngineContext, target: ResolvedTarget) -> PluginOutcome:
    label = describe(target)
    locked = ctx.lock_store.load().get_plugin_by_repo(target.plugin_repo)
    if locked is None:
        raise NotInstalledError(f"Plugin {label} is not installed")

    if locked.repo.is_local:
        return PluginOutcome(
            target=label,
            status=OutcomeStatus.UP_TO_DATE,
            detail="local plugin",
            commit_sha=locked.commit_sha,
        )

    repo_dir = ctx.locked_repo_dir(locked)
    if not repo_dir.exists():
        logger.warning("Repository directory at %s does not exist, install the plugin first", repo_dir)
        return PluginOutcome(
            target=label,
            status=OutcomeStatus.MISSING_DIRECTORY,
            detail=f"{repo_dir} does not exist; run 'pez install'",
        )

    selector = effective_selector(ctx, target)
    latest = ctx.vcs.resolve_commit(repo_dir, selector)
    if latest == locked.commit_sha:
        return PluginOutcome(target=label, status=OutcomeStatus.UP_TO_DATE, commit_sha=latest)

    ctx.vcs.checkout(repo_dir, latest)

    def _replace(lock) -> LockedPlugin:
        current = lock.get_plugin_by_repo(locked.repo) or locked
        keep = lock.claimed_paths(ctx.target_dir, exclude=[locked.repo])
        remove_files(current.files, ctx.target_dir, keep=keep)
        files = project_files(repo_dir, ctx.target_dir)
        updated = current.model_copy(update={"commit_sha": latest, "files": files})
        lock.upsert_plugin(updated)
        return updated

    updated = ctx.lock_store.update(_replace)
    ctx.notify(updated.files, Event.UPDATE)
    logger.debug("Upgraded %s from %s to %s", label, locked.commit_sha, latest)
    return PluginOutcome(
        target=label,
        status=OutcomeStatus.UPGRADED,
        detail=f"{locked.commit_sha[:7]} -> {latest[:7]}",
        commit_sha=latest,
        files=updated.destinations(ctx.target_dir),
    )


def effective_selector(ctx: EngineContext, target: ResolvedTarget) -> RefSelector:
    """An explicit pin wins, otherwise the selector declared in pez.toml."""
    if target.selector.is_pinned:
        return target.selector
    config = ctx.config_store.load()
    index = config.find(target.plugin_repo)
    if index is None:
        return RefSelector.none()
    return config.declared[index].selector


async def upgrade(ctx: EngineContext, targets: list[str] | None = None) -> list[PluginOutcome]:
    """Upgrade the given plugins, or every plugin declared in pez.toml.

    Raises:
        BatchError: If any plugin failed, e.g. because it is not installed
    """
    failures: list[PluginOutcome] = []
    if targets:
        resolved, failures = resolve_targets(targets)
    else:
        config = ctx.config_store.load()
        resolved = []
        seen = set()
        for spec in config.declared:
            target = resolve_source(spec.source, raw=spec.raw_target())
            if target.plugin_repo not in seen:
                seen.add(target.plugin_repo)
                resolved.append(target)

    units = [(describe(t), _unit(ctx, t)) for t in resolved]
    outcomes = failures + await run_batch(units, ctx.settings.jobs)
    return raise_for_failures(outcomes)


def _unit(ctx: EngineContext, target: ResolvedTarget):
    return lambda: upgrade_one(ctx, target)
