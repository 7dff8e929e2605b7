"""Install: bring declared or requested plugins onto disk and into the lock file."""

from __future__ import annotations

import logging
import shutil

from pez.config.schema import PluginSpec
from pez.engine.context import EngineContext, resolve_targets
from pez.engine.outcome import OutcomeStatus, PluginOutcome
from pez.engine.scheduler import raise_for_failures, run_batch
from pez.errors import AlreadyExistsError, MissingDirectoryError
from pez.lockfile import LockedPlugin, LockFile
from pez.models import PluginRepo
from pez.notify import Event
from pez.projection import project_files, remove_files
from pez.resolver import ResolvedTarget, describe, resolve_source

logger = logging.getLogger(__name__)

LOCAL_COMMIT = "local"


def install_one(
    ctx: EngineContext,
    target: ResolvedTarget,
    force: bool = False,
    name: str | None = None,
    declare: bool = True,
) -> PluginOutcome:
    """Reconcile a single plugin.

    ======  ======  =====  ==============================================
    locked  dir     force  action
    ======  ======  =====  ==============================================
    no      no      -      clone, check out the selector, project, lock
    no      yes     -      adopt the directory: resolve, check out, lock
    yes     yes     no     skip
    yes     yes     yes    remove directory, files and entry; clone again
    yes     no      -      clone and check out the *recorded* commit
    ======  ======  =====  ==============================================

    Args:
        ctx: Engine context
        target: Resolved plugin
        force: Reinstall plugins that are already installed
        name: Display name for the lock entry
        declare: Add the plugin to pez.toml if it is not declared yet
    """
    label = describe(target)
    name = name or target.plugin_repo.repo
    lock = ctx.lock_store.load()
    locked = lock.get_plugin_by_repo(target.plugin_repo)
    repo_dir = ctx.repo_dir(target)
    if locked is None or force:
        check_available(lock, target, name)

    if target.is_local:
        outcome = _install_local(ctx, target, label, name, locked, force)
    elif locked is not None and repo_dir.exists():
        if not force:
            logger.info("Plugin already installed: %s, use --force to reinstall", label)
            outcome = PluginOutcome(
                target=label,
                status=OutcomeStatus.SKIPPED,
                detail="already installed",
                commit_sha=locked.commit_sha,
            )
        else:
            _discard(ctx, locked)
            shutil.rmtree(repo_dir)
            outcome = _fresh_install(ctx, target, label, name, OutcomeStatus.REINSTALLED)
    elif locked is not None:
        logger.warning("Repository directory for %s is missing, restoring commit %s", label, locked.commit_sha)
        outcome = _clone_at(ctx, target, label, name, locked.commit_sha)
    elif repo_dir.exists():
        commit = ctx.vcs.resolve_commit(repo_dir, target.selector)
        ctx.vcs.checkout(repo_dir, commit)
        outcome = _finish(ctx, target, label, name, commit, OutcomeStatus.ADOPTED)
    else:
        outcome = _fresh_install(ctx, target, label, name, OutcomeStatus.INSTALLED)

    if declare:
        spec = PluginSpec.from_source(target.to_plugin_source())
        if ctx.config_store.update(lambda config: config.ensure_plugin(spec)):
            logger.debug("Added %s to %s", label, ctx.settings.config_path)
    return outcome


def _install_local(
    ctx: EngineContext,
    target: ResolvedTarget,
    label: str,
    name: str,
    locked: LockedPlugin | None,
    force: bool,
) -> PluginOutcome:
    repo_dir = ctx.repo_dir(target)
    if not repo_dir.is_dir():
        raise MissingDirectoryError(f"Local plugin directory does not exist: {repo_dir}")
    if locked is not None and not force:
        return PluginOutcome(
            target=label,
            status=OutcomeStatus.SKIPPED,
            detail="already installed",
            commit_sha=locked.commit_sha,
        )
    status = OutcomeStatus.INSTALLED
    if locked is not None:
        _discard(ctx, locked)
        status = OutcomeStatus.REINSTALLED
    return _finish(ctx, target, label, name, LOCAL_COMMIT, status)


def _fresh_install(
    ctx: EngineContext,
    target: ResolvedTarget,
    label: str,
    name: str,
    status: OutcomeStatus,
) -> PluginOutcome:
    repo_dir = ctx.repo_dir(target)
    try:
        ctx.vcs.clone(target.source, repo_dir)
        if target.selector.is_pinned:
            commit = ctx.vcs.resolve_commit(repo_dir, target.selector)
            ctx.vcs.checkout(repo_dir, commit)
        else:
            commit = ctx.vcs.head_commit(repo_dir)
        logger.debug("Install resolved commit %s for %s", commit, label)
        return _finish(ctx, target, label, name, commit, status)
    except Exception:
        if repo_dir.exists():
            shutil.rmtree(repo_dir)
        raise


def _clone_at(ctx: EngineContext, target: ResolvedTarget, label: str, name: str, commit: str) -> PluginOutcome:
    repo_dir = ctx.repo_dir(target)
    try:
        ctx.vcs.clone(target.source, repo_dir)
        ctx.vcs.checkout(repo_dir, commit)
        return _finish(ctx, target, label, name, commit, OutcomeStatus.RESTORED)
    except Exception:
        if repo_dir.exists():
            shutil.rmtree(repo_dir)
        raise


def check_available(lock: LockFile, target: ResolvedTarget, name: str) -> None:
    """Refuse a plugin whose name or source already belongs to another locked plugin.

    Raises:
        AlreadyExistsError: If another repo holds the name or source
    """
    for existing in lock.plugins:
        if existing.repo == target.plugin_repo:
            continue
        if existing.name == name:
            raise AlreadyExistsError(
                f"Plugin name '{name}' is already used by {existing.repo}, set a different 'name' in pez.toml"
            )
        if existing.source == target.source:
            raise AlreadyExistsError(f"Source {target.source} is already installed as {existing.repo}")


def _discard(ctx: EngineContext, locked: LockedPlugin) -> None:
    """Forget a locked plugin: delete its files and its lock entry."""

    def _remove(lock):
        keep = lock.claimed_paths(ctx.target_dir, exclude=[locked.repo])
        remove_files(locked.files, ctx.target_dir, keep=keep)
        lock.remove_plugin_by_repo(locked.repo)

    ctx.lock_store.update(_remove)


def _finish(
    ctx: EngineContext,
    target: ResolvedTarget,
    label: str,
    name: str,
    commit: str,
    status: OutcomeStatus,
) -> PluginOutcome:
    # The name check, projection and lock write run under one store lock.
    def _record(lock: LockFile) -> LockedPlugin:
        check_available(lock, target, name)
        files = project_files(ctx.repo_dir(target), ctx.target_dir)
        plugin = LockedPlugin(
            name=name,
            repo=target.plugin_repo,
            source=target.source,
            commit_sha=commit,
            files=files,
        )
        lock.upsert_plugin(plugin)
        return plugin

    plugin = ctx.lock_store.update(_record)
    ctx.notify(plugin.files, Event.INSTALL)
    return PluginOutcome(
        target=label,
        status=status,
        commit_sha=commit,
        files=plugin.destinations(ctx.target_dir),
    )


async def install(ctx: EngineContext, targets: list[str], force: bool = False) -> list[PluginOutcome]:
    """Install explicit targets and declare them in pez.toml.

    Raises:
        ParseError: If none of the targets can be resolved
        BatchError: If any plugin failed, after every plugin was attempted
    """
    resolved, failures = resolve_targets(targets)
    return await install_resolved(ctx, resolved, force=force, failures=failures)


async def install_resolved(
    ctx: EngineContext,
    targets: list[ResolvedTarget],
    force: bool = False,
    failures: list[PluginOutcome] | None = None,
    names: dict[PluginRepo, str] | None = None,
) -> list[PluginOutcome]:
    """Install already resolved targets, with optional lock names keyed by repo."""
    names = names or {}
    units = [(describe(t), _unit(ctx, t, force, name=names.get(t.plugin_repo))) for t in targets]
    outcomes = list(failures or []) + await run_batch(units, ctx.settings.jobs)
    return raise_for_failures(outcomes)


async def install_from_config(ctx: EngineContext, force: bool = False) -> list[PluginOutcome]:
    """Install every plugin declared in pez.toml."""
    config = ctx.config_store.load()
    if not config.has_plugins:
        logger.info("No plugins found in %s", ctx.settings.config_path)
        return []

    units = []
    seen = set()
    for spec in config.declared:
        target = resolve_source(spec.source, raw=spec.raw_target())
        if target.plugin_repo in seen:
            logger.warning("Ignoring duplicate entry for %s in pez.toml", target.plugin_repo)
            continue
        seen.add(target.plugin_repo)
        units.append((describe(target), _unit(ctx, target, force, name=spec.get_name(), declare=False)))

    outcomes = await run_batch(units, ctx.settings.jobs)
    return raise_for_failures(outcomes)


def undeclared_plugins(ctx: EngineContext) -> list[LockedPlugin]:
    """Locked plugins whose repo is not declared in pez.toml."""
    config = ctx.config_store.load()
    declared = {spec.get_plugin_repo() for spec in config.declared}
    return [p for p in ctx.lock_store.load().plugins if p.repo not in declared]


def _unit(ctx: EngineContext, target: ResolvedTarget, force: bool, name: str | None = None, declare: bool = True):
    return lambda: install_one(ctx, target, force=force, name=name, declare=declare)
