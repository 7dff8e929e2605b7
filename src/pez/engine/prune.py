"""Prune: remove plugins that are locked but no longer declared."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from pez.engine.context import EngineContext
from pez.engine.outcome import OutcomeStatus, PluginOutcome
from pez.engine.scheduler import raise_for_failures, run_batch
from pez.engine.uninstall import uninstall_locked
from pez.lockfile import LockedPlugin

logger = logging.getLogger(__name__)


@dataclass
class PrunePlan:
    removals: list[LockedPlugin]
    # pez.toml declares nothing, so every locked plugin is up for removal.
    no_plugins_declared: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.removals


@dataclass
class PruneResult:
    plan: PrunePlan
    outcomes: list[PluginOutcome] = field(default_factory=list)
    aborted: bool = False
    dry_run: bool = False


def plan_prune(ctx: EngineContext) -> PrunePlan:
    """Compute ``locked \\ declared``."""
    config = ctx.config_store.load()
    lock = ctx.lock_store.load()
    if not config.has_plugins:
        return PrunePlan(removals=list(lock.plugins), no_plugins_declared=True)
    declared = {spec.get_plugin_repo() for spec in config.declared}
    return PrunePlan(removals=[p for p in lock.plugins if p.repo not in declared])


async def prune(
    ctx: EngineContext,
    force: bool = False,
    dry_run: bool = False,
    yes: bool = False,
    confirm: Callable[[PrunePlan], bool] | None = None,
) -> PruneResult:
    """Remove every undeclared plugin.

    When pez.toml declares no plugins at all, removal of the whole lock file
    needs ``yes`` or a ``confirm`` callback that returns True.

    Raises:
        BatchError: If removing any plugin failed
    """
    plan = plan_prune(ctx)
    result = PruneResult(plan=plan, dry_run=dry_run)
    if plan.is_empty:
        logger.debug("No unused plugins found")
        return result

    if plan.no_plugins_declared:
        logger.warning("No plugins are defined in %s; all locked plugins will be removed", ctx.settings.config_path)

    if dry_run:
        result.outcomes = [_preview(ctx, plugin, force) for plugin in plan.removals]
        return result

    if plan.no_plugins_declared and not yes and (confirm is None or not confirm(plan)):
        result.aborted = True
        result.outcomes = [
            PluginOutcome(target=p.repo.as_str(), status=OutcomeStatus.ABORTED, detail="not confirmed")
            for p in plan.removals
        ]
        return result

    units = [(p.repo.as_str(), _unit(ctx, p, force)) for p in plan.removals]
    result.outcomes = raise_for_failures(await run_batch(units, ctx.settings.jobs))
    return result


def _preview(ctx: EngineContext, plugin: LockedPlugin, force: bool) -> PluginOutcome:
    repo_dir = ctx.locked_repo_dir(plugin)
    if not plugin.repo.is_local and not repo_dir.exists() and not force:
        return PluginOutcome(
            target=plugin.repo.as_str(),
            status=OutcomeStatus.KEPT,
            detail="repository directory is missing; use --force to remove these files",
            commit_sha=plugin.commit_sha,
            files=plugin.destinations(ctx.target_dir),
        )
    return PluginOutcome(
        target=plugin.repo.as_str(),
        status=OutcomeStatus.DRY_RUN,
        detail="would be removed",
        commit_sha=plugin.commit_sha,
        files=[p for p in plugin.destinations(ctx.target_dir) if p.exists()],
    )


def _unit(ctx: EngineContext, plugin: LockedPlugin, force: bool):
    return lambda: uninstall_locked(ctx, plugin, plugin.repo.as_str(), force=force, remove_spec=False)
