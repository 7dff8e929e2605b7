"""Everything an engine operation needs, passed explicitly."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from pez.config.loader import ConfigStore
from pez.config.schema import PezSettings
from pez.engine.outcome import PluginOutcome
from pez.errors import ParseError
from pez.lockfile import LockedPlugin, LockStore, PluginFile
from pez.models import TargetDir
from pez.notify import Event, FishEventNotifier, Notifier, NullNotifier
from pez.resolver import ResolvedTarget, resolve_target
from pez.vcs import GitCLI, VersionControl

logger = logging.getLogger(__name__)


@dataclass
class EngineContext:
    settings: PezSettings
    vcs: VersionControl
    notifier: Notifier
    config_store: ConfigStore
    lock_store: LockStore

    @classmethod
    def from_settings(
        cls,
        settings: PezSettings,
        vcs: VersionControl | None = None,
        notifier: Notifier | None = None,
    ) -> EngineContext:
        if notifier is None:
            notifier = NullNotifier() if settings.suppress_emit else FishEventNotifier()
        return cls(
            settings=settings,
            vcs=vcs or GitCLI(),
            notifier=notifier,
            config_store=ConfigStore(settings.config_path),
            lock_store=LockStore(settings.lock_path),
        )

    @property
    def target_dir(self) -> Path:
        return self.settings.target_dir

    def repo_dir(self, target: ResolvedTarget) -> Path:
        """Where the plugin's repository lives. Local plugins are read in place."""
        if target.is_local:
            return Path(target.source)
        return self.settings.data_dir / target.plugin_repo.as_str()

    def locked_repo_dir(self, plugin: LockedPlugin) -> Path:
        if plugin.repo.is_local:
            return Path(plugin.source)
        return self.settings.data_dir / plugin.repo.as_str()

    def notify(self, files: Iterable[PluginFile], event: Event) -> None:
        """Emit ``event`` for every conf.d file, the only ones fish sources at startup."""
        for plugin_file in files:
            if plugin_file.dir is TargetDir.CONF_D:
                self.notifier.emit(plugin_file.name, event)


def resolve_targets(raws: Iterable[str]) -> tuple[list[ResolvedTarget], list[PluginOutcome]]:
    """Resolve raw identifiers for a batch.

    Unparseable identifiers become failed outcomes so the rest of the batch
    can proceed. Duplicates (by canonical repo) keep their first occurrence.

    Raises:
        ParseError: If nothing could be resolved
    """
    raws = list(raws)
    resolved: list[ResolvedTarget] = []
    failures: list[PluginOutcome] = []
    seen = set()
    for raw in raws:
        try:
            target = resolve_target(raw)
        except ParseError as e:
            if len(raws) == 1:
                raise
            logger.warning("Skipping '%s': %s", raw, e)
            failures.append(PluginOutcome.failed(raw, e))
            continue
        if target.plugin_repo in seen:
            continue
        seen.add(target.plugin_repo)
        resolved.append(target)

    if raws and not resolved:
        raise ParseError(f"None of the given plugins could be resolved: {', '.join(raws)}")
    return resolved, failures
