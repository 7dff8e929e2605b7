"""Import a fisher ``fish_plugins`` manifest into pez.toml."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from pez.config.schema import PezConfig, PluginSpec
from pez.engine.context import EngineContext
from pez.engine.install import install_resolved
from pez.engine.outcome import PluginOutcome
from pez.errors import ConfigError, ParseError
from pez.models import PathSource, PluginRepo, RepoSource, UrlSource
from pez.resolver import ResolvedTarget, resolve_source, resolve_target

logger = logging.getLogger(__name__)

FISHER_REPO = PluginRepo(owner="jorgebucaran", repo="fisher")


class ChangeKind(str, Enum):
    ADD = "add"
    UPDATE = "update"
    UNCHANGED = "unchanged"


@dataclass
class MigrateChange:
    kind: ChangeKind
    spec: PluginSpec
    previous: PluginSpec | None = None

    @property
    def repo(self) -> PluginRepo:
        return self.spec.get_plugin_repo()


@dataclass
class MigrateResult:
    changes: list[MigrateChange] = field(default_factory=list)
    dry_run: bool = False
    installed: list[PluginOutcome] = field(default_factory=list)

    @property
    def planned(self) -> list[PluginSpec]:
        """Entries that were (or would be) added or updated."""
        return [c.spec for c in self.changes if c.kind is not ChangeKind.UNCHANGED]


def parse_fish_plugins(lines: Iterable[str]) -> list[ResolvedTarget]:
    """Parse fish_plugins lines into targets.

    Skips blanks, comments, entries with an empty ``@`` ref, unparseable
    entries, URLs with an ambiguous ``@`` suffix and fisher itself. When a
    plugin appears more than once the last entry wins.
    """
    by_repo: dict[PluginRepo, ResolvedTarget] = {}
    for line in lines:
        value = line.strip()
        if not value or value.startswith("#"):
            continue
        if value.endswith("@"):
            logger.warning("Skipping entry with an empty ref: %s", value)
            continue
        try:
            target = resolve_target(value)
        except ParseError as e:
            logger.warning("Skipping unrecognized entry: %s (%s)", value, e)
            continue
        if target.unrecognized_ref is not None:
            logger.warning("Skipping ambiguous entry, '@%s' is not a recognized ref: %s", target.unrecognized_ref, value)
            continue
        if target.plugin_repo == FISHER_REPO:
            continue
        by_repo.pop(target.plugin_repo, None)
        by_repo[target.plugin_repo] = target
    return list(by_repo.values())


def should_update_existing(existing: PluginSpec, incoming: PluginSpec) -> bool:
    """Whether an imported entry may replace an entry already in pez.toml.

    A pin is never dropped, and a hand-written URL or path source is never
    replaced by plain ``owner/repo`` shorthand unless a new pin comes with it.
    """
    if existing.source == incoming.source:
        return False
    existing_pinned = existing.selector.is_pinned
    incoming_pinned = incoming.selector.is_pinned
    if existing_pinned and not incoming_pinned:
        return False
    if existing_pinned and incoming_pinned and existing.selector != incoming.selector:
        return True
    if incoming_pinned and not existing_pinned:
        return True
    custom = isinstance(existing.source, (UrlSource, PathSource))
    return not (custom and isinstance(incoming.source, RepoSource))


def merge_into_config(config: PezConfig, incoming: list[PluginSpec], force: bool = False) -> list[MigrateChange]:
    """Merge imported entries into ``config`` in place."""
    if force or not config.has_plugins:
        config.plugins = list(incoming)
        return [MigrateChange(ChangeKind.ADD, spec) for spec in incoming]

    changes: list[MigrateChange] = []
    plugins = config.declared
    for spec in incoming:
        index = config.find(spec.get_plugin_repo())
        if index is None:
            plugins.append(spec)
            config.plugins = plugins
            changes.append(MigrateChange(ChangeKind.ADD, spec))
            continue
        existing = plugins[index]
        if should_update_existing(existing, spec):
            updated = spec.model_copy(update={"name": spec.name or existing.name})
            plugins[index] = updated
            config.plugins = plugins
            changes.append(MigrateChange(ChangeKind.UPDATE, updated, previous=existing))
        else:
            changes.append(MigrateChange(ChangeKind.UNCHANGED, existing))
    return changes


async def migrate(
    ctx: EngineContext,
    force: bool = False,
    dry_run: bool = False,
    install: bool = False,
) -> MigrateResult:
    """Import ``fish_plugins`` from the fish config directory.

    Raises:
        ConfigError: If fish_plugins does not exist
        BatchError: If ``install`` is set and installing a planned plugin failed
    """
    path = ctx.settings.fish_plugins_path
    if not path.exists():
        raise ConfigError(f"fish_plugins not found at {path}")

    logger.info("Reading %s", path)
    targets = parse_fish_plugins(path.read_text().splitlines())
    result = MigrateResult(dry_run=dry_run)
    if not targets:
        logger.warning("No valid entries to migrate")
        return result

    incoming = [PluginSpec.from_source(t.to_plugin_source()) for t in targets]
    if dry_run:
        result.changes = merge_into_config(ctx.config_store.load(), incoming, force=force)
        return result

    result.changes = ctx.config_store.update(lambda config: merge_into_config(config, incoming, force=force))
    logger.info("Updated %s", ctx.settings.config_path)

    if install and result.planned:
        logger.info("Installing migrated plugins...")
        resolved = [resolve_source(spec.source) for spec in result.planned]
        names = {spec.get_plugin_repo(): spec.get_name() for spec in result.planned}
        result.installed = await install_resolved(ctx, resolved, names=names)
    return result
