"""Reconciliation engine: install, upgrade, uninstall, prune and migrate."""

from pez.engine.context import EngineContext
from pez.engine.install import install, install_from_config
from pez.engine.migrate import migrate
from pez.engine.outcome import OutcomeStatus, PluginOutcome
from pez.engine.prune import prune
from pez.engine.uninstall import uninstall
from pez.engine.upgrade import upgrade

__all__ = [
    "EngineContext",
    "OutcomeStatus",
    "PluginOutcome",
    "install",
    "install_from_config",
    "migrate",
    "prune",
    "uninstall",
    "upgrade",
]
