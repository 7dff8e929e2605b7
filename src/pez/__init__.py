"""pez - a plugin manager for the fish shell.

pez keeps three sources of truth in agreement: the plugins declared in
``pez.toml``, the revisions recorded in ``pez-lock.toml`` and the files that
actually live in the fish configuration tree.

Key modules:

- :mod:`pez.resolver` - Turn raw identifiers (``owner/repo@v1``, URLs, paths) into canonical sources
- :mod:`pez.config` - Declared plugins (pez.toml) and environment-driven settings
- :mod:`pez.lockfile` - The lock record of installed commits and projected files
- :mod:`pez.vcs` - Git collaborator used to clone, resolve and check out revisions
- :mod:`pez.engine` - Install, upgrade, uninstall, prune and migrate reconciliation
- :mod:`pez.cli` - Typer command-line interface
"""

__version__ = "0.1.0"
