"""Exception hierarchy shared by the resolver, the stores and the engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pez.engine.outcome import PluginOutcome


class PezError(Exception):
    """Base class for every error raised by pez."""


class ParseError(PezError):
    """A plugin identifier or ref selector could not be parsed."""


class ConfigError(PezError):
    """pez.toml or pez-lock.toml is unreadable or invalid."""


class NotInstalledError(PezError):
    """The plugin has no entry in the lock file."""


class AlreadyExistsError(PezError):
    """The plugin is already installed."""


class MissingDirectoryError(PezError):
    """A locked plugin's repository directory does not exist."""


class ConflictError(PezError):
    """Two locked plugins project a file to the same destination."""


class LockConflictError(AlreadyExistsError):
    """The lock file would contain two entries with the same source or name."""


class CollaboratorError(PezError):
    """A git operation failed."""

    def __init__(self, message: str, command: Sequence[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = list(command) if command else []
        self.stderr = stderr


class BatchError(PezError):
    """One or more units of a batch failed.

    Raised only after every unit of the batch has run, so ``outcomes`` holds
    the result of each plugin, successful or not.
    """

    def __init__(self, outcomes: Sequence[PluginOutcome]):
        self.outcomes = list(outcomes)
        failed = [o for o in self.outcomes if o.error is not None]
        names = ", ".join(o.target for o in failed)
        super().__init__(f"{len(failed)} of {len(self.outcomes)} plugin(s) failed: {names}")

    @property
    def failures(self) -> list[PluginOutcome]:
        return [o for o in self.outcomes if o.error is not None]
