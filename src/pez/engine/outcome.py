"""Per-plugin results reported by every reconciliation operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class OutcomeStatus(str, Enum):
    INSTALLED = "installed"
    REINSTALLED = "reinstalled"
    RESTORED = "restored"
    ADOPTED = "adopted"
    SKIPPED = "skipped"
    UPGRADED = "upgraded"
    UP_TO_DATE = "up_to_date"
    OUTDATED = "outdated"
    MISSING_DIRECTORY = "missing_directory"
    UNINSTALLED = "uninstalled"
    KEPT = "kept"
    DRY_RUN = "dry_run"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class PluginOutcome:
    """What happened to one plugin.

    ``error`` is set only for ``FAILED`` outcomes; it holds the exception
    that stopped that plugin's unit.
    """

    target: str
    status: OutcomeStatus
    detail: str = ""
    commit_sha: str | None = None
    files: list[Path] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, target: str, error: BaseException) -> PluginOutcome:
        return cls(target=target, status=OutcomeStatus.FAILED, detail=str(error), error=error)
