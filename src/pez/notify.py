"""Fish event notifications around install, update and uninstall."""

from __future__ import annotations

import logging
import subprocess
from enum import Enum
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Event(str, Enum):
    INSTALL = "install"
    UPDATE = "update"
    UNINSTALL = "uninstall"


class Notifier(Protocol):
    def emit(self, file_name: str, event: Event) -> None: ...


class NullNotifier:
    """Notifier that does nothing."""

    def emit(self, file_name: str, event: Event) -> None:
        return None


class FishEventNotifier:
    """Emit ``<stem>_<event>`` through ``fish -c`` so conf.d hooks can run.

    Failures are logged, never raised: a broken hook must not block an
    uninstall.
    """

    def __init__(self, executable: str = "fish"):
        self.executable = executable

    def emit(self, file_name: str, event: Event) -> None:
        stem = Path(file_name).stem
        if not stem:
            logger.warning("Could not extract plugin name from '%s', not emitting %s", file_name, event.value)
            return
        command = [self.executable, "-c", f"emit {stem}_{event.value}"]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as e:
            logger.error("Failed to run %s to emit event: %s", self.executable, e)
            return
        if result.returncode != 0:
            logger.error("Command executed with failing error code: %s", " ".join(command))
            return
        logger.debug("Emitted event: %s_%s", stem, event.value)
