"""Tests for fish event notifications."""

import subprocess
from unittest.mock import patch

from pez.notify import Event, FishEventNotifier, NullNotifier


def test_emit_runs_fish():
    """The event name is the file stem plus the event."""
    notifier = FishEventNotifier()
    with patch("pez.notify.subprocess.run") as mock_run:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
        notifier.emit("plugin.fish", Event.UNINSTALL)
    mock_run.assert_called_once()
    assert mock_run.call_args[0][0] == ["fish", "-c", "emit plugin_uninstall"]


def test_emit_failure_is_logged(caplog):
    """A failing hook does not raise."""
    notifier = FishEventNotifier()
    with patch("pez.notify.subprocess.run") as mock_run:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=1)
        notifier.emit("plugin.fish", Event.INSTALL)
    assert "failing error code" in caplog.text


def test_emit_missing_fish(caplog):
    """A missing fish executable is logged, not raised."""
    notifier = FishEventNotifier(executable="definitely-not-fish")
    with patch("pez.notify.subprocess.run", side_effect=FileNotFoundError("no fish")):
        notifier.emit("plugin.fish", Event.UPDATE)
    assert "Failed to run" in caplog.text


def test_null_notifier():
    """NullNotifier accepts every event."""
    assert NullNotifier().emit("x.fish", Event.INSTALL) is None
