"""Shared fixtures for CLI tests."""

from unittest.mock import patch

import pytest


@pytest.fixture
def cli_env(monkeypatch, settings, fake_vcs):
    """Point the CLI at temporary directories and the fake git."""
    monkeypatch.setenv("PEZ_CONFIG_DIR", str(settings.config_dir))
    monkeypatch.setenv("PEZ_DATA_DIR", str(settings.data_dir))
    monkeypatch.setenv("PEZ_TARGET_DIR", str(settings.target_dir))
    monkeypatch.setenv("PEZ_SUPPRESS_EMIT", "1")
    monkeypatch.delenv("PEZ_JOBS", raising=False)
    monkeypatch.delenv("PEZ_LOG", raising=False)
    with patch("pez.engine.context.GitCLI", return_value=fake_vcs):
        yield settings
