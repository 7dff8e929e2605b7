"""Environment-driven resolution of pez directories."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pez.config.schema import DEFAULT_JOBS, PezSettings

logger = logging.getLogger(__name__)


def _env_path(env: Mapping[str, str], name: str) -> Path | None:
    value = env.get(name)
    if value:
        return Path(value).expanduser()
    return None


def fish_config_dir(env: Mapping[str, str]) -> Path:
    """fish's own configuration directory."""
    path = _env_path(env, "__fish_config_dir")
    if path is not None:
        return path
    xdg = _env_path(env, "XDG_CONFIG_HOME")
    if xdg is not None:
        return xdg / "fish"
    return Path.home() / ".config" / "fish"


def resolve_config_dir(env: Mapping[str, str]) -> Path:
    return _env_path(env, "PEZ_CONFIG_DIR") or fish_config_dir(env)


def resolve_target_dir(env: Mapping[str, str]) -> Path:
    return _env_path(env, "PEZ_TARGET_DIR") or fish_config_dir(env)


def resolve_data_dir(env: Mapping[str, str]) -> Path:
    path = _env_path(env, "PEZ_DATA_DIR")
    if path is not None:
        return path
    fish_data = _env_path(env, "__fish_user_data_dir")
    if fish_data is not None:
        return fish_data / "pez"
    xdg = _env_path(env, "XDG_DATA_HOME")
    if xdg is not None:
        return xdg / "fish" / "pez"
    return Path.home() / ".local" / "share" / "fish" / "pez"


def resolve_jobs(env: Mapping[str, str], jobs: int | None = None) -> int:
    if jobs is not None:
        return max(1, jobs)
    value = env.get("PEZ_JOBS")
    if value:
        try:
            return max(1, int(value))
        except ValueError:
            logger.warning("Ignoring invalid PEZ_JOBS value '%s'", value)
    return DEFAULT_JOBS


def load_settings(env: Mapping[str, str] | None = None, jobs: int | None = None) -> PezSettings:
    """Build settings from the environment.

    Args:
        env: Environment mapping, defaults to ``os.environ``
        jobs: Explicit concurrency limit that overrides ``PEZ_JOBS``
    """
    if env is None:
        env = os.environ
    return PezSettings(
        config_dir=resolve_config_dir(env),
        data_dir=resolve_data_dir(env),
        target_dir=resolve_target_dir(env),
        jobs=resolve_jobs(env, jobs),
        suppress_emit="PEZ_SUPPRESS_EMIT" in env,
    )
