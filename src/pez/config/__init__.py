"""Declared plugins (pez.toml) and runtime settings."""

from pez.config.loader import ConfigStore, init_config, load_config, save_config
from pez.config.paths import load_settings
from pez.config.schema import PezConfig, PezSettings, PluginSpec

__all__ = [
    "ConfigStore",
    "PezConfig",
    "PezSettings",
    "PluginSpec",
    "init_config",
    "load_config",
    "load_settings",
    "save_config",
]
