"""Tests for pez.toml schema validation."""

import pytest
from pydantic import ValidationError

from pez.config.schema import PezConfig, PezSettings, PluginSpec
from pez.models import PathSource, PluginRepo, RefSelector, RepoSource, UrlSource


class TestPluginSpec:
    def test_repo_entry(self):
        """A repo entry resolves to a hosted source."""
        spec = PluginSpec(repo="owner/plugin", tag="v1")
        assert spec.source == RepoSource(repo=PluginRepo("owner", "plugin"), selector=RefSelector.tag("v1"))
        assert spec.get_plugin_repo() == PluginRepo("owner", "plugin")
        assert spec.get_name() == "plugin"
        assert spec.raw_target() == "owner/plugin@tag:v1"

    def test_name_override(self):
        """An explicit name wins over the repo name."""
        assert PluginSpec(repo="owner/plugin", name="custom").get_name() == "custom"

    def test_url_entry(self):
        """URL entries share identity with the equivalent shorthand."""
        spec = PluginSpec(url="https://github.com/owner/plugin.git", branch="dev")
        assert isinstance(spec.source, UrlSource)
        assert spec.selector == RefSelector.branch("dev")
        assert spec.get_plugin_repo() == PluginRepo("owner", "plugin")

    def test_path_entry(self):
        """Path entries are local sources."""
        spec = PluginSpec(path="~/dev/plugin")
        assert spec.source == PathSource(path="~/dev/plugin")
        assert spec.get_plugin_repo().is_local

    def test_latest(self):
        """version = 'latest' is the Latest selector."""
        assert PluginSpec(repo="owner/plugin", version="latest").selector == RefSelector.latest()

    @pytest.mark.parametrize(
        "fields",
        [
            {},
            {"repo": "owner/plugin", "url": "https://example.com/a/b"},
            {"repo": "owner/plugin", "tag": "v1", "branch": "main"},
            {"path": "~/dev/plugin", "version": "1"},
            {"path": "relative/plugin"},
            {"repo": "not-a-repo"},
            {"repo": "owner/plugin", "unknown": "x"},
            {"url": "https://example.com/lonely"},
        ],
    )
    def test_invalid_entries(self, fields):
        """oneOf rules reject ambiguous or malformed entries."""
        with pytest.raises(ValidationError):
            PluginSpec(**fields)

    def test_from_source_round_trip(self):
        """An entry built from a source serializes only the set keys."""
        source = RepoSource(repo=PluginRepo("team", "pkg", "gitlab.com"), selector=RefSelector.commit("abc"))
        spec = PluginSpec.from_source(source)
        assert spec.to_toml() == {"repo": "gitlab.com/team/pkg", "commit": "abc"}
        assert PluginSpec.from_source(PathSource(path="/src/p")).to_toml() == {"path": "/src/p"}


class TestPezConfig:
    def test_empty_and_missing_plugins(self):
        """A missing plugins key and an empty list both mean nothing declared."""
        assert not PezConfig().has_plugins
        assert not PezConfig(plugins=[]).has_plugins
        assert PezConfig().to_toml() == {}

    def test_ensure_plugin_is_idempotent_by_identity(self):
        """Re-declaring the same repo, however it is written, is a no-op."""
        config = PezConfig()
        assert config.ensure_plugin(PluginSpec(repo="owner/plugin"))
        assert not config.ensure_plugin(PluginSpec(url="https://github.com/owner/plugin"))
        assert not config.ensure_plugin(PluginSpec(repo="github.com/owner/plugin", tag="v2"))
        assert len(config.declared) == 1

    def test_remove_plugin_by_identity(self):
        """Removal matches the canonical repo, not the raw string."""
        config = PezConfig(plugins=[PluginSpec(url="git@github.com:owner/plugin.git"), PluginSpec(repo="a/b")])
        assert config.remove_plugin(PluginRepo("owner", "plugin"))
        assert [s.repo for s in config.declared] == ["a/b"]
        assert not config.remove_plugin(PluginRepo("owner", "plugin"))


def test_settings_paths(tmp_path):
    """Store paths live in the config dir, fish_plugins in the target dir."""
    settings = PezSettings(config_dir=tmp_path / "c", data_dir=tmp_path / "d", target_dir=tmp_path / "t")
    assert settings.config_path == tmp_path / "c" / "pez.toml"
    assert settings.lock_path == tmp_path / "c" / "pez-lock.toml"
    assert settings.fish_plugins_path == tmp_path / "t" / "fish_plugins"
    assert settings.jobs == 4


def test_settings_rejects_zero_jobs(tmp_path):
    """jobs must be at least one."""
    with pytest.raises(ValidationError):
        PezSettings(config_dir=tmp_path, data_dir=tmp_path, target_dir=tmp_path, jobs=0)
