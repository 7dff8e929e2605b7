"""Tests for importing fisher's fish_plugins."""

import pytest

from pez.config.loader import save_config
from pez.config.schema import PezConfig, PluginSpec
from pez.engine.migrate import ChangeKind, merge_into_config, migrate, parse_fish_plugins, should_update_existing
from pez.engine.outcome import OutcomeStatus
from pez.errors import ConfigError
from pez.models import PluginRepo


def write_fish_plugins(ctx, text):
    path = ctx.settings.fish_plugins_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


class TestParseFishPlugins:
    def test_skips_noise_and_fisher(self, caplog):
        """Comments, blanks, empty refs, bad entries and fisher itself are skipped."""
        targets = parse_fish_plugins(
            [
                "jorgebucaran/fisher",
                "# comment",
                "",
                "owner/plugin",
                "owner/empty@",
                "not a plugin",
                "git@github.com:team/pkg.git@v1",
                "gitlab.com/team/theme@tag:v2",
            ]
        )
        assert [t.plugin_repo for t in targets] == [
            PluginRepo("owner", "plugin"),
            PluginRepo("team", "theme", "gitlab.com"),
        ]
        assert "empty ref" in caplog.text
        assert "ambiguous" in caplog.text

    def test_last_entry_wins(self):
        """A repeated plugin keeps its last spelling, in the last position."""
        targets = parse_fish_plugins(["owner/plugin@v1", "owner/other", "owner/plugin@v2"])
        assert [t.raw for t in targets] == ["owner/other", "owner/plugin@v2"]


class TestShouldUpdateExisting:
    def test_identical(self):
        """Equal sources are left alone."""
        assert not should_update_existing(PluginSpec(repo="a/b"), PluginSpec(repo="a/b"))

    def test_never_drops_a_pin(self):
        """An unpinned import does not replace a pinned entry."""
        assert not should_update_existing(PluginSpec(repo="a/b", tag="v1"), PluginSpec(repo="a/b"))

    def test_new_pin_wins(self):
        """A pinned import replaces an unpinned or differently pinned entry."""
        assert should_update_existing(PluginSpec(repo="a/b"), PluginSpec(repo="a/b", tag="v1"))
        assert should_update_existing(PluginSpec(repo="a/b", tag="v1"), PluginSpec(repo="a/b", tag="v2"))

    def test_custom_source_kept(self):
        """A hand-written URL is not replaced by shorthand."""
        existing = PluginSpec(url="git@github.com:a/b.git")
        assert not should_update_existing(existing, PluginSpec(repo="a/b"))
        assert should_update_existing(PluginSpec(repo="a/b"), PluginSpec(url="https://github.com/a/b"))


def test_merge_into_config_keeps_names():
    """Updated entries keep their existing display name."""
    config = PezConfig(plugins=[PluginSpec(repo="a/b", name="bee"), PluginSpec(repo="c/d")])
    changes = merge_into_config(config, [PluginSpec(repo="a/b", version="2"), PluginSpec(repo="c/d"), PluginSpec(repo="e/f")])
    assert [c.kind for c in changes] == [ChangeKind.UPDATE, ChangeKind.UNCHANGED, ChangeKind.ADD]
    assert config.declared[0].name == "bee"
    assert config.declared[0].version == "2"
    assert [s.repo for s in config.declared] == ["a/b", "c/d", "e/f"]


def test_merge_force_replaces():
    """--force replaces every entry."""
    config = PezConfig(plugins=[PluginSpec(repo="a/b")])
    merge_into_config(config, [PluginSpec(repo="c/d")], force=True)
    assert [s.repo for s in config.declared] == ["c/d"]


class TestMigrate:
    @pytest.mark.asyncio
    async def test_missing_file(self, ctx):
        """Without fish_plugins there is nothing to migrate."""
        with pytest.raises(ConfigError, match="fish_plugins not found"):
            await migrate(ctx)

    @pytest.mark.asyncio
    async def test_writes_config(self, ctx):
        """Entries are merged into pez.toml."""
        write_fish_plugins(ctx, "jorgebucaran/fisher\nowner/plugin\nowner/pinned@tag:v1\n")

        result = await migrate(ctx)

        declared = ctx.config_store.load().declared
        assert [s.repo for s in declared] == ["owner/plugin", "owner/pinned"]
        assert declared[1].tag == "v1"
        assert len(result.planned) == 2

    @pytest.mark.asyncio
    async def test_dry_run_does_not_write(self, ctx):
        """A dry run reports changes without saving."""
        write_fish_plugins(ctx, "owner/plugin\n")
        result = await migrate(ctx, dry_run=True)
        assert [c.kind for c in result.changes] == [ChangeKind.ADD]
        assert not ctx.settings.config_path.exists()

    @pytest.mark.asyncio
    async def test_existing_entries_preserved(self, ctx):
        """Entries not in fish_plugins stay in pez.toml."""
        save_config(PezConfig(plugins=[PluginSpec(repo="keep/me")]), ctx.settings.config_path)
        write_fish_plugins(ctx, "owner/plugin\n")
        await migrate(ctx)
        assert [s.repo for s in ctx.config_store.load().declared] == ["keep/me", "owner/plugin"]

    @pytest.mark.asyncio
    async def test_install_planned(self, ctx, remote):
        """--install installs the added entries."""
        write_fish_plugins(ctx, "owner/plugin\n")
        result = await migrate(ctx, install=True)
        assert [o.status for o in result.installed] == [OutcomeStatus.INSTALLED]
        assert ctx.lock_store.load().plugins[0].repo == PluginRepo("owner", "plugin")

    @pytest.mark.asyncio
    async def test_install_keeps_display_name(self, ctx, remote):
        """An updated entry is locked under the name it already had in pez.toml."""
        remote.tag("v1", "a" * 40)
        save_config(PezConfig(plugins=[PluginSpec(repo="owner/plugin", name="custom")]), ctx.settings.config_path)
        write_fish_plugins(ctx, "owner/plugin@tag:v1\n")

        result = await migrate(ctx, install=True)

        assert [c.kind for c in result.changes] == [ChangeKind.UPDATE]
        assert ctx.lock_store.load().plugins[0].name == "custom"
