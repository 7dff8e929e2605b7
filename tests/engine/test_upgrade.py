"""Tests for upgrade reconciliation."""

import shutil

import pytest

from pez.config.loader import save_config
from pez.config.schema import PezConfig, PluginSpec
from pez.engine.install import install_one
from pez.engine.outcome import OutcomeStatus
from pez.engine.upgrade import effective_selector, upgrade, upgrade_one
from pez.errors import BatchError, NotInstalledError
from pez.models import PluginRepo, RefSelector
from pez.notify import Event
from pez.resolver import resolve_target

COMMIT_A = "a" * 40
COMMIT_B = "b" * 40


def lock_entry(ctx):
    return ctx.lock_store.load().get_plugin_by_repo(PluginRepo("owner", "plugin"))


class TestUpgradeOne:
    def test_up_to_date(self, ctx, remote, fake_vcs):
        """Nothing changes when upstream has no new commit."""
        install_one(ctx, resolve_target("owner/plugin"))
        before = ctx.settings.lock_path.read_text()

        outcome = upgrade_one(ctx, resolve_target("owner/plugin"))

        assert outcome.status is OutcomeStatus.UP_TO_DATE
        assert fake_vcs.count("checkout") == 0
        assert ctx.settings.lock_path.read_text() == before

    def test_upgrade_replaces_files(self, ctx, remote, notifier):
        """Stale files of the old commit are removed and the lock entry is replaced."""
        install_one(ctx, resolve_target("owner/plugin"))
        remote.commit(
            COMMIT_B,
            {"functions/plugin.fish": "function plugin; echo 2; end", "conf.d/plugin_init.fish": "init"},
        )

        outcome = upgrade_one(ctx, resolve_target("owner/plugin"))

        assert outcome.status is OutcomeStatus.UPGRADED
        assert outcome.detail == "aaaaaaa -> bbbbbbb"
        entry = lock_entry(ctx)
        assert entry.commit_sha == COMMIT_B
        assert sorted(f.name for f in entry.files) == ["plugin.fish", "plugin_init.fish"]
        assert not (ctx.target_dir / "conf.d" / "plugin.fish").exists()
        assert not (ctx.target_dir / "completions" / "plugin.fish").exists()
        assert (ctx.target_dir / "conf.d" / "plugin_init.fish").exists()
        assert ("plugin_init.fish", Event.UPDATE) in notifier.events

    def test_follows_declared_selector(self, ctx, remote):
        """Without an explicit pin, the selector from pez.toml is used."""
        remote.commit(COMMIT_B, {"functions/plugin.fish": "dev"}, branch="dev")
        install_one(ctx, resolve_target("owner/plugin"))
        save_config(PezConfig(plugins=[PluginSpec(repo="owner/plugin", branch="dev")]), ctx.settings.config_path)

        assert effective_selector(ctx, resolve_target("owner/plugin")) == RefSelector.branch("dev")
        outcome = upgrade_one(ctx, resolve_target("owner/plugin"))

        assert outcome.commit_sha == COMMIT_B
        assert (ctx.target_dir / "functions" / "plugin.fish").read_text() == "dev"

    def test_not_installed(self, ctx):
        """Upgrading an unknown plugin is an error."""
        with pytest.raises(NotInstalledError):
            upgrade_one(ctx, resolve_target("owner/plugin"))

    def test_missing_directory_is_skipped(self, ctx, remote):
        """A missing clone is reported, not re-cloned."""
        install_one(ctx, resolve_target("owner/plugin"))
        shutil.rmtree(ctx.settings.data_dir / "owner" / "plugin")

        outcome = upgrade_one(ctx, resolve_target("owner/plugin"))

        assert outcome.status is OutcomeStatus.MISSING_DIRECTORY
        assert "pez install" in outcome.detail
        assert lock_entry(ctx).commit_sha == COMMIT_A

    def test_local_plugin_is_up_to_date(self, ctx, tmp_path):
        """Local plugins have nothing to fetch."""
        source = tmp_path / "src" / "local"
        (source / "functions").mkdir(parents=True)
        (source / "functions" / "local.fish").write_text("")
        install_one(ctx, resolve_target(str(source)))

        outcome = upgrade_one(ctx, resolve_target(str(source)))

        assert outcome.status is OutcomeStatus.UP_TO_DATE
        assert outcome.detail == "local plugin"


class TestUpgradeBatch:
    @pytest.mark.asyncio
    async def test_upgrades_declared_plugins_by_default(self, ctx, remote):
        """With no targets every pez.toml entry is upgraded."""
        install_one(ctx, resolve_target("owner/plugin"))
        remote.commit(COMMIT_B, {"functions/plugin.fish": "new"})

        outcomes = await upgrade(ctx)

        assert [o.status for o in outcomes] == [OutcomeStatus.UPGRADED]

    @pytest.mark.asyncio
    async def test_not_installed_target_fails_batch(self, ctx, remote):
        """A target without a lock entry fails without stopping the others."""
        install_one(ctx, resolve_target("owner/plugin"))
        remote.commit(COMMIT_B, {"functions/plugin.fish": "new"})

        with pytest.raises(BatchError) as exc_info:
            await upgrade(ctx, ["owner/plugin", "owner/other"])

        statuses = {o.target: o.status for o in exc_info.value.outcomes}
        assert statuses == {"owner/plugin": OutcomeStatus.UPGRADED, "owner/other": OutcomeStatus.FAILED}
        assert isinstance(exc_info.value.failures[0].error, NotInstalledError)
        assert lock_entry(ctx).commit_sha == COMMIT_B
