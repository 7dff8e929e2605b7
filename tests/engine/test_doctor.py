"""Tests for doctor health checks."""

import shutil

from pez.engine.doctor import CheckStatus, collect_checks, has_error
from pez.engine.install import install_one
from pez.lockfile import LockedPlugin, PluginFile
from pez.models import PluginRepo, TargetDir
from pez.resolver import resolve_target


def by_name(checks):
    return {c.name: c for c in checks}


def test_fresh_environment(ctx):
    """Missing files are warnings, not errors."""
    checks = by_name(collect_checks(ctx))
    assert checks["config"].status is CheckStatus.WARN
    assert checks["lock_file"].status is CheckStatus.WARN
    assert "repos" not in checks
    assert not has_error(list(checks.values()))


def test_healthy_install(ctx, remote):
    """A clean install passes every check."""
    install_one(ctx, resolve_target("owner/plugin"))
    checks = by_name(collect_checks(ctx))
    assert checks["config"].status is CheckStatus.OK
    assert checks["repos"].details == "all cloned"
    assert checks["target_files"].status is CheckStatus.OK
    assert checks["duplicates"].status is CheckStatus.OK
    assert not has_error(list(checks.values()))


def test_missing_repo_and_files(ctx, remote):
    """Missing clones and projected files are reported."""
    install_one(ctx, resolve_target("owner/plugin"))
    shutil.rmtree(ctx.settings.data_dir / "owner" / "plugin")
    (ctx.target_dir / "functions" / "plugin.fish").unlink()

    checks = by_name(collect_checks(ctx))

    assert checks["repos"].status is CheckStatus.WARN
    assert "owner/plugin" in checks["repos"].details
    assert checks["target_files"].status is CheckStatus.WARN


def test_conflicting_destinations(ctx, remote):
    """Two plugins owning the same file is an error."""
    install_one(ctx, resolve_target("owner/plugin"))
    clash = LockedPlugin(
        name="clash",
        repo=PluginRepo("someone", "clash"),
        source="https://github.com/someone/clash",
        commit_sha="c" * 40,
        files=[PluginFile(dir=TargetDir.FUNCTIONS, name="plugin.fish")],
    )
    ctx.lock_store.update(lambda lock: lock.add_plugin(clash))

    checks = collect_checks(ctx)

    assert by_name(checks)["duplicates"].status is CheckStatus.ERROR
    assert "plugin.fish" in by_name(checks)["duplicates"].details
    assert has_error(checks)


def test_invalid_config(ctx):
    """An unreadable pez.toml is an error."""
    ctx.settings.config_path.parent.mkdir(parents=True)
    ctx.settings.config_path.write_text("[[plugins]]\nrepo = 1\n")
    checks = by_name(collect_checks(ctx))
    assert checks["config"].status is CheckStatus.ERROR
    assert checks["config"].to_dict()["status"] == "error"
