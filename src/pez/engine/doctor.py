"""Health checks over configuration, lock file and the fish config tree."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum

from pez.config.loader import load_config
from pez.engine.context import EngineContext
from pez.errors import ConfigError, ConflictError, LockConflictError
from pez.lockfile import LockFile, load_lock
from pez.models import TargetDir


class CheckStatus(str, Enum):
    OK = "ok"
    WARN = "warn"
    ERROR = "error"


@dataclass
class DoctorCheck:
    name: str
    status: CheckStatus
    details: str

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


def collect_checks(ctx: EngineContext) -> list[DoctorCheck]:
    settings = ctx.settings
    checks: list[DoctorCheck] = []

    if not settings.config_path.exists():
        checks.append(DoctorCheck("config", CheckStatus.WARN, "pez.toml not found"))
    else:
        try:
            load_config(settings.config_path)
            checks.append(DoctorCheck("config", CheckStatus.OK, f"found: {settings.config_path}"))
        except ConfigError as e:
            checks.append(DoctorCheck("config", CheckStatus.ERROR, str(e)))

    lock: LockFile | None = None
    if not settings.lock_path.exists():
        checks.append(DoctorCheck("lock_file", CheckStatus.WARN, "pez-lock.toml not found"))
    else:
        try:
            lock = load_lock(settings.lock_path)
            checks.append(DoctorCheck("lock_file", CheckStatus.OK, f"found: {settings.lock_path}"))
        except (ConfigError, LockConflictError) as e:
            checks.append(DoctorCheck("lock_file", CheckStatus.ERROR, str(e)))

    checks.append(
        DoctorCheck(
            "fish_config_dir",
            CheckStatus.OK if settings.target_dir.exists() else CheckStatus.WARN,
            str(settings.target_dir),
        )
    )
    checks.append(
        DoctorCheck(
            "pez_data_dir",
            CheckStatus.OK if settings.data_dir.exists() else CheckStatus.WARN,
            str(settings.data_dir),
        )
    )
    checks.append(_check_install_layout(ctx))

    if lock is not None:
        checks.extend(_check_lock_state(ctx, lock))
    return checks


def has_error(checks: list[DoctorCheck]) -> bool:
    return any(c.status is CheckStatus.ERROR for c in checks)


def _check_install_layout(ctx: EngineContext) -> DoctorCheck:
    invalid = []
    missing = []
    for target in TargetDir:
        path = ctx.target_dir / target.value
        if not path.exists():
            missing.append(target.value)
        elif not path.is_dir():
            invalid.append(str(path))

    if invalid:
        return DoctorCheck(
            "install_layout",
            CheckStatus.WARN,
            f"expected directories but found non-directories: {', '.join(invalid)}",
        )
    if missing:
        return DoctorCheck(
            "install_layout",
            CheckStatus.OK,
            f"ready (missing dirs will be created on install: {', '.join(missing)})",
        )
    return DoctorCheck("install_layout", CheckStatus.OK, "target directories are present")


def _check_lock_state(ctx: EngineContext, lock: LockFile) -> list[DoctorCheck]:
    missing_repos = [p.repo.as_str() for p in lock.plugins if not ctx.locked_repo_dir(p).exists()]
    missing_files = [
        str(path)
        for plugin in lock.plugins
        for path in plugin.destinations(ctx.target_dir)
        if not path.exists()
    ]
    theme_files = [
        f.get_path(ctx.target_dir) for p in lock.plugins for f in p.files if f.dir is TargetDir.THEMES
    ]
    missing_themes = [str(path) for path in theme_files if not path.exists()]

    checks = [
        DoctorCheck(
            "repos",
            CheckStatus.WARN if missing_repos else CheckStatus.OK,
            f"missing: {', '.join(missing_repos)}" if missing_repos else "all cloned",
        ),
        DoctorCheck(
            "target_files",
            CheckStatus.WARN if missing_files else CheckStatus.OK,
            f"missing: {', '.join(missing_files)}" if missing_files else "all present",
        ),
    ]
    try:
        lock.check_conflicts(ctx.target_dir)
        checks.append(DoctorCheck("duplicates", CheckStatus.OK, "no conflicts"))
    except ConflictError as e:
        checks.append(DoctorCheck("duplicates", CheckStatus.ERROR, str(e)))

    if not theme_files:
        checks.append(DoctorCheck("theme_assets", CheckStatus.OK, "no theme assets recorded in lock file"))
    elif missing_themes:
        checks.append(DoctorCheck("theme_assets", CheckStatus.WARN, f"missing: {', '.join(missing_themes)}"))
    else:
        checks.append(DoctorCheck("theme_assets", CheckStatus.OK, "all theme assets are present"))
    return checks
