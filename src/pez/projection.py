"""Copy plugin files into the fish configuration tree and remove them again."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from pathlib import Path

from pez.lockfile import PluginFile
from pez.models import TargetDir

logger = logging.getLogger(__name__)


def scan_files(repo_dir: Path) -> list[PluginFile]:
    """List the files a plugin directory would project, without copying."""
    files: list[PluginFile] = []
    for target in TargetDir:
        source_dir = repo_dir / target.value
        if not source_dir.is_dir():
            continue
        for path in sorted(source_dir.rglob(f"*.{target.extension}")):
            if path.is_file():
                files.append(PluginFile(dir=target, name=path.relative_to(source_dir).as_posix()))
    return files


def project_files(repo_dir: Path, target_dir: Path) -> list[PluginFile]:
    """Copy ``functions``, ``completions``, ``conf.d`` and ``themes`` into ``target_dir``.

    Only ``*.fish`` files (``*.theme`` under ``themes``) are copied, keeping
    their path relative to the category directory.

    Returns:
        The projected files, in copy order
    """
    files = scan_files(repo_dir)
    for plugin_file in files:
        source = repo_dir / plugin_file.dir.value / plugin_file.name
        dest = plugin_file.get_path(target_dir)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
        logger.debug("Copied %s -> %s", source, dest)

    if not files:
        logger.warning(
            "No valid files found in %s. Ensure it has functions, completions, conf.d or themes directories.",
            repo_dir,
        )
    return files


def remove_files(files: Iterable[PluginFile], target_dir: Path, keep: set[Path] | None = None) -> list[Path]:
    """Delete projected files that still exist.

    Args:
        files: Files recorded for a plugin
        target_dir: fish configuration root
        keep: Destinations that must survive, e.g. those claimed by another plugin

    Returns:
        Paths that were deleted
    """
    keep = keep or set()
    removed: list[Path] = []
    for plugin_file in files:
        dest = plugin_file.get_path(target_dir)
        if dest in keep:
            logger.debug("Keeping %s, it is claimed by another plugin", dest)
            continue
        if dest.is_file() or dest.is_symlink():
            dest.unlink()
            removed.append(dest)
            logger.debug("Removed %s", dest)
    return removed
