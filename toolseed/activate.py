"""Extract a verified artifact into its version directory and repoint the links.

Layout under ``install_prefix``::

    <tool>-<version>/        one directory per installed version
    .<tool>-<version>.staging  extraction in progress (removed on exit)
    .<tool>-<version>.old    copy being replaced by a reinstall
    tmp/                     downloaded artifacts

and ``bin_dir/<binary>`` symlinks into the active version directory.
"""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import ActivationFailed
from .extract import ExtractionError, extract_archive, find_entry_point
from .utils import log
from .versions import is_well_formed, version_key

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .config import ToolseedConfig
    from .recipe import Recipe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivationRecord:
    """A fully extracted version directory and the links pointing into it."""

    tool: str
    version: str
    version_dir: Path
    canonical_links: tuple[Path, ...]

    @property
    def canonical_link(self) -> Path:
        """The link of the tool's primary entry point."""
        return self.canonical_links[0]


def version_dir(recipe: Recipe, version: str, config: ToolseedConfig) -> Path:
    """Directory holding ``version`` of ``recipe``."""
    return config.install_prefix / f"{recipe.name}-{version}"


def _remove(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def _binaries(recipe: Recipe, extra_binaries: Iterable[str]) -> list[str]:
    names = list(recipe.binaries)
    names.extend(name for name in extra_binaries if name not in names)
    return names


def _entry_points(recipe: Recipe, root: Path, names: list[str], version: str) -> dict[str, Path]:
    """Map each binary name to its path relative to ``root``."""
    found: dict[str, Path] = {}
    for name in names:
        path = find_entry_point(root, name)
        if path is None:
            msg = f"Entry point '{name}' not found in the extracted artifact"
            raise ActivationFailed(msg, tool=recipe.name, version=version)
        found[name] = path.relative_to(root)
    return found


def _replace_link(link: Path, target: Path) -> None:
    """Point ``link`` at ``target`` with a single atomic rename."""
    tmp_link = link.with_name(f".{link.name}.{os.getpid()}.tmp")
    tmp_link.unlink(missing_ok=True)
    tmp_link.symlink_to(target)
    try:
        os.replace(tmp_link, link)
    except OSError:
        tmp_link.unlink(missing_ok=True)
        raise


def _restore_links(replaced: list[tuple[Path, str | None]]) -> None:
    """Put links back the way they were before a failed relink."""
    for link, previous in reversed(replaced):
        try:
            if previous is None:
                link.unlink(missing_ok=True)
            else:
                _replace_link(link, Path(previous))
        except OSError as e:
            log(f"Could not restore {link}: {e}", "warning")


def _link_all(
    recipe: Recipe,
    version: str,
    target_dir: Path,
    entry_points: dict[str, Path],
    config: ToolseedConfig,
) -> ActivationRecord:
    """Repoint every entry point link; all of them move, or none does."""
    config.bin_dir.mkdir(parents=True, exist_ok=True)
    replaced: list[tuple[Path, str | None]] = []
    for name, rel in entry_points.items():
        link = config.bin_dir / name
        previous = os.readlink(link) if link.is_symlink() else None
        try:
            _replace_link(link, target_dir / rel)
        except OSError as e:
            _restore_links(replaced)
            msg = f"Could not link {link}: {e}"
            raise ActivationFailed(msg, tool=recipe.name, version=version) from e
        logger.debug("Linked %s -> %s", link, target_dir / rel)
        replaced.append((link, previous))
    return ActivationRecord(recipe.name, version, target_dir, tuple(link for link, _ in replaced))


def _recover(target: Path, retired: Path) -> None:
    """Undo a swap that was cut short between its two renames."""
    if not retired.exists():
        return
    if target.exists():
        _remove(retired)
    else:
        log(f"Restoring {target.name} from an interrupted install", "warning")
        os.replace(retired, target)


def _swap_in(staging: Path, target: Path, retired: Path) -> None:
    """Move the finished ``staging`` tree to ``target``.

    An existing ``target`` is renamed to ``retired`` first and renamed back
    if the swap fails, so its contents stay available until the new tree is
    in place.
    """
    if not target.exists():
        os.replace(staging, target)
        return
    os.replace(target, retired)
    try:
        os.replace(staging, target)
    except OSError:
        os.replace(retired, target)
        raise


def activate(
    recipe: Recipe,
    artifact_file: Path,
    version: str,
    config: ToolseedConfig,
    *,
    extra_binaries: Iterable[str] = (),
) -> ActivationRecord:
    """Install ``artifact_file`` as ``version`` and make it the active one.

    The links only move once the new version directory is complete; any
    failure before that leaves them untouched. A copy of the same version
    being replaced is only deleted after the links are updated.
    """
    target = version_dir(recipe, version, config)
    staging = config.install_prefix / f".{recipe.name}-{version}.staging"
    retired = config.install_prefix / f".{recipe.name}-{version}.old"
    names = _binaries(recipe, extra_binaries)

    log(f"Extracting {artifact_file.name} into {target}", "info", "📦")
    config.install_prefix.mkdir(parents=True, exist_ok=True)
    try:
        _recover(target, retired)
        _remove(staging)
        extract_archive(
            artifact_file,
            staging,
            recipe.strip_components,
            raw_name=recipe.primary_binary,
        )
        entry_points = _entry_points(recipe, staging, names, version)
        # A previous copy of this version is replaced, never merged.
        _swap_in(staging, target, retired)
    except (ExtractionError, OSError) as e:
        msg = f"Extraction failed: {e}"
        raise ActivationFailed(msg, tool=recipe.name, version=version) from e
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)

    try:
        record = _link_all(recipe, version, target, entry_points, config)
    finally:
        if retired.exists():
            shutil.rmtree(retired, ignore_errors=True)
    log(f"Activated {recipe.name} {version} ({', '.join(names)})", "success")
    return record


def switch_version(
    recipe: Recipe,
    version: str,
    config: ToolseedConfig,
    *,
    extra_binaries: Iterable[str] = (),
) -> ActivationRecord:
    """Relink to an already installed version, without downloading."""
    target = version_dir(recipe, version, config)
    if not target.is_dir():
        installed = ", ".join(installed_versions(recipe, config)) or "none"
        msg = f"Version {version} is not installed (installed: {installed})"
        raise ActivationFailed(msg, tool=recipe.name, version=version)

    entry_points = _entry_points(recipe, target, _binaries(recipe, extra_binaries), version)
    record = _link_all(recipe, version, target, entry_points, config)
    log(f"Switched {recipe.name} to {version}", "success")
    return record


def installed_versions(recipe: Recipe, config: ToolseedConfig) -> list[str]:
    """Versions with a directory under ``install_prefix``, oldest first."""
    prefix = f"{recipe.name}-"
    if not config.install_prefix.is_dir():
        return []
    versions = [
        entry.name[len(prefix) :]
        for entry in config.install_prefix.iterdir()
        if entry.is_dir() and entry.name.startswith(prefix) and is_well_formed(entry.name[len(prefix) :])
    ]
    return sorted(versions, key=version_key)


def active_version(recipe: Recipe, config: ToolseedConfig) -> str | None:
    """Version the primary link currently points into, if it is one of ours."""
    link = config.bin_dir / recipe.primary_binary
    if not link.is_symlink():
        return None
    resolved = link.resolve()
    for version in installed_versions(recipe, config):
        if version_dir(recipe, version, config).resolve() in resolved.parents:
            return version
    return None
