"""Decide whether a tool needs installing, from what is actually on disk."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Literal

from rich.prompt import Confirm

from .utils import console, log
from .versions import strip_prefix

if TYPE_CHECKING:
    from .recipe import Recipe
    from .versions import ResolvedVersion

logger = logging.getLogger(__name__)

InteractionMode = Literal["auto", "interactive"]
PROBE_TIMEOUT = 15


@dataclass(frozen=True)
class InstalledState:
    """What the probe found for a tool's primary entry point."""

    present: bool
    version: str | None = None
    path: Path | None = None


class InstallDecision(Enum):
    """Outcome of comparing the wanted version with the installed one."""

    SKIP = "skip"
    INSTALL = "install"
    REINSTALL = "reinstall"


def decide(
    resolved: ResolvedVersion,
    installed: InstalledState,
    mode: InteractionMode,
    confirm: Callable[[], bool] | None = None,
) -> InstallDecision:
    """Pick SKIP, INSTALL or REINSTALL.

    Reinstalling the same version happens unconditionally in ``auto`` mode
    and only on an affirmative ``confirm()`` in ``interactive`` mode.
    """
    if not installed.present or installed.version is None:
        return InstallDecision.INSTALL
    if strip_prefix(installed.version) != resolved.concrete_version:
        return InstallDecision.INSTALL
    if mode == "auto":
        return InstallDecision.REINSTALL
    if confirm is not None and confirm():
        return InstallDecision.REINSTALL
    return InstallDecision.SKIP


def _find_binary(name: str, bin_dir: Path) -> Path | None:
    candidate = bin_dir / name
    if candidate.is_file() and os.access(candidate, os.X_OK):
        return candidate
    found = shutil.which(name)
    return Path(found) if found else None


def probe_installed(recipe: Recipe, bin_dir: Path) -> InstalledState:
    """Ask the installed entry point which version it is."""
    path = _find_binary(recipe.primary_binary, bin_dir)
    if path is None:
        return InstalledState(present=False)

    try:
        result = subprocess.run(  # noqa: S603
            [str(path), *recipe.probe_args],
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("Probing %s failed: %s", path, e)
        return InstalledState(present=True, path=path)

    match = re.search(recipe.probe_regex, f"{result.stdout}\n{result.stderr}")
    if match is None:
        logger.debug("No version in output of %s %s", path, " ".join(recipe.probe_args))
        return InstalledState(present=True, path=path)

    version = match.group(1) if match.groups() else match.group(0)
    return InstalledState(present=True, version=version, path=path)


def prompt_reinstall(tool: str, version: str) -> bool:
    """Ask whether to reinstall ``version`` of ``tool``; defaults to no."""
    log(f"{tool} {version} is already installed", "info")
    try:
        return Confirm.ask(f"Reinstall {tool} {version}?", default=False, console=console)
    except EOFError:
        log(f"No answer on standard input, keeping {tool} {version}", "info")
        return False
