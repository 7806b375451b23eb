"""toolseed - Workstation toolchain installer.

Installs development toolchains (Zig and ZLS, Go, Bun) and a set of small
command-line gadgets into the user's home directory, without elevated
privileges. Each tool is resolved to a concrete version, downloaded,
checked against its published SHA-256, extracted into its own version
directory and activated by atomically repointing a symlink.

Running it again is safe: a tool whose wanted version is already installed
is left alone (or reinstalled on request).
"""

from __future__ import annotations

__version__ = "0.1.0"

from . import cli, config, orchestrator, pipeline, utils
from .cli import main
from .config import ToolRequest, ToolseedConfig, build_requests
from .orchestrator import Orchestrator, RecipeStore, RunReport, ToolOutcome
from .pipeline import install
from .utils import setup_logging

__all__ = [
    "Orchestrator",
    "RecipeStore",
    "RunReport",
    "ToolOutcome",
    "ToolRequest",
    "ToolseedConfig",
    "build_requests",
    "cli",
    "config",
    "install",
    "main",
    "orchestrator",
    "pipeline",
    "setup_logging",
    "utils",
]
