"""Command-line interface for toolseed."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import TYPE_CHECKING

from rich.table import Table

from . import __version__
from .activate import active_version, installed_versions, switch_version
from .config import ToolseedConfig, build_requests, parse_assignments
from .errors import ToolseedError
from .orchestrator import (
    Orchestrator,
    RecipeStore,
    RunReport,
    companions_of,
    default_tools,
    groups_of,
)
from .utils import bin_dir_on_path, console, log, print_path_setup, setup_logging

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

_STATUS_STYLES = {"installed": "green", "skipped": "yellow", "failed": "bold red"}


def _multi_assignments(values: list[str] | None) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for item in values or ():
        name, value = next(iter(parse_assignments([item]).items()))
        result.setdefault(name, []).append(value)
    return result


def print_report(report: RunReport) -> None:
    """Print one row per tool with its status."""
    table = Table(title="toolseed summary")
    table.add_column("Tool", style="cyan")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Details")
    for outcome in report.outcomes:
        style = _STATUS_STYLES[outcome.status]
        table.add_row(
            outcome.name,
            f"[{style}]{outcome.status}[/{style}]",
            outcome.version or "-",
            outcome.detail,
        )
    console.print(table)


def install_tools(args: argparse.Namespace, config: ToolseedConfig) -> int:
    """Install the requested tools (all by default)."""
    store = RecipeStore(config)
    catalog = store.catalog()
    try:
        requests = build_requests(
            args.tools or default_tools(catalog),
            groups=groups_of(catalog),
            companions=companions_of(catalog),
            only=args.only,
            skip=args.skip,
            pins=parse_assignments(args.pin),
            companion_specs=parse_assignments(args.companion),
            no_companion=args.no_companion,
            extra_binaries=_multi_assignments(args.link),
        )
    except ValueError as e:
        log(str(e), "error")
        return 2

    report = Orchestrator(config, store).run(requests)
    print_report(report)

    if report.installed and not bin_dir_on_path(config.bin_dir):
        log(f"{config.bin_dir} is not on your PATH", "warning")
        print_path_setup(config.bin_dir)

    if not report.ok:
        log(f"{len(report.failed)} tool(s) failed", "error")
        return 1
    return 0


def list_tools(_args: argparse.Namespace, config: ToolseedConfig) -> int:
    """List available tools with their installed and active versions."""
    store = RecipeStore(config)
    table = Table(title="Available tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Group")
    table.add_column("Installed")
    table.add_column("Description")
    for recipe in store.catalog():
        active = active_version(recipe, config)
        versions = [
            f"[green]{version}*[/green]" if version == active else version
            for version in installed_versions(recipe, config)
        ]
        table.add_row(recipe.name, recipe.group or "", ", ".join(versions) or "-", recipe.description)
    console.print(table)
    console.print("[dim]* active version[/dim]")
    return 0


def use_version(args: argparse.Namespace, config: ToolseedConfig) -> int:
    """Point a tool's links at an already installed version."""
    try:
        recipe = RecipeStore(config).get(args.tool)
        switch_version(recipe, args.version, config)
    except ToolseedError as e:
        log(str(e), "error")
        return 1
    return 0


def show_version(_args: argparse.Namespace, _config: ToolseedConfig) -> int:
    """Print version information."""
    console.print(f"[yellow]toolseed[/] [bold]v{__version__}[/]")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        description=(
            "toolseed - Install development toolchains into your home directory. "
            "Do not run two installs against the same prefix at the same time."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--config-file",
        type=str,
        help="Path to configuration file (default: ~/.config/toolseed/config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # install command
    install_parser = subparsers.add_parser("install", help="Install or update tools")
    install_parser.add_argument(
        "tools",
        nargs="*",
        help="Tools or groups to install (all if not specified)",
    )
    install_parser.add_argument("--only", action="append", metavar="TOOL", help="Only install these tools")
    install_parser.add_argument("--skip", action="append", metavar="TOOL", help="Do not install these tools")
    install_parser.add_argument(
        "--pin",
        action="append",
        metavar="TOOL=VERSION",
        help="Install a specific version instead of the latest",
    )
    install_parser.add_argument(
        "--companion",
        action="append",
        metavar="TOOL=SPEC",
        help="Version spec for a tool's companion (default: auto)",
    )
    install_parser.add_argument(
        "--no-companion",
        action="append",
        metavar="TOOL",
        help="Do not install the companion of TOOL",
    )
    install_parser.add_argument(
        "--link",
        action="append",
        metavar="TOOL=BINARY",
        help="Also link BINARY from the tool's release into the bin directory",
    )
    install_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Reinstall already installed versions without asking",
    )
    install_parser.add_argument("--prefix", help="Directory holding versioned installs")
    install_parser.add_argument("--bindir", help="Directory for the tool links")
    install_parser.add_argument("--mirror", help="Base URL to refresh recipes from")
    install_parser.set_defaults(func=install_tools)

    # list command
    list_parser = subparsers.add_parser("list", help="List available and installed tools")
    list_parser.add_argument("--prefix", help="Directory holding versioned installs")
    list_parser.add_argument("--bindir", help="Directory for the tool links")
    list_parser.set_defaults(func=list_tools)

    # use command
    use_parser = subparsers.add_parser("use", help="Switch a tool to an installed version")
    use_parser.add_argument("tool", help="Tool name")
    use_parser.add_argument("version", help="Installed version to activate")
    use_parser.add_argument("--prefix", help="Directory holding versioned installs")
    use_parser.add_argument("--bindir", help="Directory for the tool links")
    use_parser.set_defaults(func=use_version)

    # version command
    version_parser = subparsers.add_parser("version", help="Print version information")
    version_parser.set_defaults(func=show_version)

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Main function to parse arguments and execute commands."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.verbose)

    try:
        config = ToolseedConfig.load_from_file(args.config_file).with_overrides(
            install_prefix=getattr(args, "prefix", None),
            bin_dir=getattr(args, "bindir", None),
            assume_yes=getattr(args, "yes", False),
            recipe_mirror=getattr(args, "mirror", None),
        )

        # Execute command or show help
        if hasattr(args, "func"):
            exit_code = args.func(args, config)
        else:
            parser.print_help()
            exit_code = 0

    except Exception as e:
        console.print(f"❌ [bold red]Error: {e!s}[/bold red]")
        console.print_exception()
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
