"""Utility functions for toolseed."""

from __future__ import annotations

import logging
import os
from typing import Any, Literal
from urllib.parse import urlparse

import requests
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

# Initialize rich console
console = Console()
logger = logging.getLogger(__name__)

_GITHUB_HOSTS = ("api.github.com", "github.com")

_LEVEL_STYLES = {
    "info": ("🔍", "blue"),
    "success": ("✅", "green"),
    "warning": ("⚠️", "yellow"),
    "error": ("❌", "bold red"),
    "default": ("", ""),
}


def setup_logging(verbose: bool = False) -> None:  # noqa: FBT001, FBT002
    """Configure logging level based on verbosity."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def log(
    msg: str,
    level: Literal["info", "success", "warning", "error", "default"] = "default",
    emoji: str = "",
    *,
    print_exception: bool = False,
) -> None:
    """Print a message to the console with an emoji and colour for its level."""
    default_emoji, style = _LEVEL_STYLES[level]
    prefix = emoji or default_emoji
    text = f"{prefix} {escape(msg)}" if prefix else escape(msg)
    if style:
        text = f"[{style}]{text}[/{style}]"
    console.print(text)
    if print_exception:
        console.print_exception()


def github_auth_header(url: str, token: str | None) -> dict[str, str]:
    """Return an Authorization header when ``url`` points at GitHub."""
    if not token:
        return {}
    host = urlparse(url).hostname or ""
    if host not in _GITHUB_HOSTS:
        return {}
    return {"Authorization": f"Bearer {token}"}


def fetch_json(
    url: str,
    *,
    params: dict[str, str] | None = None,
    token: str | None = None,
    timeout: float = 30,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Raises ``requests.RequestException`` on transport or HTTP errors and
    ``ValueError`` when the body is not JSON.
    """
    headers = {"Accept": "application/json"}
    headers.update(github_auth_header(url, token))
    logger.debug("GET %s params=%s", url, params)
    response = requests.get(url, params=params, headers=headers, timeout=timeout)
    response.raise_for_status()
    return response.json()


def fetch_text(url: str, *, timeout: float = 30) -> str:
    """GET ``url`` and return the body as text."""
    logger.debug("GET %s", url)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.text


def fetch_bytes(url: str, *, timeout: float = 30) -> bytes:
    """GET ``url`` and return the raw body."""
    logger.debug("GET %s", url)
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def host_strings() -> tuple[str, str]:
    """Return the raw ``(os_name, arch_name)`` the host reports."""
    uname = os.uname()
    return uname.sysname, uname.machine


def bin_dir_on_path(bin_dir: os.PathLike[str] | str) -> bool:
    """Check whether ``bin_dir`` is listed in ``PATH``."""
    wanted = os.path.realpath(os.fspath(bin_dir))
    return any(
        os.path.realpath(entry) == wanted
        for entry in os.environ.get("PATH", "").split(os.pathsep)
        if entry
    )


def print_path_setup(bin_dir: os.PathLike[str] | str) -> None:
    """Print shell setup instructions."""
    print("\n# Add this to your shell configuration file (e.g., .bashrc, .zshrc):")
    print(f'export PATH="{os.fspath(bin_dir)}:$PATH"')
