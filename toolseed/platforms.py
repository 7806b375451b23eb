"""Map host OS/architecture names to each tool's artifact vocabulary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import UnsupportedPlatform
from .utils import host_strings

if TYPE_CHECKING:
    from .recipe import Recipe

SUPPORTED_OS = {"linux": "linux", "darwin": "darwin"}


@dataclass(frozen=True)
class PlatformKey:
    """An OS/architecture pair in some naming vocabulary."""

    os: str
    arch: str

    def __str__(self) -> str:
        """Return ``os/arch``."""
        return f"{self.os}/{self.arch}"


def normalize_host(os_name: str, arch_name: str) -> PlatformKey:
    """Turn raw ``uname`` strings into the host :class:`PlatformKey`."""
    os_key = SUPPORTED_OS.get(os_name.strip().lower())
    arch_key = arch_name.strip().lower()
    if os_key is None or not arch_key:
        msg = f"Unsupported host {os_name!r}/{arch_name!r} (supported OS: Linux, Darwin)"
        raise UnsupportedPlatform(msg, platform=f"{os_name}/{arch_name}")
    return PlatformKey(os=os_key, arch=arch_key)


def host_platform() -> PlatformKey:
    """Detect the current platform and architecture."""
    return normalize_host(*host_strings())


def map_platform(host: PlatformKey, recipe: Recipe) -> PlatformKey:
    """Translate ``host`` into the names ``recipe``'s artifacts use.

    An empty map means the tool uses the host names unchanged; a non-empty
    map is exhaustive, so a missing key means no artifact exists.
    """
    tool_os = _lookup(recipe.platform_map, host.os)
    tool_arch = _lookup(recipe.arch_map, host.arch)
    if tool_os is None or tool_arch is None:
        supported = ", ".join(sorted(recipe.arch_map)) or "any"
        msg = f"{recipe.name} has no build for {host} (architectures: {supported})"
        raise UnsupportedPlatform(msg, tool=recipe.name, platform=str(host))
    return PlatformKey(os=tool_os, arch=tool_arch)


def _lookup(mapping: dict[str, str], key: str) -> str | None:
    if not mapping:
        return key
    return mapping.get(key)
