"""Configuration management for toolseed."""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .utils import log

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/toolseed/config.yaml"
INTERACTION_MODES = ("auto", "interactive")


def _expand(path: str | os.PathLike[str]) -> Path:
    return Path(os.path.expanduser(os.fspath(path)))


@dataclass
class ToolseedConfig:
    """Configuration for toolseed."""

    install_prefix: Path = field(default_factory=lambda: _expand("~/.local"))
    bin_dir: Path = field(default_factory=lambda: _expand("~/.local/bin"))
    cache_dir: Path = field(default_factory=lambda: _expand("~/.toolseed"))
    auth_token: str | None = field(default_factory=lambda: os.environ.get("GITHUB_TOKEN") or None)
    interaction_mode: str = "interactive"
    recipe_mirror: str | None = None
    timeout: float = 30

    @property
    def tmp_dir(self) -> Path:
        """Where artifacts are downloaded before activation."""
        return self.install_prefix / "tmp"

    @property
    def recipe_cache_dir(self) -> Path:
        """Where recipes refreshed from the mirror are stored."""
        return self.cache_dir / "recipes"

    def validate(self) -> None:
        """Validate the configuration."""
        if self.interaction_mode not in INTERACTION_MODES:
            log(
                f"Unknown interaction_mode '{self.interaction_mode}', using 'interactive'",
                "warning",
            )
            self.interaction_mode = "interactive"
        if self.timeout <= 0:
            log(f"timeout must be positive, got {self.timeout}; using 30", "warning")
            self.timeout = 30

    def with_overrides(
        self,
        *,
        install_prefix: str | None = None,
        bin_dir: str | None = None,
        assume_yes: bool = False,
        recipe_mirror: str | None = None,
    ) -> ToolseedConfig:
        """Return a copy with command-line values applied on top."""
        changes: dict[str, Any] = {}
        if install_prefix:
            changes["install_prefix"] = _expand(install_prefix)
        if bin_dir:
            changes["bin_dir"] = _expand(bin_dir)
        if assume_yes:
            changes["interaction_mode"] = "auto"
        if recipe_mirror:
            changes["recipe_mirror"] = recipe_mirror
        return dataclasses.replace(self, **changes)

    @classmethod
    def load_from_file(cls, config_path: str | os.PathLike[str] | None = None) -> ToolseedConfig:
        """Load configuration from YAML file."""
        explicit = config_path is not None
        path = _expand(config_path if explicit else DEFAULT_CONFIG_PATH)

        try:
            with path.open() as file:
                config_data = yaml.safe_load(file) or {}
        except FileNotFoundError:
            if explicit:
                log(f"Configuration file not found: {path}", "warning")
            else:
                logger.debug("No configuration file at %s, using defaults", path)
            return cls()
        except yaml.YAMLError:
            log(f"Invalid YAML in configuration file: {path}", "error", print_exception=True)
            return cls()

        if not isinstance(config_data, dict):
            log(f"Configuration file {path} must contain a mapping", "error")
            return cls()

        known = {f.name for f in dataclasses.fields(cls)}
        for key in sorted(set(config_data) - known):
            log(f"Ignoring unknown configuration key '{key}'", "warning")
        config_data = {k: v for k, v in config_data.items() if k in known}

        # Expand paths
        for key in ("install_prefix", "bin_dir", "cache_dir"):
            if isinstance(config_data.get(key), str):
                config_data[key] = _expand(config_data[key])
        if config_data.get("auth_token") is None:
            config_data.pop("auth_token", None)

        config = cls(**config_data)
        config.validate()
        return config


@dataclass(frozen=True)
class ToolRequest:
    """One tool to process in a run, fixed before any pipeline starts."""

    name: str
    version_spec: str = "latest"
    companion_spec: str | None = None
    install_enabled: bool = True
    # Additional entry points to link from the extracted tree.
    extra_args: tuple[str, ...] = ()


def parse_assignments(values: Iterable[str] | None) -> dict[str, str]:
    """Parse ``TOOL=VALUE`` command-line pairs."""
    result: dict[str, str] = {}
    for item in values or ():
        name, sep, value = item.partition("=")
        if not sep or not name.strip() or not value.strip():
            msg = f"Expected TOOL=VALUE, got '{item}'"
            raise ValueError(msg)
        result[name.strip()] = value.strip()
    return result


def expand_groups(names: Iterable[str], groups: Mapping[str, Sequence[str]]) -> list[str]:
    """Replace group names (e.g. ``gadgets``) by their members, keeping order."""
    expanded: list[str] = []
    for name in names:
        for member in groups.get(name, [name]):
            if member not in expanded:
                expanded.append(member)
    return expanded


def build_requests(
    tools: Sequence[str],
    *,
    groups: Mapping[str, Sequence[str]] | None = None,
    companions: Mapping[str, str] | None = None,
    only: Iterable[str] | None = None,
    skip: Iterable[str] | None = None,
    pins: Mapping[str, str] | None = None,
    companion_specs: Mapping[str, str] | None = None,
    no_companion: Iterable[str] | None = None,
    extra_binaries: Mapping[str, Sequence[str]] | None = None,
) -> tuple[ToolRequest, ...]:
    """Build the immutable, ordered list of requests for one run.

    ``tools`` is the full set to consider (group names allowed). Tools
    excluded by ``only``/``skip`` stay in the list, disabled, so that they
    are reported as skipped. ``companions`` maps a tool to the companion its
    recipe declares; that companion follows the primary with spec ``auto``
    unless overridden or switched off.
    """
    groups = groups or {}
    companions = companions or {}
    pins = pins or {}
    companion_specs = companion_specs or {}
    extra_binaries = extra_binaries or {}

    names = expand_groups(tools, groups)
    only_set = set(expand_groups(only, groups)) if only else None
    skip_set = set(expand_groups(skip or (), groups))
    no_companion_set = set(no_companion or ())

    def wants_companion(name: str) -> bool:
        return name in companions and name not in no_companion_set and companions[name] not in skip_set

    # A companion listed next to its primary runs with the primary.
    folded = {companions[name] for name in names if wants_companion(name)}
    names = [name for name in names if name not in folded]

    requests = []
    for name in names:
        enabled = (only_set is None or name in only_set) and name not in skip_set
        companion_spec = None
        if wants_companion(name):
            companion_name = companions[name]
            companion_spec = (
                companion_specs.get(name)
                or companion_specs.get(companion_name)
                or pins.get(companion_name)
                or "auto"
            )
        requests.append(
            ToolRequest(
                name=name,
                version_spec=pins.get(name, "latest"),
                companion_spec=companion_spec,
                install_enabled=enabled,
                extra_args=tuple(extra_binaries.get(name, ())),
            ),
        )
    return tuple(requests)
