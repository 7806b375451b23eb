"""Tool recipes: the declarative, per-tool part of the installer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any

import yaml

from .errors import RecipeError

logger = logging.getLogger(__name__)

VERSION_SOURCES = ("keyed-index", "release-list", "github-releases", "companion-select")
ARTIFACT_STRATEGIES = ("manifest", "pattern")
DEFAULT_PROBE_REGEX = r"\d+\.\d+(?:\.\d+)?(?:-[0-9A-Za-z.]+)?(?:\+[0-9A-Za-z.]+)?"

BUNDLED_PACKAGE = "toolseed.recipes"


@dataclass
class Recipe:
    """How to resolve, locate and activate one tool."""

    name: str
    binaries: list[str]
    version_source: str
    version_url: str | None = None
    repo: str | None = None
    tag_prefix: str = "v"
    version_prefix: str = ""
    companion_of: str | None = None
    query_params: dict[str, str] = field(default_factory=dict)
    artifact_strategy: str = "pattern"
    manifest: str | None = None
    asset_patterns: str | dict[str, Any] | None = None
    download_base: str | None = None
    fallback_url: str | None = None
    platform_map: dict[str, str] = field(default_factory=dict)
    arch_map: dict[str, str] = field(default_factory=dict)
    strip_components: int = 0
    probe_args: list[str] = field(default_factory=lambda: ["--version"])
    probe_regex: str = DEFAULT_PROBE_REGEX
    companion: str | None = None
    group: str | None = None
    description: str = ""

    @property
    def primary_binary(self) -> str:
        """Name of the entry point whose version identifies the install."""
        return self.binaries[0]

    @property
    def manifest_kind(self) -> str:
        """Shape of the manifest consulted by manifest lookup."""
        return self.manifest or self.version_source


def recipe_from_dict(data: dict[str, Any], name: str | None = None) -> Recipe:
    """Build a :class:`Recipe` from parsed YAML, validating required keys."""
    if not isinstance(data, dict):
        msg = "Recipe must be a mapping"
        raise RecipeError(msg, tool=name or "")

    name = data.get("name") or name
    if not name:
        msg = "Recipe is missing 'name'"
        raise RecipeError(msg)

    binaries = data.get("binaries", [name])
    if isinstance(binaries, str):
        binaries = [binaries]
    if not binaries:
        msg = "Recipe must declare at least one binary"
        raise RecipeError(msg, tool=name)

    version = data.get("version") or {}
    source = version.get("source")
    if source not in VERSION_SOURCES:
        msg = f"Unknown version source {source!r} (expected one of {', '.join(VERSION_SOURCES)})"
        raise RecipeError(msg, tool=name)
    if source == "github-releases" and not version.get("repo"):
        msg = "github-releases recipes need 'version.repo'"
        raise RecipeError(msg, tool=name)
    if source != "github-releases" and not version.get("url"):
        msg = f"{source} recipes need 'version.url'"
        raise RecipeError(msg, tool=name)

    artifact = data.get("artifact") or {}
    strategy = artifact.get("strategy", "pattern")
    if strategy not in ARTIFACT_STRATEGIES:
        msg = f"Unknown artifact strategy {strategy!r}"
        raise RecipeError(msg, tool=name)
    if strategy == "pattern" and not artifact.get("asset_patterns"):
        msg = "pattern recipes need 'artifact.asset_patterns'"
        raise RecipeError(msg, tool=name)
    if strategy == "pattern" and not version.get("repo"):
        msg = "pattern recipes need 'version.repo' to list release assets"
        raise RecipeError(msg, tool=name)

    probe = data.get("probe") or {}
    probe_args = probe.get("args", ["--version"])
    if isinstance(probe_args, str):
        probe_args = probe_args.split()

    return Recipe(
        name=name,
        binaries=list(binaries),
        version_source=source,
        version_url=version.get("url"),
        repo=version.get("repo"),
        tag_prefix=str(version.get("tag_prefix", "v")),
        version_prefix=str(version.get("version_prefix", "")),
        companion_of=version.get("companion_of"),
        query_params={str(k): str(v) for k, v in (version.get("params") or {}).items()},
        artifact_strategy=strategy,
        manifest=artifact.get("manifest"),
        asset_patterns=artifact.get("asset_patterns"),
        download_base=artifact.get("download_base"),
        fallback_url=artifact.get("fallback_url"),
        platform_map={str(k): str(v) for k, v in (data.get("platform_map") or {}).items()},
        arch_map={str(k): str(v) for k, v in (data.get("arch_map") or {}).items()},
        strip_components=int(data.get("strip_components", 0)),
        probe_args=[str(arg) for arg in probe_args],
        probe_regex=probe.get("regex", DEFAULT_PROBE_REGEX),
        companion=data.get("companion"),
        group=data.get("group"),
        description=data.get("description", ""),
    )


def parse_recipe(text: str, name: str | None = None) -> Recipe:
    """Parse recipe YAML text."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in recipe: {e}"
        raise RecipeError(msg, tool=name or "") from e
    return recipe_from_dict(data, name)


def load_recipe_file(path: Path) -> Recipe:
    """Load a recipe from a YAML file on disk."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read recipe {path}: {e}"
        raise RecipeError(msg, tool=path.stem) from e
    return parse_recipe(text, path.stem)


def bundled_recipe_names() -> list[str]:
    """Names of the recipes shipped with the package, sorted."""
    root = resources.files(BUNDLED_PACKAGE)
    return sorted(
        entry.name.removesuffix(".yaml")
        for entry in root.iterdir()
        if entry.name.endswith(".yaml")
    )


def bundled_recipe_text(name: str) -> str:
    """Raw YAML of a bundled recipe."""
    resource = resources.files(BUNDLED_PACKAGE) / f"{name}.yaml"
    if not resource.is_file():
        msg = f"No bundled recipe named '{name}'"
        raise RecipeError(msg, tool=name)
    return resource.read_text(encoding="utf-8")


def load_bundled_recipe(name: str) -> Recipe:
    """Load one of the recipes shipped with the package."""
    return parse_recipe(bundled_recipe_text(name), name)
