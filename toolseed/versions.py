"""Resolve version specs ("latest", "auto", literal) into concrete versions."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

import requests
from packaging.version import InvalidVersion, Version

from .errors import ResolutionFailed
from .utils import fetch_json, log

if TYPE_CHECKING:
    from .recipe import Recipe

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
_WELL_FORMED = re.compile(r"^\d[0-9A-Za-z.+_-]*$")
_STRICT_RELEASE = re.compile(r"^\d+\.\d+\.\d+$")


@dataclass(frozen=True)
class ResolvedVersion:
    """A version spec together with the concrete version it resolved to."""

    requested_spec: str
    concrete_version: str
    resolution_source: Literal["index", "api", "literal"]
    # Payload already fetched while resolving, reused by manifest lookup.
    index: Any = field(default=None, compare=False, repr=False)


def version_key(version: str) -> tuple:
    """Sort key ordering versions semantically, never alphabetically.

    Strings ``packaging`` cannot parse sort below every parseable version,
    by their numeric components.
    """
    try:
        return (1, Version(version), ())
    except InvalidVersion:
        numbers = tuple(int(part) for part in re.findall(r"\d+", version))
        return (0, Version("0"), numbers)


def highest(versions: list[str]) -> str | None:
    """Return the highest version in ``versions``, or None if empty."""
    if not versions:
        return None
    return max(versions, key=version_key)


def strip_prefix(version: str, prefix: str = "") -> str:
    """Remove a recipe ``prefix`` (e.g. ``go``) and a leading ``v``."""
    version = version.strip()
    if prefix and version.startswith(prefix):
        version = version[len(prefix) :]
    if version[:1] in ("v", "V") and version[1:2].isdigit():
        version = version[1:]
    return version


def is_well_formed(version: str) -> bool:
    """Check that ``version`` is safe to use in paths and URLs."""
    return bool(_WELL_FORMED.match(version))


def resolve(
    recipe: Recipe,
    spec: str,
    *,
    companion_version: str | None = None,
    token: str | None = None,
    timeout: float = 30,
) -> ResolvedVersion:
    """Resolve ``spec`` for ``recipe``.

    ``companion_version`` is the already-resolved version of the primary
    tool when ``recipe`` is a companion (e.g. Zig's version for ZLS).
    """
    spec = (spec or "latest").strip()
    if recipe.version_source == "companion-select" and spec in ("auto", "latest"):
        resolved = _resolve_companion(recipe, spec, companion_version, token, timeout)
    elif spec in ("latest", "auto"):
        resolved = _resolve_latest(recipe, spec, token, timeout)
    else:
        resolved = ResolvedVersion(
            requested_spec=spec,
            concrete_version=strip_prefix(spec, recipe.version_prefix),
            resolution_source="literal",
        )

    if not is_well_formed(resolved.concrete_version):
        msg = f"Resolved version {resolved.concrete_version!r} is not a well-formed version"
        raise ResolutionFailed(msg, tool=recipe.name, version=resolved.concrete_version)

    logger.debug("%s: %s -> %s (%s)", recipe.name, spec, resolved.concrete_version, resolved.resolution_source)
    return resolved


def fetch_index(recipe: Recipe, token: str | None = None, timeout: float = 30) -> Any:
    """Download the version index a recipe's ``version_source`` points at."""
    url = recipe.version_url
    if recipe.version_source == "github-releases":
        url = f"{GITHUB_API}/repos/{recipe.repo}/releases"
    if url is None:
        msg = "Recipe has no version index URL"
        raise ResolutionFailed(msg, tool=recipe.name)
    try:
        params = {"per_page": "100"} if recipe.version_source == "github-releases" else None
        return fetch_json(url, params=params, token=token, timeout=timeout)
    except (requests.RequestException, ValueError) as e:
        msg = f"Could not fetch version index: {e}"
        raise ResolutionFailed(msg, tool=recipe.name, url=url) from e


def stable_versions(recipe: Recipe, index: Any) -> list[str]:
    """List the versions in ``index`` that satisfy the tool's stable predicate."""
    source = recipe.version_source
    if source == "keyed-index":
        if not isinstance(index, dict):
            return []
        return [key for key in index if _STRICT_RELEASE.match(key)]
    if source == "release-list":
        if not isinstance(index, list):
            return []
        return [
            strip_prefix(str(entry["version"]), recipe.version_prefix)
            for entry in index
            if isinstance(entry, dict) and entry.get("stable") is True and entry.get("version")
        ]
    if source == "github-releases":
        if not isinstance(index, list):
            return []
        return [
            strip_prefix(entry["tag_name"][len(recipe.tag_prefix) :])
            for entry in index
            if isinstance(entry, dict)
            and not entry.get("draft")
            and not entry.get("prerelease")
            and str(entry.get("tag_name", "")).startswith(recipe.tag_prefix)
            and len(entry.get("tag_name", "")) > len(recipe.tag_prefix)
        ]
    return []


def _resolve_latest(
    recipe: Recipe,
    spec: str,
    token: str | None,
    timeout: float,
) -> ResolvedVersion:
    log(f"Fetching latest {recipe.name} version...", "info")
    index = fetch_index(recipe, token, timeout)
    candidates = stable_versions(recipe, index)
    latest = highest(candidates)
    if latest is None:
        msg = "Version index lists no stable releases"
        raise ResolutionFailed(msg, tool=recipe.name, url=_index_url(recipe))
    source: Literal["index", "api"] = "api" if recipe.version_source == "github-releases" else "index"
    return ResolvedVersion(spec, latest, source, index=index)


def _resolve_companion(
    recipe: Recipe,
    spec: str,
    companion_version: str | None,
    token: str | None,
    timeout: float,
) -> ResolvedVersion:
    primary = recipe.companion_of or "primary tool"
    if not companion_version:
        msg = f"'{spec}' needs the resolved {primary} version"
        raise ResolutionFailed(msg, tool=recipe.name)

    log(f"Fetching {recipe.name} version compatible with {primary} {companion_version}...", "info")
    response = fetch_compatibility(recipe, companion_version, token, timeout)
    version = response.get("version") if isinstance(response, dict) else None
    if not version:
        detail = response.get("message", "") if isinstance(response, dict) else ""
        msg = f"No {recipe.name} version compatible with {primary} {companion_version}"
        if detail:
            msg += f": {detail}"
        raise ResolutionFailed(msg, tool=recipe.name, url=recipe.version_url)
    return ResolvedVersion(spec, strip_prefix(str(version)), "api", index=response)


def fetch_compatibility(
    recipe: Recipe,
    primary_version: str,
    token: str | None = None,
    timeout: float = 30,
) -> Any:
    """Query the companion-compatibility endpoint for ``primary_version``."""
    if recipe.version_url is None:
        msg = "Recipe has no compatibility endpoint URL"
        raise ResolutionFailed(msg, tool=recipe.name, version=primary_version)
    params = {
        key: value.replace("{version}", primary_version)
        for key, value in recipe.query_params.items()
    }
    try:
        return fetch_json(recipe.version_url, params=params, token=token, timeout=timeout)
    except (requests.RequestException, ValueError) as e:
        msg = f"Compatibility endpoint failed: {e}"
        raise ResolutionFailed(msg, tool=recipe.name, version=primary_version, url=recipe.version_url) from e


def _index_url(recipe: Recipe) -> str | None:
    if recipe.version_source == "github-releases":
        return f"{GITHUB_API}/repos/{recipe.repo}/releases"
    return recipe.version_url
