"""Find the download URL (and checksum, when published) of an artifact."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import requests

from .errors import ArtifactNotFound, ResolutionFailed
from .utils import fetch_json, log
from .versions import GITHUB_API, fetch_compatibility, fetch_index

if TYPE_CHECKING:
    from .platforms import PlatformKey
    from .recipe import Recipe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    """A downloadable release file for one tool, version and platform."""

    url: str
    filename: str
    expected_checksum: str | None = None

    @property
    def has_checksum(self) -> bool:
        """Whether upstream published a digest for this file."""
        return bool(self.expected_checksum)


def normalize_checksum(value: Any) -> str | None:
    """Lower-case a hex digest and drop an ``algo:`` prefix."""
    if not value or not isinstance(value, str):
        return None
    value = value.strip().lower()
    if value.startswith("sha256:"):
        value = value[len("sha256:") :]
    return value or None


def filename_from_url(url: str) -> str:
    """Return the last path segment of ``url``."""
    return url.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]


def locate(
    recipe: Recipe,
    version: str,
    platform: PlatformKey,
    *,
    index: Any = None,
    primary_version: str | None = None,
    token: str | None = None,
    timeout: float = 30,
) -> Artifact:
    """Locate the artifact of ``recipe`` at ``version`` for ``platform``.

    ``platform`` is already in the tool's vocabulary. ``index`` is a manifest
    fetched while resolving, if any; it is fetched here otherwise.
    """
    if recipe.artifact_strategy == "pattern":
        artifact = _from_release_assets(recipe, version, platform, token, timeout)
    else:
        kind = recipe.manifest_kind
        if kind == "keyed-index":
            artifact = _from_keyed_index(recipe, version, platform, index, token, timeout)
        elif kind == "release-list":
            artifact = _from_release_list(recipe, version, platform, index, token, timeout)
        elif kind == "companion-select":
            artifact = _from_companion_select(recipe, version, platform, index, primary_version, token, timeout)
        else:
            msg = f"Unsupported manifest kind {kind!r}"
            raise ArtifactNotFound(msg, tool=recipe.name, version=version, platform=str(platform))

    log(f"Found {artifact.filename} for {recipe.name} {version} ({platform})", "success")
    return artifact


def _not_found(recipe: Recipe, version: str, platform: PlatformKey, detail: str, url: str | None = None) -> ArtifactNotFound:
    return ArtifactNotFound(detail, tool=recipe.name, version=version, platform=str(platform), url=url)


def _manifest(recipe: Recipe, index: Any, token: str | None, timeout: float, version: str, platform: PlatformKey) -> Any:
    if index is not None:
        return index
    try:
        return fetch_index(recipe, token, timeout)
    except ResolutionFailed as e:
        raise _not_found(recipe, version, platform, f"Manifest unavailable: {e}", recipe.version_url) from e


def _from_keyed_index(
    recipe: Recipe,
    version: str,
    platform: PlatformKey,
    index: Any,
    token: str | None,
    timeout: float,
) -> Artifact:
    manifest = _manifest(recipe, index, token, timeout, version, platform)
    entry = manifest.get(version, {}) if isinstance(manifest, dict) else {}
    target = entry.get(f"{platform.arch}-{platform.os}") if isinstance(entry, dict) else None
    if isinstance(target, dict) and target.get("tarball"):
        url = str(target["tarball"])
        return Artifact(url, filename_from_url(url), normalize_checksum(target.get("shasum")))

    if recipe.fallback_url:
        url = _fill(recipe.fallback_url, version, platform)
        log(f"{recipe.name} {version} not in index for {platform}, trying {url}", "warning")
        return Artifact(url, filename_from_url(url), None)

    raise _not_found(recipe, version, platform, "No index entry for this version and platform", recipe.version_url)


def _from_release_list(
    recipe: Recipe,
    version: str,
    platform: PlatformKey,
    index: Any,
    token: str | None,
    timeout: float,
) -> Artifact:
    manifest = _manifest(recipe, index, token, timeout, version, platform)
    wanted = f"{recipe.version_prefix}{version}"
    release = next(
        (entry for entry in manifest or [] if isinstance(entry, dict) and entry.get("version") == wanted),
        None,
    )
    if release is None:
        raise _not_found(recipe, version, platform, f"Release {wanted} is not listed", recipe.version_url)

    for file_info in release.get("files", []):
        if (
            file_info.get("os") == platform.os
            and file_info.get("arch") == platform.arch
            and file_info.get("kind") == "archive"
        ):
            filename = str(file_info["filename"])
            base = recipe.download_base or ""
            return Artifact(base + filename, filename, normalize_checksum(file_info.get("sha256")))

    raise _not_found(recipe, version, platform, f"Release {wanted} has no archive for this platform", recipe.version_url)


def _from_companion_select(
    recipe: Recipe,
    version: str,
    platform: PlatformKey,
    index: Any,
    primary_version: str | None,
    token: str | None,
    timeout: float,
) -> Artifact:
    response = index
    if response is None:
        # Without a primary version the endpoint is asked about the
        # companion's own version, which shares the primary's numbering.
        try:
            response = fetch_compatibility(recipe, primary_version or version, token, timeout)
        except ResolutionFailed as e:
            raise _not_found(recipe, version, platform, f"Manifest unavailable: {e}", recipe.version_url) from e

    target = response.get(f"{platform.arch}-{platform.os}") if isinstance(response, dict) else None
    if not isinstance(target, dict) or not target.get("tarball"):
        raise _not_found(recipe, version, platform, "No tarball for this platform", recipe.version_url)
    url = str(target["tarball"])
    return Artifact(url, filename_from_url(url), normalize_checksum(target.get("shasum")))


def get_asset_pattern(recipe: Recipe, platform: PlatformKey) -> str | None:
    """Get the asset pattern for a tool, platform, and architecture."""
    patterns = recipe.asset_patterns

    # Case 1: String pattern (global pattern for all platforms/architectures)
    if isinstance(patterns, str):
        return patterns

    if not isinstance(patterns, dict):
        return None

    # Case 2: Dict of patterns by platform
    platform_patterns = patterns.get(platform.os)
    if isinstance(platform_patterns, str):
        return platform_patterns

    # Case 3: Dict of patterns by platform and architecture
    if isinstance(platform_patterns, dict):
        arch_pattern = platform_patterns.get(platform.arch)
        if isinstance(arch_pattern, str):
            return arch_pattern

    return None


def asset_regex(recipe: Recipe, platform: PlatformKey, version: str) -> str | None:
    """Expand the recipe's naming template into a regular expression."""
    pattern = get_asset_pattern(recipe, platform)
    if pattern is None:
        return None
    return (
        pattern.replace("{version}", re.escape(version))
        .replace("{os}", re.escape(platform.os))
        .replace("{arch}", re.escape(platform.arch))
    )


def find_asset(assets: list[dict], pattern: str) -> dict | None:
    """Find the first asset whose name matches ``pattern``.

    Listing order decides between several matches.
    """
    logger.debug("Looking for asset with pattern: %s", pattern)
    regex = re.compile(pattern)
    matches = [asset for asset in assets if regex.search(str(asset.get("name", "")))]
    if not matches:
        return None
    if len(matches) > 1:
        others = ", ".join(str(asset["name"]) for asset in matches[1:])
        log(f"Pattern {pattern} matches several assets, using {matches[0]['name']} (also: {others})", "warning")
    return matches[0]


def _from_release_assets(
    recipe: Recipe,
    version: str,
    platform: PlatformKey,
    token: str | None,
    timeout: float,
) -> Artifact:
    regex = asset_regex(recipe, platform, version)
    if regex is None:
        raise _not_found(recipe, version, platform, "No asset pattern defined for this platform")

    tag = f"{recipe.tag_prefix}{version}"
    url = f"{GITHUB_API}/repos/{recipe.repo}/releases/tags/{tag}"
    try:
        release = fetch_json(url, token=token, timeout=timeout)
    except (requests.RequestException, ValueError) as e:
        raise _not_found(recipe, version, platform, f"Could not list release assets: {e}", url) from e

    assets = release.get("assets", []) if isinstance(release, dict) else []
    asset = find_asset(assets, regex)
    if asset is None:
        raise _not_found(recipe, version, platform, f"No asset matching '{regex}'", url)

    return Artifact(
        url=str(asset["browser_download_url"]),
        filename=str(asset["name"]),
        expected_checksum=normalize_checksum(asset.get("digest")),
    )


def _fill(template: str, version: str, platform: PlatformKey) -> str:
    return template.replace("{version}", version).replace("{os}", platform.os).replace("{arch}", platform.arch)
