"""Tests for recipe parsing and the bundled recipes."""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from toolseed.errors import RecipeError
from toolseed.locate import asset_regex
from toolseed.platforms import PlatformKey, map_platform
from toolseed.recipe import (
    bundled_recipe_names,
    load_bundled_recipe,
    load_recipe_file,
    parse_recipe,
)

HOSTS = [
    PlatformKey("linux", "x86_64"),
    PlatformKey("linux", "aarch64"),
    PlatformKey("darwin", "x86_64"),
    PlatformKey("darwin", "arm64"),
]


def test_bundled_recipes() -> None:
    """Toolchains and gadgets are shipped with the package."""
    names = bundled_recipe_names()
    for expected in ("zig", "zls", "go", "bun", "jq", "ripgrep", "fzf", "yq"):
        assert expected in names


@pytest.mark.parametrize("name", bundled_recipe_names())
def test_bundled_recipe_is_valid(name: str) -> None:
    """Every bundled recipe parses and names itself after its file."""
    recipe = load_bundled_recipe(name)
    assert recipe.name == name
    assert recipe.binaries
    re.compile(recipe.probe_regex)


PATTERN_RECIPES = [n for n in bundled_recipe_names() if load_bundled_recipe(n).artifact_strategy == "pattern"]


@pytest.mark.parametrize("name", PATTERN_RECIPES)
def test_pattern_recipes_cover_supported_hosts(name: str) -> None:
    """Each pattern recipe yields a valid regex for every supported host."""
    recipe = load_bundled_recipe(name)
    for host in HOSTS:
        regex = asset_regex(recipe, map_platform(host, recipe), "1.2.3")
        assert regex is not None, f"{name} has no pattern for {host}"
        re.compile(regex)


def test_ripgrep_regex_matches_real_asset_names() -> None:
    """Templates match the names upstream actually publishes."""
    recipe = load_bundled_recipe("ripgrep")
    regex = asset_regex(recipe, map_platform(PlatformKey("darwin", "arm64"), recipe), "14.1.1")
    assert regex is not None
    assert re.search(regex, "ripgrep-14.1.1-aarch64-apple-darwin.tar.gz")
    assert not re.search(regex, "ripgrep-14.1.1-aarch64-apple-darwin.tar.gz.sha256")


def test_companion_declarations() -> None:
    """zig names zls as its companion, and zls names zig as its primary."""
    assert load_bundled_recipe("zig").companion == "zls"
    zls = load_bundled_recipe("zls")
    assert zls.companion_of == "zig"
    assert zls.query_params == {"zig_version": "{version}", "compatibility": "only-runtime"}


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("- just a list", "mapping"),
        ("name: x\nversion: {source: ftp}", "Unknown version source"),
        ("name: x\nversion: {source: github-releases}", "version.repo"),
        ("name: x\nversion: {source: keyed-index}", "version.url"),
        ("name: x\nversion: {source: github-releases, repo: a/x}", "asset_patterns"),
        (
            "name: x\nversion: {source: keyed-index, url: 'https://x'}\nartifact: {strategy: guess}",
            "Unknown artifact strategy",
        ),
        ("name: x\nbinaries: []\nversion: {source: github-releases, repo: a/x}", "at least one binary"),
        ("name: [unclosed", "Invalid YAML"),
    ],
)
def test_invalid_recipes(text: str, message: str) -> None:
    """Malformed recipes raise RecipeError with a useful message."""
    with pytest.raises(RecipeError, match=message):
        parse_recipe(text, "x")


def test_defaults_and_probe_args_string(tmp_path: Path) -> None:
    """Missing keys take their defaults; probe args may be a string."""
    path = tmp_path / "tool.yaml"
    path.write_text(
        "version: {source: github-releases, repo: acme/tool}\n"
        "artifact: {asset_patterns: '^tool$'}\n"
        "probe: {args: 'version --short'}\n",
    )
    recipe = load_recipe_file(path)
    assert recipe.name == "tool"
    assert recipe.binaries == ["tool"]
    assert recipe.tag_prefix == "v"
    assert recipe.probe_args == ["version", "--short"]
    assert recipe.strip_components == 0


def test_missing_bundled_recipe() -> None:
    """Unknown names are RecipeErrors."""
    with pytest.raises(RecipeError, match="No bundled recipe"):
        load_bundled_recipe("nope")
