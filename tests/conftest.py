"""Configuration for pytest fixtures used in toolseed tests."""

from __future__ import annotations

import io
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Callable

import pytest

from toolseed.config import ToolseedConfig
from toolseed.recipe import Recipe, recipe_from_dict

TAR_MODES = {"tar.gz": "w:gz", "tar.xz": "w:xz"}


def version_script(name: str, version: str) -> str:
    """Shell script that reports ``version`` like a real tool would."""
    return f'#!/bin/sh\necho "{name} version {version}"\n'


@pytest.fixture
def create_dummy_archive() -> Callable:
    """Build a release artifact holding executable ``binary_names``.

    ``nested_dir`` places the binaries below a top-level directory, the way
    most upstream tarballs are laid out; ``extra_files`` adds non-executable
    members by relative path. ``archive_type`` is ``tar.gz``, ``tar.xz``,
    ``zip`` or ``raw`` (a bare script, as jq and yq publish).
    """

    def _create_archive(
        dest_path: Path,
        binary_names: str | list[str],
        archive_type: str = "tar.gz",
        binary_content: str = "#!/usr/bin/env echo\n",
        nested_dir: str | None = None,
        extra_files: dict[str, str] | None = None,
    ) -> Path:
        if archive_type == "raw":
            dest_path.write_text(binary_content)
            dest_path.chmod(0o755)
            return dest_path

        names = [binary_names] if isinstance(binary_names, str) else binary_names
        prefix = f"{nested_dir.strip('/')}/" if nested_dir else ""
        members = [(prefix + name, binary_content.encode(), 0o755) for name in names]
        members += [(rel, text.encode(), 0o644) for rel, text in (extra_files or {}).items()]

        if archive_type in TAR_MODES:
            with tarfile.open(dest_path, TAR_MODES[archive_type]) as tar:
                for arcname, data, mode in members:
                    info = tarfile.TarInfo(arcname)
                    info.size = len(data)
                    info.mode = mode
                    tar.addfile(info, io.BytesIO(data))
        elif archive_type == "zip":
            with zipfile.ZipFile(dest_path, "w", zipfile.ZIP_DEFLATED) as zipf:
                for arcname, data, mode in members:
                    info = zipfile.ZipInfo(arcname)
                    info.external_attr = (stat.S_IFREG | mode) << 16
                    zipf.writestr(info, data)
        else:  # pragma: no cover
            msg = f"Unsupported archive type: {archive_type}"
            raise ValueError(msg)
        return dest_path

    return _create_archive


@pytest.fixture
def config(tmp_path: Path) -> ToolseedConfig:
    """Configuration rooted in a temporary directory, reinstalling without prompts."""
    return ToolseedConfig(
        install_prefix=tmp_path / "prefix",
        bin_dir=tmp_path / "bin",
        cache_dir=tmp_path / "cache",
        auth_token=None,
        interaction_mode="auto",
    )


def demo_recipe_data(**overrides: object) -> dict:
    """Recipe mapping for a made-up tool released on GitHub."""
    data: dict = {
        "name": "demo",
        "binaries": ["demo"],
        "version": {"source": "github-releases", "repo": "acme/demo"},
        "artifact": {
            "strategy": "pattern",
            "asset_patterns": {
                "linux": {"x86_64": r"^demo-{version}-linux-x86_64\.tar\.gz$"},
                "darwin": r"^demo-{version}-darwin-{arch}\.tar\.gz$",
            },
        },
        "arch_map": {"x86_64": "x86_64", "aarch64": "arm64", "arm64": "arm64"},
        "strip_components": 1,
    }
    data.update(overrides)
    return data


@pytest.fixture
def demo_recipe() -> Recipe:
    """Recipe for a made-up tool released on GitHub."""
    return recipe_from_dict(demo_recipe_data())


@pytest.fixture
def demo_archive(tmp_path: Path, create_dummy_archive: Callable) -> Callable[[str], Path]:
    """Build ``demo-<version>/bin/demo`` tarballs reporting their version."""

    def _build(version: str) -> Path:
        return create_dummy_archive(
            dest_path=tmp_path / f"demo-{version}-linux-x86_64.tar.gz",
            binary_names="demo",
            binary_content=version_script("demo", version),
            nested_dir=f"demo-{version}/bin",
            extra_files={f"demo-{version}/README.md": "demo"},
        )

    return _build
