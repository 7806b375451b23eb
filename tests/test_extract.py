"""Tests for archive extraction and entry point discovery."""

from __future__ import annotations

import gzip
import io
import os
import tarfile
from pathlib import Path
from typing import Callable

import pytest

from toolseed.extract import ExtractionError, detect_format, extract_archive, find_entry_point, is_exec


@pytest.mark.parametrize("archive_type", ["tar.gz", "tar.xz", "zip"])
def test_extract_with_strip_components(
    tmp_path: Path,
    create_dummy_archive: Callable,
    archive_type: str,
) -> None:
    """Leading directories are dropped and modes kept."""
    archive = create_dummy_archive(
        dest_path=tmp_path / f"tool.{archive_type}",
        binary_names=["tool", "helper"],
        archive_type=archive_type,
        nested_dir="tool-1.0.0/bin",
    )
    dest = tmp_path / "out"
    fmt = extract_archive(archive, dest, strip_components=1)
    assert fmt in ("tar", "zip")
    assert (dest / "bin" / "tool").is_file()
    assert (dest / "bin" / "helper").stat().st_mode & 0o111


def test_detect_format(tmp_path: Path, create_dummy_archive: Callable) -> None:
    """Formats come from the content, not the file name."""
    tarball = create_dummy_archive(dest_path=tmp_path / "a.bin", binary_names="a")
    assert detect_format(tarball) == "tar"

    compressed = tmp_path / "single"
    compressed.write_bytes(gzip.compress(b"#!/bin/sh\n"))
    assert detect_format(compressed) == "gzip"

    raw = tmp_path / "raw"
    raw.write_bytes(b"\x7fELF\x02\x01\x01")
    assert detect_format(raw) == "raw"


def test_raw_binary_is_placed_executable(tmp_path: Path) -> None:
    """Single-file releases become the named entry point."""
    raw = tmp_path / "jq-linux-amd64"
    raw.write_bytes(b"\x7fELF binary")
    dest = tmp_path / "out"
    assert extract_archive(raw, dest, raw_name="jq") == "raw"
    assert (dest / "jq").read_bytes() == b"\x7fELF binary"
    assert (dest / "jq").stat().st_mode & 0o111


def test_gzip_single_file(tmp_path: Path) -> None:
    """A compressed single binary is decompressed."""
    compressed = tmp_path / "tool.gz"
    compressed.write_bytes(gzip.compress(b"binary"))
    extract_archive(compressed, tmp_path / "out", raw_name="tool")
    assert (tmp_path / "out" / "tool").read_bytes() == b"binary"


def test_rejects_path_traversal(tmp_path: Path) -> None:
    """Members escaping the destination abort the extraction."""
    archive = tmp_path / "evil.tar.gz"
    with tarfile.open(archive, "w:gz") as tar:
        data = b"owned"
        info = tarfile.TarInfo("../evil")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
    with pytest.raises(ExtractionError):
        extract_archive(archive, tmp_path / "out")
    assert not (tmp_path / "evil").exists()


def test_corrupt_archive(tmp_path: Path) -> None:
    """Truncated tarballs raise ExtractionError."""
    good = tmp_path / "good.tar.gz"
    with tarfile.open(good, "w:gz") as tar:
        data = os.urandom(100_000)
        info = tarfile.TarInfo("tool")
        info.size = len(data)
        tar.addfile(info, io.BytesIO(data))
    truncated = tmp_path / "bad.tar.gz"
    truncated.write_bytes(good.read_bytes()[:200])
    with pytest.raises(ExtractionError):
        extract_archive(truncated, tmp_path / "out")


def test_find_entry_point_prefers_bin(tmp_path: Path) -> None:
    """bin/ wins over shallower copies; non-executables are ignored."""
    (tmp_path / "bin").mkdir()
    (tmp_path / "misc").mkdir()
    for path in (tmp_path / "go", tmp_path / "bin" / "go", tmp_path / "misc" / "go"):
        path.write_text("#!/bin/sh\n")
    (tmp_path / "bin" / "go").chmod(0o755)
    (tmp_path / "misc" / "go").chmod(0o755)
    (tmp_path / "go").chmod(0o644)
    assert find_entry_point(tmp_path, "go") == tmp_path / "bin" / "go"


def test_find_entry_point_shallowest(tmp_path: Path) -> None:
    """Without a bin/ directory the shallowest executable wins."""
    deep = tmp_path / "a" / "b"
    deep.mkdir(parents=True)
    for path in (deep / "zig", tmp_path / "a" / "zig"):
        path.write_text("#!/bin/sh\n")
        path.chmod(0o755)
    assert find_entry_point(tmp_path, "zig") == tmp_path / "a" / "zig"
    assert find_entry_point(tmp_path, "zls") is None


@pytest.mark.parametrize(
    ("filename", "mode", "expected"),
    [
        ("tool", 0o755, True),
        ("tool", 0o644, False),
        ("README.txt", 0o755, False),
        ("tool.appimage", 0o644, True),
    ],
)
def test_is_exec(filename: str, mode: int, expected: bool) -> None:  # noqa: FBT001
    """Mode bits decide, except for obvious non-executables."""
    assert is_exec(filename, mode) is expected
