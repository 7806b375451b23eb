"""Extract release archives into a version directory."""

from __future__ import annotations

import bz2
import gzip
import logging
import lzma
import shutil
import stat
import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Literal

logger = logging.getLogger(__name__)

ArchiveFormat = Literal["tar", "zip", "gzip", "bzip2", "xz", "raw"]

_MAGIC = (
    (b"\x1f\x8b", "gzip"),
    (b"\xfd7zXZ\x00", "xz"),
    (b"BZh", "bzip2"),
)


class ExtractionError(Exception):
    """Error during extraction process."""


def _is_definitely_not_exec(filename: str) -> bool:
    """Check if a file is definitely not executable."""
    return filename.endswith((".deb", ".1", ".txt", ".md", ".so", ".dylib", ".a"))


def is_exec(filename: str, mode: int) -> bool:
    """Determine if a file is executable based on name and permissions."""
    # First check mode bits
    if mode & 0o111 != 0 and not _is_definitely_not_exec(filename):
        return True

    # Then check filename
    if _is_definitely_not_exec(filename):
        return False

    return filename.endswith(".appimage")


def detect_format(path: Path) -> ArchiveFormat:
    """Detect the archive format from the file contents.

    Compressed tarballs are reported as ``tar``; a compressed single file
    keeps its compression name.
    """
    if zipfile.is_zipfile(path):
        return "zip"
    if tarfile.is_tarfile(path):
        return "tar"
    with path.open("rb") as f:
        head = f.read(8)
    for magic, name in _MAGIC:
        if head.startswith(magic):
            return name  # type: ignore[return-value]
    return "raw"


def _relative_parts(name: str, strip_components: int) -> tuple[str, ...] | None:
    """Archive member name to destination-relative parts, or None to skip."""
    parts = tuple(part for part in PurePosixPath(name).parts if part not in ("", "."))
    if name.startswith("/") or ".." in parts:
        msg = f"Refusing to extract {name!r} outside the destination"
        raise ExtractionError(msg)
    if len(parts) <= strip_components:
        return None
    return parts[strip_components:]


def _ensure_inside(dest: Path, target: Path) -> None:
    root = dest.resolve()
    resolved = target.resolve()
    if resolved != root and root not in resolved.parents:
        msg = f"Refusing to write {target} outside {dest}"
        raise ExtractionError(msg)


def _write_stream(source, target: Path, mode: int) -> None:  # noqa: ANN001
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("wb") as out:
        shutil.copyfileobj(source, out)
    target.chmod(mode & 0o777 or 0o644)


def _extract_tar(path: Path, dest: Path, strip_components: int) -> None:
    with tarfile.open(path, mode="r:*") as tar:
        for member in tar:
            rel = _relative_parts(member.name, strip_components)
            if rel is None:
                continue
            target = dest.joinpath(*rel)
            _ensure_inside(dest, target.parent)

            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
            elif member.issym():
                link_target = (target.parent / member.linkname).resolve()
                _ensure_inside(dest, link_target)
                target.parent.mkdir(parents=True, exist_ok=True)
                if target.is_symlink() or target.exists():
                    target.unlink()
                target.symlink_to(member.linkname)
            elif member.islnk():
                linked = _relative_parts(member.linkname, strip_components)
                if linked is None:
                    continue
                source = dest.joinpath(*linked)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            elif member.isfile():
                data = tar.extractfile(member)
                if data is None:
                    continue
                with data:
                    _write_stream(data, target, member.mode)
            else:
                logger.debug("Skipping special tar member %s", member.name)


def _extract_zip(path: Path, dest: Path, strip_components: int) -> None:
    with zipfile.ZipFile(path) as archive:
        for info in archive.infolist():
            rel = _relative_parts(info.filename, strip_components)
            if rel is None:
                continue
            target = dest.joinpath(*rel)
            _ensure_inside(dest, target.parent)

            if info.filename.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            file_mode = 0o644
            if info.external_attr > 0:
                file_mode = (info.external_attr >> 16) & 0o777 or 0o644
            with archive.open(info) as data:
                _write_stream(data, target, file_mode)


def _extract_single_file(path: Path, dest: Path, fmt: ArchiveFormat, name: str) -> None:
    """Decompress (or copy) a single-file artifact as the executable ``name``."""
    target = dest / name
    target.parent.mkdir(parents=True, exist_ok=True)
    if fmt == "gzip":
        opener = gzip.open
    elif fmt == "bzip2":
        opener = bz2.open
    elif fmt == "xz":
        opener = lzma.open
    else:
        opener = open
    with opener(path, "rb") as source:
        _write_stream(source, target, 0o755)


def extract_archive(
    path: Path,
    dest: Path,
    strip_components: int = 0,
    *,
    raw_name: str | None = None,
) -> ArchiveFormat:
    """Extract ``path`` into ``dest``, dropping ``strip_components`` leading dirs.

    Non-archive artifacts are placed in ``dest`` as the executable
    ``raw_name``. Returns the detected format.
    """
    dest.mkdir(parents=True, exist_ok=True)
    fmt = detect_format(path)
    logger.debug("Extracting %s (%s) into %s", path, fmt, dest)
    try:
        if fmt == "tar":
            _extract_tar(path, dest, strip_components)
        elif fmt == "zip":
            _extract_zip(path, dest, strip_components)
        else:
            _extract_single_file(path, dest, fmt, raw_name or path.name)
    except ExtractionError:
        raise
    except (OSError, EOFError, tarfile.TarError, zipfile.BadZipFile, lzma.LZMAError) as e:
        msg = f"Failed to extract {path.name}: {e}"
        raise ExtractionError(msg) from e
    return fmt


def find_entry_point(root: Path, name: str) -> Path | None:
    """Find the executable called ``name`` anywhere under ``root``.

    Files inside a ``bin`` directory win, then the shallowest path.
    """
    candidates = []
    for path in root.rglob(name):
        if not path.is_file():
            continue
        mode = path.stat().st_mode
        if not stat.S_ISREG(mode) or not is_exec(path.name, mode):
            continue
        rel = path.relative_to(root)
        candidates.append((rel.parent.name != "bin", len(rel.parts), str(rel), path))
    if not candidates:
        return None
    return min(candidates)[-1]
