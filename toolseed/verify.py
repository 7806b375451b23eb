"""Download artifacts and check them against their published SHA-256."""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

import requests

from .errors import DownloadFailed, IntegrityError
from .utils import github_auth_header, log

if TYPE_CHECKING:
    from pathlib import Path

    from .locate import Artifact

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def sha256_file(path: Path) -> str:
    """Return the lower-case hex SHA-256 of the file at ``path``."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def verify(path: Path, artifact: Artifact, *, tool: str = "") -> Path:
    """Check the downloaded file against the artifact's expected checksum.

    A mismatch deletes the file. Artifacts without a published checksum pass
    with a warning.
    """
    if not artifact.has_checksum:
        log(f"No checksum published for {artifact.filename}, skipping verification", "warning")
        return path

    expected = str(artifact.expected_checksum).lower()
    actual = sha256_file(path)
    if actual != expected:
        path.unlink(missing_ok=True)
        msg = f"Checksum mismatch for {artifact.filename}: expected {expected}, got {actual}"
        raise IntegrityError(msg, tool=tool, url=artifact.url)

    log(f"Checksum verified for {artifact.filename}", "success")
    return path


def download(
    url: str,
    destination: Path,
    *,
    tool: str = "",
    version: str | None = None,
    token: str | None = None,
    timeout: float = 30,
) -> Path:
    """Download a file from a URL to a destination path."""
    log(f"Downloading from {url}", "info", "📥")
    destination.parent.mkdir(parents=True, exist_ok=True)
    headers = github_auth_header(url, token)
    try:
        with requests.get(url, stream=True, headers=headers, timeout=timeout) as response:
            response.raise_for_status()
            with destination.open("wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    f.write(chunk)
    except (requests.RequestException, OSError) as e:
        destination.unlink(missing_ok=True)
        msg = f"Failed to download: {e}"
        raise DownloadFailed(msg, tool=tool, version=version, url=url) from e

    logger.debug("Downloaded %s (%d bytes)", destination, destination.stat().st_size)
    return destination
