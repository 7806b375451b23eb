"""Tests for checksum verification and downloads."""

from __future__ import annotations

import hashlib
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from toolseed.errors import DownloadFailed, IntegrityError
from toolseed.locate import Artifact
from toolseed.verify import download, sha256_file, verify


def test_sha256_file(tmp_path: Path) -> None:
    """Digests are lower-case hex."""
    path = tmp_path / "data.bin"
    path.write_bytes(b"toolseed" * 50_000)
    assert sha256_file(path) == hashlib.sha256(b"toolseed" * 50_000).hexdigest()


def test_verify_match(tmp_path: Path) -> None:
    """A matching file passes through unchanged."""
    path = tmp_path / "demo.tar.gz"
    path.write_bytes(b"payload")
    artifact = Artifact("https://x/demo.tar.gz", "demo.tar.gz", hashlib.sha256(b"payload").hexdigest())
    assert verify(path, artifact, tool="demo") == path
    assert path.exists()


def test_verify_mismatch_deletes_file(tmp_path: Path) -> None:
    """Expected abc123 but got something else: fatal, file removed."""
    path = tmp_path / "demo.tar.gz"
    path.write_bytes(b"def456 bytes")
    artifact = Artifact("https://x/demo.tar.gz", "demo.tar.gz", "abc123")
    with pytest.raises(IntegrityError) as exc_info:
        verify(path, artifact, tool="demo")
    assert not path.exists()
    assert "abc123" in str(exc_info.value)
    assert exc_info.value.tool == "demo"


def test_verify_without_checksum(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """No published checksum is a warning, not a failure."""
    path = tmp_path / "demo"
    path.write_bytes(b"anything")
    assert verify(path, Artifact("https://x/demo", "demo"), tool="demo") == path
    assert "No checksum published" in capsys.readouterr().out


def _response(chunks: list[bytes], status_error: Exception | None = None) -> MagicMock:
    response = MagicMock()
    response.__enter__.return_value = response
    response.iter_content.return_value = chunks
    if status_error:
        response.raise_for_status.side_effect = status_error
    return response


def test_download_writes_file(tmp_path: Path) -> None:
    """Chunks are streamed to the destination."""
    destination = tmp_path / "tmp" / "demo.tar.gz"
    with patch("toolseed.verify.requests.get", return_value=_response([b"ab", b"cd"])) as mock_get:
        result = download("https://example.com/demo.tar.gz", destination, tool="demo", token="secret")
    assert result.read_bytes() == b"abcd"
    # Tokens are only sent to GitHub.
    assert mock_get.call_args.kwargs["headers"] == {}


def test_download_sends_token_to_github(tmp_path: Path) -> None:
    """Release assets on github.com get the bearer token."""
    with patch("toolseed.verify.requests.get", return_value=_response([b"x"])) as mock_get:
        download("https://github.com/a/b/releases/download/v1/b.zip", tmp_path / "b.zip", token="secret")
    assert mock_get.call_args.kwargs["headers"] == {"Authorization": "Bearer secret"}


def test_download_failure_removes_partial_file(tmp_path: Path) -> None:
    """HTTP errors become DownloadFailed and leave nothing behind."""
    destination = tmp_path / "demo.tar.gz"
    destination.write_bytes(b"partial")
    error = requests.HTTPError("404 Client Error")
    with (
        patch("toolseed.verify.requests.get", return_value=_response([], error)),
        pytest.raises(DownloadFailed) as exc_info,
    ):
        download("https://example.com/demo.tar.gz", destination, tool="demo", version="1.0.0")
    assert not destination.exists()
    assert exc_info.value.url == "https://example.com/demo.tar.gz"
    assert exc_info.value.version == "1.0.0"
