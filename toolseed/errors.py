"""Errors raised by the installer pipeline.

Every error is fatal for the tool being installed and never for the whole
run: the orchestrator catches them and records the tool as failed.
"""

from __future__ import annotations


class ToolseedError(Exception):
    """Base class for per-tool installation failures."""

    kind = "ToolseedError"

    def __init__(
        self,
        message: str,
        *,
        tool: str = "",
        version: str | None = None,
        platform: str | None = None,
        url: str | None = None,
    ) -> None:
        """Initialize the error with the context needed to retry by hand."""
        self.message = message
        self.tool = tool
        self.version = version
        self.platform = platform
        self.url = url
        super().__init__(message)

    def __str__(self) -> str:
        """Render kind, tool, message and whatever context is known."""
        context = [
            f"{key}={value}"
            for key, value in (
                ("version", self.version),
                ("platform", self.platform),
                ("url", self.url),
            )
            if value
        ]
        head = f"{self.kind} [{self.tool}]" if self.tool else self.kind
        text = f"{head}: {self.message}"
        if context:
            text += f" ({', '.join(context)})"
        return text


class UnsupportedPlatform(ToolseedError):
    """No artifact can exist for this OS/architecture."""

    kind = "UnsupportedPlatform"


class ResolutionFailed(ToolseedError):
    """A version spec could not be turned into a concrete version."""

    kind = "ResolutionFailed"


class ArtifactNotFound(ToolseedError):
    """No downloadable artifact matches the version and platform."""

    kind = "ArtifactNotFound"


class DownloadFailed(ToolseedError):
    """The artifact could not be transferred."""

    kind = "DownloadFailed"


class IntegrityError(ToolseedError):
    """The downloaded bytes do not match the published checksum."""

    kind = "IntegrityError"


class ActivationFailed(ToolseedError):
    """Extraction or linking of a new version did not complete."""

    kind = "ActivationFailed"


class RecipeError(ToolseedError):
    """A tool recipe is missing, malformed or could not be refreshed."""

    kind = "RecipeError"
