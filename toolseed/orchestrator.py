"""Run the pipeline for every requested tool and collect the outcomes."""

from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import requests

from . import pipeline
from .config import ToolRequest
from .decide import InstallDecision
from .errors import RecipeError, ToolseedError, UnsupportedPlatform
from .platforms import host_platform
from .recipe import bundled_recipe_names, load_bundled_recipe, load_recipe_file, parse_recipe
from .utils import fetch_bytes, fetch_text, log
from .verify import sha256_file

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from .config import ToolseedConfig
    from .pipeline import ConfirmCallback, PipelineResult
    from .platforms import PlatformKey
    from .recipe import Recipe

logger = logging.getLogger(__name__)

Status = Literal["installed", "skipped", "failed"]


def parse_checksums(text: str) -> dict[str, str]:
    """Parse ``sha256sum`` output (``<hex>  <file>`` per line)."""
    checksums = {}
    for line in text.splitlines():
        parts = line.strip().split(None, 1)
        if len(parts) != 2:  # noqa: PLR2004
            continue
        digest, filename = parts
        checksums[filename.lstrip("*").strip()] = digest.lower()
    return checksums


class RecipeStore:
    """Source of recipes: the bundled ones, or a mirror kept in ``cache_dir``.

    With a mirror, each recipe is refreshed when its cached copy does not
    match the digest published in ``<mirror>/checksums.txt``. When the mirror
    publishes no digest for a recipe it is downloaded again.
    """

    def __init__(self, config: ToolseedConfig) -> None:
        """Initialize the store; nothing is fetched until a recipe is needed."""
        self.config = config
        self._checksums: dict[str, str] | None = None

    @property
    def mirror(self) -> str | None:
        return self.config.recipe_mirror.rstrip("/") if self.config.recipe_mirror else None

    def names(self) -> list[str]:
        """All known recipe names, bundled or cached from the mirror."""
        names = set(bundled_recipe_names())
        cache = self.config.recipe_cache_dir
        if self.mirror and cache.is_dir():
            names.update(path.stem for path in cache.glob("*.yaml"))
        return sorted(names)

    def catalog(self) -> list[Recipe]:
        """The bundled recipes, used for groups, companions and ordering."""
        return [load_bundled_recipe(name) for name in bundled_recipe_names()]

    def get(self, name: str) -> Recipe:
        """Load the current recipe for ``name``."""
        if not self.mirror:
            return load_bundled_recipe(name)
        return load_recipe_file(self.ensure_current(name))

    def _mirror_checksums(self) -> dict[str, str]:
        if self._checksums is None:
            url = f"{self.mirror}/checksums.txt"
            try:
                self._checksums = parse_checksums(fetch_text(url, timeout=self.config.timeout))
            except requests.RequestException as e:
                log(f"Could not fetch recipe checksums from {url}: {e}", "warning")
                self._checksums = {}
        return self._checksums

    def ensure_current(self, name: str) -> Path:
        """Make sure the cached recipe matches the mirror; return its path."""
        filename = f"{name}.yaml"
        cached = self.config.recipe_cache_dir / filename
        expected = self._mirror_checksums().get(filename)

        if expected is None:
            log(f"No checksum published for {filename}, downloading it again", "warning")
        elif cached.is_file() and sha256_file(cached) == expected:
            logger.debug("Recipe %s is up to date", cached)
            return cached

        url = f"{self.mirror}/{filename}"
        try:
            data = fetch_bytes(url, timeout=self.config.timeout)
        except requests.RequestException as e:
            msg = f"Could not refresh recipe: {e}"
            raise RecipeError(msg, tool=name, url=url) from e

        actual = hashlib.sha256(data).hexdigest()
        if expected is not None and actual != expected:
            msg = f"Recipe checksum mismatch: expected {expected}, got {actual}"
            raise RecipeError(msg, tool=name, url=url)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            msg = f"Recipe is not valid UTF-8: {e}"
            raise RecipeError(msg, tool=name, url=url) from e
        parse_recipe(text, name)

        cached.parent.mkdir(parents=True, exist_ok=True)
        tmp = cached.with_name(f".{filename}.tmp")
        tmp.write_bytes(data)
        os.replace(tmp, cached)
        log(f"Updated recipe {name} from {self.mirror}", "success")
        return cached


def groups_of(recipes: Iterable[Recipe]) -> dict[str, list[str]]:
    """Group name to member tools, in recipe order."""
    groups: dict[str, list[str]] = {}
    for recipe in recipes:
        if recipe.group:
            groups.setdefault(recipe.group, []).append(recipe.name)
    return groups


def companions_of(recipes: Iterable[Recipe]) -> dict[str, str]:
    """Primary tool to the companion its recipe declares."""
    return {recipe.name: recipe.companion for recipe in recipes if recipe.companion}


def default_tools(recipes: Iterable[Recipe]) -> list[str]:
    """Everything installable by default: toolchains first, then grouped tools.

    Companions are left out; they come with their primary.
    """
    recipes = list(recipes)
    companions = set(companions_of(recipes).values())
    candidates = [recipe for recipe in recipes if recipe.name not in companions]
    ungrouped = sorted(recipe.name for recipe in candidates if not recipe.group)
    grouped = sorted(recipe.name for recipe in candidates if recipe.group)
    return ungrouped + grouped


@dataclass(frozen=True)
class ToolOutcome:
    """Result of one tool in a run."""

    name: str
    status: Status
    version: str | None = None
    error: ToolseedError | Exception | None = None
    detail: str = ""


@dataclass
class RunReport:
    """Ordered outcomes of a whole run."""

    outcomes: list[ToolOutcome] = field(default_factory=list)

    def _with(self, status: Status) -> list[ToolOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def installed(self) -> list[ToolOutcome]:
        return self._with("installed")

    @property
    def skipped(self) -> list[ToolOutcome]:
        return self._with("skipped")

    @property
    def failed(self) -> list[ToolOutcome]:
        return self._with("failed")

    @property
    def ok(self) -> bool:
        """True when no tool failed."""
        return not self.failed


class Orchestrator:
    """Install each requested tool in order; one failure never stops the run."""

    def __init__(
        self,
        config: ToolseedConfig,
        store: RecipeStore | None = None,
        confirm: ConfirmCallback | None = None,
    ) -> None:
        """Initialize with the run's configuration and recipe source."""
        self.config = config
        self.store = store or RecipeStore(config)
        self.confirm = confirm

    def run(self, tool_requests: Iterable[ToolRequest]) -> RunReport:
        """Process ``tool_requests`` sequentially and report every outcome."""
        report = RunReport()
        tool_requests = list(tool_requests)

        try:
            host = host_platform()
        except UnsupportedPlatform as e:
            log(str(e), "error")
            for request in tool_requests:
                report.outcomes.append(ToolOutcome(request.name, "failed", error=e, detail=e.message))
            return report

        for request in tool_requests:
            if not request.install_enabled:
                log(f"Skipping {request.name} (disabled)", "info", "⏭️")
                report.outcomes.append(ToolOutcome(request.name, "skipped", detail="disabled"))
                continue

            outcome, result, recipe = self._run_one(request, host)
            report.outcomes.append(outcome)
            if request.companion_spec is None or recipe is None or not recipe.companion:
                continue

            companion = ToolRequest(name=recipe.companion, version_spec=request.companion_spec)
            if result is None:
                detail = f"{request.name} failed"
                log(f"Skipping {companion.name} because {detail}", "warning")
                report.outcomes.append(ToolOutcome(companion.name, "skipped", detail=detail))
                continue
            companion_outcome, _, _ = self._run_one(
                companion,
                host,
                primary_version=result.resolved.concrete_version,
            )
            report.outcomes.append(companion_outcome)

        return report

    def _run_one(
        self,
        request: ToolRequest,
        host: PlatformKey,
        primary_version: str | None = None,
    ) -> tuple[ToolOutcome, PipelineResult | None, Recipe | None]:
        log(f"Processing {request.name} ({request.version_spec})", "info", "🔧")
        recipe = None
        try:
            recipe = self.store.get(request.name)
            result = pipeline.install(
                request,
                recipe,
                self.config,
                host=host,
                primary_version=primary_version,
                confirm=self.confirm,
            )
        except ToolseedError as e:
            log(str(e), "error")
            return ToolOutcome(request.name, "failed", error=e, detail=e.message), None, recipe
        except Exception as e:  # noqa: BLE001
            log(f"Unexpected error while installing {request.name}: {e}", "error", print_exception=True)
            return ToolOutcome(request.name, "failed", error=e, detail=str(e)), None, recipe

        version = result.resolved.concrete_version
        if result.decision is InstallDecision.SKIP:
            outcome = ToolOutcome(request.name, "skipped", version, detail="already installed")
        else:
            detail = "reinstalled" if result.decision is InstallDecision.REINSTALL else "installed"
            outcome = ToolOutcome(request.name, "installed", version, detail=detail)
        return outcome, result, recipe
