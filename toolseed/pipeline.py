"""Run one tool through resolve, decide, locate, download, verify and activate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from .activate import activate
from .decide import InstallDecision, InstalledState, decide, probe_installed, prompt_reinstall
from .locate import locate
from .platforms import host_platform, map_platform
from .utils import log
from .verify import download, verify
from .versions import ResolvedVersion, resolve

if TYPE_CHECKING:
    from .activate import ActivationRecord
    from .config import ToolRequest, ToolseedConfig
    from .platforms import PlatformKey
    from .recipe import Recipe

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str, str], bool]


@dataclass(frozen=True)
class PipelineResult:
    """What happened to one tool."""

    name: str
    decision: InstallDecision
    resolved: ResolvedVersion
    installed: InstalledState
    record: ActivationRecord | None = None


def install(
    request: ToolRequest,
    recipe: Recipe,
    config: ToolseedConfig,
    *,
    host: PlatformKey | None = None,
    primary_version: str | None = None,
    confirm: ConfirmCallback | None = None,
) -> PipelineResult:
    """Install ``request`` unless the wanted version is already there.

    ``primary_version`` is the resolved version of the tool ``recipe`` is a
    companion of. Raises a :class:`~toolseed.errors.ToolseedError` subclass
    on failure.
    """
    platform = map_platform(host or host_platform(), recipe)
    resolved = resolve(
        recipe,
        request.version_spec,
        companion_version=primary_version,
        token=config.auth_token,
        timeout=config.timeout,
    )
    version = resolved.concrete_version

    installed = probe_installed(recipe, config.bin_dir)
    ask = confirm or prompt_reinstall
    decision = decide(resolved, installed, config.interaction_mode, lambda: ask(recipe.name, version))
    logger.debug("%s: installed=%s wanted=%s -> %s", recipe.name, installed.version, version, decision.value)

    if decision is InstallDecision.SKIP:
        log(f"{recipe.name} {version} is already installed", "success")
        return PipelineResult(recipe.name, decision, resolved, installed)

    artifact = locate(
        recipe,
        version,
        platform,
        index=resolved.index,
        primary_version=primary_version,
        token=config.auth_token,
        timeout=config.timeout,
    )
    artifact_path = config.tmp_dir / artifact.filename
    try:
        download(
            artifact.url,
            artifact_path,
            tool=recipe.name,
            version=version,
            token=config.auth_token,
            timeout=config.timeout,
        )
        verify(artifact_path, artifact, tool=recipe.name)
        record = activate(recipe, artifact_path, version, config, extra_binaries=request.extra_args)
    finally:
        artifact_path.unlink(missing_ok=True)

    return PipelineResult(recipe.name, decision, resolved, installed, record)
