"""Kernel build orchestration.

Runs once per build-script invocation:

    skip-check -> locate-source -> build -> link-artifact -> register-dependencies

Every step blocks until complete. Any failure raises a KernelBuildError and
aborts the outer build; nothing is emitted for the steps that did not run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from hermit_build.builds.artifacts import emit_link_directives
from hermit_build.builds.backend import BuildBackend, CargoBackend, build_request
from hermit_build.builds.deps import collect_watch_paths
from hermit_build.config import Settings, get_settings
from hermit_build.directives import DirectiveWriter
from hermit_build.features import extra_build_flags, translate_features
from hermit_build.source.locator import locate_kernel_source
from hermit_build.types import ArtifactLocation, BuildContext, KernelSource

logger = logging.getLogger(__name__)

# Sets the kernel's log level filter at compile time
LOG_LEVEL_FILTER_VAR = "HERMIT_LOG_LEVEL_FILTER"


@dataclass
class OrchestratorResult:
    """Outcome of an orchestrator run."""

    skipped_reason: str | None = None
    source: KernelSource | None = None
    artifact: ArtifactLocation | None = None
    watched_paths: list[Path] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


def should_skip(context: BuildContext, settings: Settings) -> str | None:
    """Return why the kernel is not needed for this invocation, if it is not.

    Args:
        context: Build context.
        settings: Orchestrator settings.

    Returns:
        Skip reason, or None if the kernel must be built.
    """
    if context.target_os != settings.supported_target_os:
        return (
            f"target OS `{context.target_os or '(unset)'}` is not "
            f"`{settings.supported_target_os}`"
        )
    if context.is_lint:
        return "lint-only invocation"
    if context.is_docs:
        return "documentation-only invocation"
    return None


def register_dependencies(
    source: KernelSource,
    backend: BuildBackend,
    writer: DirectiveWriter,
) -> list[Path]:
    """Emit a rebuild trigger for every local file the kernel build depends on.

    Args:
        source: Kernel source tree.
        backend: Backend used to list path dependencies.
        writer: Directive writer.

    Returns:
        The watched paths, in emission order.

    Raises:
        DependencyListingFailed: If a listing fails.
    """
    manifests = [source.manifest_path, source.builtins_manifest]

    dependencies = []
    for manifest in manifests:
        dependencies.extend(backend.scan_dependencies(manifest))

    # Manifests and the toolchain pin are watched whether or not they exist
    watched = collect_watch_paths(dependencies)
    for extra in (*manifests, source.toolchain_file):
        if extra not in watched:
            watched.append(extra)

    for path in watched:
        writer.rerun_if_changed(path)
    return watched


def run(
    context: BuildContext,
    settings: Settings | None = None,
    writer: DirectiveWriter | None = None,
    backend: BuildBackend | None = None,
    client: httpx.Client | None = None,
) -> OrchestratorResult:
    """Build the kernel and wire it into the outer build.

    Args:
        context: Build context.
        settings: Orchestrator settings (uses defaults if not provided).
        writer: Directive writer (writes to stdout if not provided).
        backend: Build backend (CargoBackend for the context if not provided).
        client: HTTPX client for the download fallback.

    Returns:
        OrchestratorResult describing what was done.

    Raises:
        KernelBuildError: On any failure.
    """
    if settings is None:
        settings = get_settings()
    if writer is None:
        writer = DirectiveWriter()

    reason = should_skip(context, settings)
    if reason is not None:
        logger.info("Skipping kernel build: %s", reason)
        return OrchestratorResult(skipped_reason=reason)

    context.require_build_inputs()

    source = locate_kernel_source(context, settings, client=client)
    logger.info("Kernel source: %s (%s)", source.root, source.origin.value)

    features = translate_features(context.enabled_flags)
    extra_flags = extra_build_flags(context.enabled_flags)

    if backend is None:
        backend = CargoBackend.from_context(context, settings)

    request = build_request(source, context, features, extra_flags)
    writer.warning(f"$ {backend.describe(request)}")
    artifact = backend.build(request)

    emit_link_directives(artifact, writer)

    watched = register_dependencies(source, backend, writer)
    writer.rerun_if_env_changed(LOG_LEVEL_FILTER_VAR)

    return OrchestratorResult(
        source=source,
        artifact=artifact,
        watched_paths=watched,
    )


__all__ = [
    "LOG_LEVEL_FILTER_VAR",
    "OrchestratorResult",
    "register_dependencies",
    "run",
    "should_skip",
]
