"""Build backends.

The orchestrator only talks to a BuildBackend. CargoBackend runs the
kernel's xtask through cargo as a subprocess; another backend could compile
in-process without touching the orchestrator.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from hermit_build.builds.artifacts import DEFAULT_LIB_NAME, locate_artifact
from hermit_build.builds.deps import ListingMode, scan_dependencies
from hermit_build.builds.runner import compose_build_command, run_nested_build
from hermit_build.config import Settings
from hermit_build.toolchain import isolated_env, resolve_cargo
from hermit_build.types import (
    ArtifactLocation,
    BuildContext,
    BuildInvocation,
    DependencyPath,
    FeatureSet,
    KernelSource,
)

logger = logging.getLogger(__name__)

BUILD_LOG_NAME = "kernel-build.log"


@dataclass(frozen=True)
class BuildRequest:
    """Inputs of one kernel build."""

    source: KernelSource
    features: FeatureSet
    profile: str
    arch: str
    target_dir: Path
    extra_flags: tuple[str, ...] = ()


class BuildBackend(Protocol):
    """Interface between the orchestrator and the kernel's build tool."""

    def describe(self, request: BuildRequest) -> str:
        """Return a human-readable description of the build command."""
        ...

    def build(self, request: BuildRequest) -> ArtifactLocation:
        """Build the kernel and return the archive location."""
        ...

    def scan_dependencies(self, manifest_path: Path) -> list[DependencyPath]:
        """List the path dependencies of a manifest's workspace."""
        ...


class CargoBackend:
    """Builds the kernel with `cargo run --package=xtask -- build`."""

    def __init__(
        self,
        cargo: Path,
        env: Mapping[str, str],
        log_path: Path,
        lib_name: str = DEFAULT_LIB_NAME,
        listing_mode: ListingMode = "tree",
    ) -> None:
        self.cargo = cargo
        self.env = dict(env)
        self.log_path = log_path
        self.lib_name = lib_name
        self.listing_mode = listing_mode
        self.last_invocation: BuildInvocation | None = None

    @classmethod
    def from_context(cls, context: BuildContext, settings: Settings) -> CargoBackend:
        """Create a backend for a build context.

        Raises:
            ToolchainResolutionFailed: If cargo cannot be found.
            IncompleteBuildContext: If OUT_DIR is missing.
        """
        cargo = resolve_cargo(context.toolchain_home, context.environ)
        return cls(
            cargo=cargo,
            env=isolated_env(context.environ),
            log_path=context.target_dir.parent / BUILD_LOG_NAME,
            lib_name=settings.lib_name,
            listing_mode=settings.dependency_listing,
        )

    def command(self, request: BuildRequest) -> list[str]:
        return compose_build_command(
            self.cargo,
            request.target_dir,
            request.arch,
            request.profile,
            request.features,
            request.extra_flags,
        )

    def describe(self, request: BuildRequest) -> str:
        return shlex.join(self.command(request))

    def build(self, request: BuildRequest) -> ArtifactLocation:
        self.last_invocation = run_nested_build(
            self.command(request),
            cwd=request.source.root,
            env=self.env,
            log_path=self.log_path,
        )
        logger.info(
            "Kernel build finished in %.1fs, log: %s",
            (
                self.last_invocation.finished_at - self.last_invocation.started_at
            ).total_seconds(),
            self.last_invocation.log_path,
        )
        return locate_artifact(
            request.target_dir,
            request.arch,
            request.profile,
            lib_name=self.lib_name,
        )

    def scan_dependencies(self, manifest_path: Path) -> list[DependencyPath]:
        return scan_dependencies(
            self.cargo, manifest_path, self.env, mode=self.listing_mode
        )


def build_request(
    source: KernelSource,
    context: BuildContext,
    features: FeatureSet,
    extra_flags: Sequence[str] = (),
) -> BuildRequest:
    """Assemble a BuildRequest from a build context."""
    return BuildRequest(
        source=source,
        features=features,
        profile=context.profile,
        arch=context.target_arch,
        target_dir=context.target_dir,
        extra_flags=tuple(extra_flags),
    )


__all__ = [
    "BUILD_LOG_NAME",
    "BuildBackend",
    "BuildRequest",
    "CargoBackend",
    "build_request",
]
