"""Shared type definitions for hermit_build.

This module contains the models shared across subpackages to avoid
circular imports.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from hermit_build.errors import IncompleteBuildContext, SourceNotFound

KERNEL_MANIFEST = "Cargo.toml"
BUILTINS_MANIFEST = Path("hermit-builtins") / "Cargo.toml"
TOOLCHAIN_FILE = "rust-toolchain.toml"


class SourceOrigin(str, Enum):
    """Where a kernel source tree was found."""

    SIBLING = "sibling"
    CONFIGURED = "configured"
    DOWNLOADED = "downloaded"


class BuildContext(BaseModel):
    """Immutable snapshot of the invoking build's environment.

    Attributes:
        target_os: Target operating system of the outer build.
        target_arch: Target architecture of the outer build.
        profile: Optimization profile name (e.g. 'debug', 'release').
        enabled_flags: Normalized names of the enabled capability flags.
        out_dir: Output directory reserved for this build script.
        manifest_dir: Directory of the invoking build description.
        toolchain_home: Toolchain manager home directory, if set.
        is_lint: Whether this is a lint-only pass.
        is_docs: Whether this is a documentation-only pass.
        environ: Process environment the context was read from.
    """

    model_config = ConfigDict(frozen=True)

    target_os: str = ""
    target_arch: str = ""
    profile: str = ""
    enabled_flags: frozenset[str] = Field(default_factory=frozenset)
    out_dir: Path | None = None
    manifest_dir: Path | None = None
    toolchain_home: Path | None = None
    is_lint: bool = False
    is_docs: bool = False
    environ: dict[str, str] = Field(default_factory=dict, repr=False)

    @property
    def target_dir(self) -> Path:
        """Target directory handed to the nested build."""
        if self.out_dir is None:
            raise IncompleteBuildContext("OUT_DIR was not set")
        return self.out_dir / "target"

    def require_build_inputs(self) -> None:
        """Check that every value needed for a real build is present.

        Raises:
            IncompleteBuildContext: If a required value is missing.
        """
        missing = [
            name
            for name, value in (
                ("CARGO_CFG_TARGET_ARCH", self.target_arch),
                ("PROFILE", self.profile),
                ("OUT_DIR", self.out_dir),
                ("CARGO_MANIFEST_DIR", self.manifest_dir),
            )
            if not value
        ]
        if missing:
            raise IncompleteBuildContext(
                f"Build environment is missing: {', '.join(missing)}"
            )


@dataclass(frozen=True)
class KernelSource:
    """A resolved, on-disk kernel source tree."""

    root: Path
    origin: SourceOrigin = SourceOrigin.SIBLING

    def __post_init__(self) -> None:
        """Validate that the kernel manifest exists."""
        if not self.manifest_path.is_file():
            raise SourceNotFound(
                f"kernel manifest path `{self.manifest_path}` does not exist",
                candidates=[self.root],
            )

    @property
    def manifest_path(self) -> Path:
        return self.root / KERNEL_MANIFEST

    @property
    def builtins_manifest(self) -> Path:
        return self.root / BUILTINS_MANIFEST

    @property
    def toolchain_file(self) -> Path:
        return self.root / TOOLCHAIN_FILE


@dataclass(frozen=True)
class FeatureSet:
    """Ordered, duplicate-free set of translated kernel features."""

    features: tuple[str, ...] = ()

    def __iter__(self) -> Iterator[str]:
        return iter(self.features)

    def __len__(self) -> int:
        return len(self.features)

    def __contains__(self, name: object) -> bool:
        return name in self.features

    def as_arg(self) -> str:
        """Return the space-joined value for `--features`."""
        return " ".join(self.features)


@dataclass(frozen=True)
class DependencyPath:
    """Root of a local path dependency that must be watched for changes."""

    root: Path

    def watch_paths(self) -> list[Path]:
        """Return the paths whose modification invalidates the kernel archive.

        The source directory and manifest are always included; the lock file
        and build script only when they exist.
        """
        paths = [self.root / "src", self.root / "Cargo.toml"]
        for optional in ("Cargo.lock", "build.rs"):
            candidate = self.root / optional
            if candidate.exists():
                paths.append(candidate)
        return paths


@dataclass(frozen=True)
class ArtifactLocation:
    """Canonical directory holding the compiled static archive."""

    lib_dir: Path
    lib_name: str

    @property
    def archive_path(self) -> Path:
        return self.lib_dir / f"lib{self.lib_name}.a"


@dataclass
class BuildInvocation:
    """Record of a finished nested build.

    Attributes:
        command: The argv that was executed.
        cwd: Working directory of the build.
        exit_code: Process exit code.
        log_path: Path to the build log file.
        started_at: Build start time.
        finished_at: Build finish time.
    """

    command: list[str]
    cwd: Path
    exit_code: int
    log_path: Path
    started_at: datetime
    finished_at: datetime


__all__ = [
    "ArtifactLocation",
    "BUILTINS_MANIFEST",
    "BuildContext",
    "BuildInvocation",
    "DependencyPath",
    "FeatureSet",
    "KERNEL_MANIFEST",
    "KernelSource",
    "SourceOrigin",
    "TOOLCHAIN_FILE",
]
