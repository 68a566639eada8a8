"""Error taxonomy for the kernel build.

Every error carries a stable code for structured reporting. All of them are
fatal: the CLI reports the message and aborts the outer build.
"""

from __future__ import annotations

from pathlib import Path

# Error code constants
SOURCE_NOT_FOUND = "source_not_found"
DEPENDENCY_LISTING_FAILED = "dependency_listing_failed"
NESTED_BUILD_FAILED = "nested_build_failed"
ARTIFACT_MISSING = "artifact_missing"
TOOLCHAIN_NOT_FOUND = "toolchain_not_found"
INCOMPLETE_CONTEXT = "incomplete_context"


class KernelBuildError(Exception):
    """Base class for fatal kernel build errors."""

    default_code = "kernel_build_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        """Initialize KernelBuildError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code or self.default_code


class SourceNotFound(KernelBuildError):
    """Raised when no candidate yields a kernel manifest."""

    default_code = SOURCE_NOT_FOUND

    def __init__(
        self,
        message: str,
        candidates: list[Path] | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.candidates = list(candidates or [])


class DependencyListingFailed(KernelBuildError):
    """Raised when the dependency listing subcommand fails."""

    default_code = DEPENDENCY_LISTING_FAILED


class NestedBuildFailed(KernelBuildError):
    """Raised when the nested kernel build fails or cannot start."""

    default_code = NESTED_BUILD_FAILED

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        log_path: Path | None = None,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code)
        self.exit_code = exit_code
        self.log_path = log_path


class ArtifactMissing(KernelBuildError):
    """Raised when the archive directory is absent after a successful build."""

    default_code = ARTIFACT_MISSING


class ToolchainResolutionFailed(KernelBuildError):
    """Raised when no cargo executable can be found."""

    default_code = TOOLCHAIN_NOT_FOUND


class IncompleteBuildContext(KernelBuildError):
    """Raised when the build environment lacks a value a real build needs."""

    default_code = INCOMPLETE_CONTEXT


__all__ = [
    "ARTIFACT_MISSING",
    "ArtifactMissing",
    "DEPENDENCY_LISTING_FAILED",
    "DependencyListingFailed",
    "INCOMPLETE_CONTEXT",
    "IncompleteBuildContext",
    "KernelBuildError",
    "NESTED_BUILD_FAILED",
    "NestedBuildFailed",
    "SOURCE_NOT_FOUND",
    "SourceNotFound",
    "TOOLCHAIN_NOT_FOUND",
    "ToolchainResolutionFailed",
]
