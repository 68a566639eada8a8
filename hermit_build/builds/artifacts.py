"""Discovery and linking of the compiled kernel archive.

The kernel build places its archive at `<target_dir>/<arch>/<profile>/lib<name>.a`,
where `<profile>` is the profile name of the outer build.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hermit_build.directives import DirectiveWriter
from hermit_build.errors import ArtifactMissing
from hermit_build.types import ArtifactLocation

logger = logging.getLogger(__name__)

DEFAULT_LIB_NAME = "hermit"


def expected_lib_dir(target_dir: Path, arch: str, profile: str) -> Path:
    """Return the directory the kernel build writes its archive to."""
    return target_dir / arch / profile


def locate_artifact(
    target_dir: Path,
    arch: str,
    profile: str,
    lib_name: str = DEFAULT_LIB_NAME,
) -> ArtifactLocation:
    """Resolve the canonical archive directory after a successful build.

    Args:
        target_dir: Target directory of the nested build.
        arch: Target architecture.
        profile: Profile name of the outer build (untranslated).
        lib_name: Library name without `lib` prefix and `.a` suffix.

    Returns:
        ArtifactLocation with a canonical directory.

    Raises:
        ArtifactMissing: If the directory does not exist.
    """
    lib_dir = expected_lib_dir(target_dir, arch, profile)
    try:
        canonical = lib_dir.resolve(strict=True)
    except OSError as e:
        raise ArtifactMissing(
            f"Kernel library directory {lib_dir} does not exist after the build"
        ) from e
    if not canonical.is_dir():
        raise ArtifactMissing(f"Kernel library path {canonical} is not a directory")

    location = ArtifactLocation(lib_dir=canonical, lib_name=lib_name)
    if not location.archive_path.is_file():
        logger.warning("Expected kernel archive %s not found", location.archive_path)
    return location


def emit_link_directives(location: ArtifactLocation, writer: DirectiveWriter) -> None:
    """Make the archive visible to the outer build's linker."""
    writer.link_search(location.lib_dir)
    writer.link_lib(location.lib_name)


__all__ = [
    "DEFAULT_LIB_NAME",
    "emit_link_directives",
    "expected_lib_dir",
    "locate_artifact",
]
