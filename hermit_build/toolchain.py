"""Resolution of the cargo executable and its isolated environment.

The kernel is an independent project with its own pinned toolchain. It must
not inherit the toolchain identity of the outer build.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Mapping
from pathlib import Path

from hermit_build.errors import ToolchainResolutionFailed

logger = logging.getLogger(__name__)

EXE_SUFFIX = ".exe" if sys.platform == "win32" else ""

# Removed from the nested build's environment
STRIPPED_VARIABLES = ("LD_LIBRARY_PATH",)
STRIPPED_PREFIXES = ("CARGO", "RUST")


def cargo_executable_name() -> str:
    return f"cargo{EXE_SUFFIX}"


def resolve_cargo(
    toolchain_home: Path | None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """Locate the cargo executable used for the nested build.

    The toolchain manager's proxy in `<toolchain_home>/bin` is preferred over
    `PATH`, where an unrelated toolchain may come first.

    Args:
        toolchain_home: CARGO_HOME of the invoking build, if set.
        environ: Environment whose PATH is searched as fallback.

    Returns:
        Path to the cargo executable.

    Raises:
        ToolchainResolutionFailed: If cargo cannot be found.
    """
    exe = cargo_executable_name()

    if toolchain_home is not None:
        candidate = toolchain_home / "bin" / exe
        if candidate.exists():
            logger.debug("Using cargo from toolchain home: %s", candidate)
            return candidate

    search_path = environ.get("PATH") if environ is not None else None
    found = shutil.which(exe, path=search_path)
    if found is None:
        raise ToolchainResolutionFailed(
            f"Could not find `{exe}` in {toolchain_home or '(no CARGO_HOME)'}/bin "
            "or on PATH"
        )

    logger.debug("Using cargo from PATH: %s", found)
    return Path(found)


def isolated_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a copy of the environment without the outer toolchain's variables.

    Args:
        environ: Environment to filter; uses os.environ if not provided.

    Returns:
        New environment mapping for the nested build.
    """
    if environ is None:
        environ = os.environ
    return {
        key: value
        for key, value in environ.items()
        if key not in STRIPPED_VARIABLES and not key.startswith(STRIPPED_PREFIXES)
    }


__all__ = [
    "EXE_SUFFIX",
    "STRIPPED_PREFIXES",
    "STRIPPED_VARIABLES",
    "cargo_executable_name",
    "isolated_env",
    "resolve_cargo",
]
