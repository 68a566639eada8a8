"""Discovery of the local files that invalidate the kernel archive.

Path dependencies of the kernel workspace are listed with cargo. Registry
dependencies are skipped: they are pinned by the kernel's lock file, which
is watched itself.

Two listing modes exist:
- `tree`: `cargo tree --prefix=none --workspace`, one package per line with
  the local path in parentheses, e.g. `hermit-macro v0.1.0 (/src/kernel/macro)`.
- `metadata`: `cargo metadata --format-version=1`, where path dependencies
  are the packages without a `source`.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from hermit_build.errors import DependencyListingFailed
from hermit_build.types import DependencyPath

logger = logging.getLogger(__name__)

ListingMode = Literal["tree", "metadata"]


class MetadataPackage(BaseModel):
    """Subset of a package entry in `cargo metadata` output."""

    model_config = ConfigDict(extra="ignore")

    name: str
    manifest_path: Path
    source: str | None = None


class CargoMetadata(BaseModel):
    """Subset of the `cargo metadata` document."""

    model_config = ConfigDict(extra="ignore")

    packages: list[MetadataPackage]


def compose_listing_command(
    cargo: Path | str,
    manifest_path: Path,
    mode: ListingMode = "tree",
) -> list[str]:
    """Compose the dependency listing command for a manifest."""
    if mode == "metadata":
        return [
            str(cargo),
            "metadata",
            "--format-version=1",
            f"--manifest-path={manifest_path}",
        ]
    return [
        str(cargo),
        "tree",
        f"--manifest-path={manifest_path}",
        "--prefix=none",
        "--workspace",
    ]


def parse_tree_output(output: str) -> list[DependencyPath]:
    """Extract the local path dependencies from `cargo tree` output.

    Args:
        output: Output of `cargo tree --prefix=none --workspace`.

    Returns:
        One DependencyPath per line carrying an absolute path in parentheses,
        in listing order.
    """
    deps: list[DependencyPath] = []
    for line in output.splitlines():
        _, sep, rest = line.partition("(")
        if not sep:
            continue
        path, sep, _ = rest.partition(")")
        if not sep:
            continue
        # Markers such as `(*)` or `(proc-macro)` are not paths
        if not Path(path).is_absolute():
            continue
        deps.append(DependencyPath(Path(path)))
    return deps


def parse_metadata_output(output: str) -> list[DependencyPath]:
    """Extract the local path dependencies from `cargo metadata` output.

    Args:
        output: JSON document printed by `cargo metadata --format-version=1`.

    Returns:
        One DependencyPath per source-less package, in document order.

    Raises:
        DependencyListingFailed: If the document cannot be parsed.
    """
    try:
        metadata = CargoMetadata.model_validate(json.loads(output))
    except (json.JSONDecodeError, ValidationError) as e:
        raise DependencyListingFailed(
            f"Could not parse cargo metadata output: {e}"
        ) from e

    return [
        DependencyPath(package.manifest_path.parent)
        for package in metadata.packages
        if package.source is None
    ]


def list_dependencies(
    cargo: Path | str,
    manifest_path: Path,
    env: Mapping[str, str],
    mode: ListingMode = "tree",
) -> str:
    """Run the dependency listing subcommand and return its stdout.

    Raises:
        DependencyListingFailed: If the command cannot run or exits nonzero.
    """
    cmd = compose_listing_command(cargo, manifest_path, mode)
    logger.debug("Listing dependencies: %s", cmd)

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            env=dict(env),
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise DependencyListingFailed(
            f"cargo {mode} failed for {manifest_path} "
            f"(exit code {e.returncode}): {e.stderr}"
        ) from e
    except OSError as e:
        raise DependencyListingFailed(
            f"Failed to run cargo {mode} for {manifest_path}: {e}"
        ) from e

    return result.stdout


def scan_dependencies(
    cargo: Path | str,
    manifest_path: Path,
    env: Mapping[str, str],
    mode: ListingMode = "tree",
) -> list[DependencyPath]:
    """List the path dependencies of a manifest's workspace.

    Args:
        cargo: Path to the cargo executable.
        manifest_path: Manifest whose workspace is listed.
        env: Isolated environment for cargo.
        mode: Listing mode.

    Returns:
        Path dependencies in listing order; empty if there are none.

    Raises:
        DependencyListingFailed: If listing fails.
    """
    output = list_dependencies(cargo, manifest_path, env, mode)
    if mode == "metadata":
        deps = parse_metadata_output(output)
    else:
        deps = parse_tree_output(output)
    logger.info("Found %d path dependencies for %s", len(deps), manifest_path)
    return deps


def collect_watch_paths(dependencies: Iterable[DependencyPath]) -> list[Path]:
    """Flatten the watch paths of dependencies, keeping first-seen order."""
    seen: set[Path] = set()
    paths: list[Path] = []
    for dep in dependencies:
        for path in dep.watch_paths():
            if path not in seen:
                seen.add(path)
                paths.append(path)
    return paths


__all__ = [
    "CargoMetadata",
    "ListingMode",
    "MetadataPackage",
    "collect_watch_paths",
    "compose_listing_command",
    "list_dependencies",
    "parse_metadata_output",
    "parse_tree_output",
    "scan_dependencies",
]
