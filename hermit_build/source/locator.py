"""Kernel source location.

Candidates are tried in order:
1. The `kernel` directory next to the invoking crate.
2. A kernel checkout configured via HERMIT_BUILD_KERNEL_SRC_DIR.
3. A release archive downloaded and extracted into OUT_DIR.

Only the last candidate touches the network or writes to disk.
"""

from __future__ import annotations

import logging
from pathlib import Path

import httpx

from hermit_build.config import Settings, get_settings
from hermit_build.errors import IncompleteBuildContext, SourceNotFound
from hermit_build.source.fetch import (
    DownloadError,
    ExtractionError,
    download_kernel_source,
)
from hermit_build.types import KERNEL_MANIFEST, BuildContext, KernelSource, SourceOrigin

logger = logging.getLogger(__name__)


def sibling_kernel_dir(manifest_dir: Path, kernel_dir_name: str = "kernel") -> Path:
    """Return the kernel directory next to the invoking crate's directory."""
    return manifest_dir.with_name(kernel_dir_name)


def _has_manifest(src_dir: Path) -> bool:
    return (src_dir / KERNEL_MANIFEST).is_file()


def find_local_kernel_source(
    context: BuildContext,
    settings: Settings,
) -> KernelSource | None:
    """Return a local kernel source tree, if one exists.

    Args:
        context: Build context.
        settings: Orchestrator settings.

    Returns:
        KernelSource, or None if no local candidate has a manifest.
    """
    if context.manifest_dir is not None:
        sibling = sibling_kernel_dir(context.manifest_dir, settings.kernel_dir_name)
        if _has_manifest(sibling):
            logger.info("Using sibling kernel source at %s", sibling)
            return KernelSource(root=sibling.resolve(), origin=SourceOrigin.SIBLING)
        logger.debug("No kernel manifest in sibling directory %s", sibling)

    if settings.kernel_src_dir is not None:
        if _has_manifest(settings.kernel_src_dir):
            logger.info("Using configured kernel source at %s", settings.kernel_src_dir)
            return KernelSource(
                root=settings.kernel_src_dir.resolve(),
                origin=SourceOrigin.CONFIGURED,
            )
        logger.warning(
            "Configured kernel source %s has no %s",
            settings.kernel_src_dir,
            KERNEL_MANIFEST,
        )

    return None


def locate_kernel_source(
    context: BuildContext,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> KernelSource:
    """Resolve the kernel source tree, downloading it as a last resort.

    Args:
        context: Build context.
        settings: Orchestrator settings (uses defaults if not provided).
        client: HTTPX client (creates one if not provided).

    Returns:
        KernelSource with an existing manifest.

    Raises:
        SourceNotFound: If no candidate yields a kernel manifest.
    """
    if settings is None:
        settings = get_settings()

    local = find_local_kernel_source(context, settings)
    if local is not None:
        return local

    candidates: list[Path] = []
    if context.manifest_dir is not None:
        candidates.append(
            sibling_kernel_dir(context.manifest_dir, settings.kernel_dir_name)
        )
    if settings.kernel_src_dir is not None:
        candidates.append(settings.kernel_src_dir)

    if settings.offline:
        raise SourceNotFound(
            "No local kernel source found and downloads are disabled (offline mode)",
            candidates=candidates,
        )
    if context.out_dir is None:
        raise IncompleteBuildContext(
            "OUT_DIR is required to download the kernel source"
        )

    manage_client = client is None
    http_client: httpx.Client = (
        httpx.Client(follow_redirects=True) if manage_client else client  # type: ignore[assignment]
    )

    try:
        src_dir = download_kernel_source(
            http_client,
            settings.kernel_version,
            context.out_dir,
            base_url=settings.download_base_url,
            expected_checksum=settings.kernel_archive_sha256,
            timeout=settings.download_timeout,
        )
    except (DownloadError, ExtractionError) as e:
        logger.error(
            "Failed to download kernel %s: %s", settings.kernel_version, e
        )
        raise SourceNotFound(
            f"No local kernel source found and download of kernel "
            f"{settings.kernel_version} failed: {e}",
            candidates=candidates,
        ) from e
    finally:
        if manage_client:
            http_client.close()

    candidates.append(src_dir)
    if not _has_manifest(src_dir):
        raise SourceNotFound(
            f"Downloaded kernel source {src_dir} has no {KERNEL_MANIFEST}",
            candidates=candidates,
        )

    return KernelSource(root=src_dir.resolve(), origin=SourceOrigin.DOWNLOADED)


__all__ = [
    "find_local_kernel_source",
    "locate_kernel_source",
    "sibling_kernel_dir",
]
