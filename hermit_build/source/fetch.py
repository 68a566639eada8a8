"""Kernel source fetch module.

This module handles:
- URL construction for kernel release archives
- Download with optional checksum verification
- Extraction of the gzip tarball into the build output directory
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import tarfile
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path

import httpx

from hermit_build.config import DEFAULT_DOWNLOAD_BASE
from hermit_build.types import KERNEL_MANIFEST

logger = logging.getLogger(__name__)

# Timeout for downloads (seconds)
DOWNLOAD_TIMEOUT = 600

# Chunk size for downloads (bytes)
DOWNLOAD_CHUNK_SIZE = 64 * 1024  # 64 KB


class DownloadError(Exception):
    """Raised when the kernel archive download fails."""

    def __init__(self, message: str, code: str = "download_error") -> None:
        """Initialize DownloadError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


class VerificationError(DownloadError):
    """Raised when checksum verification fails."""

    def __init__(self, message: str, code: str = "verification_error") -> None:
        super().__init__(message, code)


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        """Initialize ExtractionError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


@dataclass
class DownloadResult:
    """Result of an archive download."""

    archive_path: Path
    checksum: str
    size_bytes: int


def kernel_src_dir_name(version: str) -> str:
    """Return the directory name a release tarball extracts to."""
    return f"kernel-{version}"


def build_kernel_archive_url(
    version: str,
    base_url: str = DEFAULT_DOWNLOAD_BASE,
) -> str:
    """Build the URL of a kernel release archive.

    Args:
        version: Kernel release version (e.g., '0.6.7').
        base_url: Base URL of the release archives.

    Returns:
        URL of the `.tar.gz` archive for the tag `v<version>`.
    """
    return f"{base_url.rstrip('/')}/v{version}.tar.gz"


def download_file(
    client: httpx.Client,
    url: str,
    dest_path: Path,
    expected_checksum: str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
    chunk_size: int = DOWNLOAD_CHUNK_SIZE,
) -> DownloadResult:
    """Stream a kernel archive to disk, hashing it on the way.

    Raises:
        DownloadError: If the request fails or returns an error status.
        VerificationError: If `expected_checksum` is given and does not match.
    """
    logger.info("Fetching kernel archive %s", url)
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    sha256 = hashlib.sha256()
    size = 0

    try:
        with client.stream("GET", url, timeout=timeout) as response:
            response.raise_for_status()
            with dest_path.open("wb") as f:
                for chunk in response.iter_bytes(chunk_size):
                    f.write(chunk)
                    sha256.update(chunk)
                    size += len(chunk)
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        raise DownloadError(
            f"Kernel archive {url} returned HTTP {status} {e.response.reason_phrase}",
            code="http_error",
        ) from e
    except httpx.TimeoutException as e:
        raise DownloadError(
            f"Kernel archive {url} timed out after {timeout}s", code="timeout"
        ) from e
    except httpx.RequestError as e:
        raise DownloadError(
            f"Kernel archive {url} unreachable: {e}", code="network_error"
        ) from e

    checksum = sha256.hexdigest()
    if expected_checksum and checksum != expected_checksum.lower():
        dest_path.unlink(missing_ok=True)
        raise VerificationError(
            f"Kernel archive {url} has SHA-256 {checksum}, "
            f"pinned value is {expected_checksum}"
        )

    logger.debug("Kernel archive is %d bytes, sha256 %s", size, checksum)
    return DownloadResult(archive_path=dest_path, checksum=checksum, size_bytes=size)


def _check_member(name: str) -> None:
    path = Path(name)
    if path.is_absolute() or ".." in path.parts:
        raise ExtractionError(
            f"Refusing to extract {name}: path escapes the output directory",
            code="path_traversal",
        )


def extract_archive(archive_path: Path, dest_dir: Path) -> None:
    """Extract a gzip tarball below `dest_dir`.

    Raises:
        ExtractionError: If the archive is corrupt, truncated, empty or
            contains a member outside `dest_dir`.
    """
    logger.info("Unpacking %s into %s", archive_path.name, dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:gz") as tar:
            members = tar.getmembers()
            if not members:
                raise ExtractionError(
                    f"Kernel archive {archive_path} is empty", code="empty_archive"
                )
            for member in members:
                _check_member(member.name)
            tar.extractall(dest_dir, filter="data")
    # Truncated gzip streams surface as EOFError or zlib.error
    except (tarfile.TarError, EOFError, zlib.error) as e:
        raise ExtractionError(
            f"Kernel archive {archive_path} is corrupt: {e}", code="tar_error"
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"Could not unpack {archive_path}: {e}", code="os_error"
        ) from e


def download_kernel_source(
    client: httpx.Client,
    version: str,
    out_dir: Path,
    base_url: str = DEFAULT_DOWNLOAD_BASE,
    expected_checksum: str | None = None,
    timeout: float = DOWNLOAD_TIMEOUT,
) -> Path:
    """Download and extract a kernel release into the output directory.

    A previous extraction is reused without touching the network, provided
    it contains the kernel manifest. Anything else left under the target
    directory is discarded before extracting again.

    Args:
        client: HTTPX client instance.
        version: Kernel release version.
        out_dir: Build-script output directory; the archive extracts here.
        base_url: Base URL of the release archives.
        expected_checksum: Expected SHA256 of the archive (optional).
        timeout: Download timeout in seconds.

    Returns:
        Path to the extracted `kernel-<version>` directory.

    Raises:
        DownloadError: If download fails.
        VerificationError: If checksum verification fails.
        ExtractionError: If extraction fails.
    """
    src_dir = out_dir / kernel_src_dir_name(version)
    if (src_dir / KERNEL_MANIFEST).is_file():
        logger.info("Reusing extracted kernel source at %s", src_dir)
        return src_dir
    if src_dir.exists():
        logger.warning("Discarding incomplete kernel source at %s", src_dir)
        shutil.rmtree(src_dir)

    url = build_kernel_archive_url(version, base_url)
    out_dir.mkdir(parents=True, exist_ok=True)

    with tempfile.NamedTemporaryFile(
        dir=out_dir, suffix=".tar.gz.tmp", delete=False
    ) as tmp_file:
        tmp_path = Path(tmp_file.name)

    try:
        download_file(
            client,
            url,
            tmp_path,
            expected_checksum=expected_checksum,
            timeout=timeout,
        )
        extract_archive(tmp_path, src_dir.parent)
    except ExtractionError:
        shutil.rmtree(src_dir, ignore_errors=True)
        raise
    finally:
        tmp_path.unlink(missing_ok=True)

    logger.info("Extracted kernel source to %s", src_dir)
    return src_dir


__all__ = [
    "DownloadError",
    "DownloadResult",
    "ExtractionError",
    "VerificationError",
    "build_kernel_archive_url",
    "download_file",
    "download_kernel_source",
    "extract_archive",
    "kernel_src_dir_name",
]
