"""Tests for source/locator.py module."""

import io
import shutil
import tarfile

import httpx
import pytest
import respx

from hermit_build.context import load_build_context
from hermit_build.errors import SourceNotFound
from hermit_build.source.locator import (
    find_local_kernel_source,
    locate_kernel_source,
    sibling_kernel_dir,
)
from hermit_build.types import KernelSource, SourceOrigin


def release_tarball(version: str) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        content = b"[package]\nname = \"hermit-kernel\"\n"
        info = tarfile.TarInfo(f"kernel-{version}/Cargo.toml")
        info.size = len(content)
        tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class TestSiblingKernelDir:
    """Tests for sibling_kernel_dir function."""

    def test_replaces_final_component(self, tmp_path):
        """The crate directory name is replaced by the kernel directory name."""
        assert sibling_kernel_dir(tmp_path / "repo" / "hermit") == tmp_path / "repo" / "kernel"

    def test_custom_name(self, tmp_path):
        """The kernel directory name is configurable."""
        assert sibling_kernel_dir(tmp_path / "hermit", "libhermit-rs") == (
            tmp_path / "libhermit-rs"
        )


class TestKernelSource:
    """Tests for KernelSource construction."""

    def test_requires_manifest(self, tmp_path):
        """Construction fails without a manifest."""
        with pytest.raises(SourceNotFound):
            KernelSource(root=tmp_path)

    def test_paths(self, workspace):
        """Derived paths point into the kernel tree."""
        source = KernelSource(root=workspace / "kernel")
        assert source.manifest_path == workspace / "kernel" / "Cargo.toml"
        assert source.builtins_manifest == (
            workspace / "kernel" / "hermit-builtins" / "Cargo.toml"
        )
        assert source.toolchain_file == workspace / "kernel" / "rust-toolchain.toml"


class TestFindLocalKernelSource:
    """Tests for find_local_kernel_source function."""

    def test_sibling(self, context, settings, workspace):
        """The sibling kernel directory is selected when it has a manifest."""
        source = find_local_kernel_source(context, settings)
        assert source is not None
        assert source.root == (workspace / "kernel").resolve()
        assert source.origin == SourceOrigin.SIBLING

    def test_configured_dir(self, context, settings, workspace, tmp_path):
        """The configured directory is used when no sibling exists."""
        configured = tmp_path / "elsewhere" / "kernel"
        shutil.move(str(workspace / "kernel"), str(configured))
        settings = settings.model_copy(update={"kernel_src_dir": configured})

        source = find_local_kernel_source(context, settings)
        assert source is not None
        assert source.root == configured.resolve()
        assert source.origin == SourceOrigin.CONFIGURED

    def test_none(self, context, settings, workspace):
        """No local candidate gives None."""
        shutil.rmtree(workspace / "kernel")
        assert find_local_kernel_source(context, settings) is None


class TestLocateKernelSource:
    """Tests for locate_kernel_source function."""

    @respx.mock(assert_all_called=False)
    def test_sibling_without_network(self, context, settings, respx_mock):
        """A local tree is used without any network access."""
        route = respx_mock.get(url__regex=r".*")
        settings = settings.model_copy(update={"offline": False})

        source = locate_kernel_source(context, settings)

        assert source.origin == SourceOrigin.SIBLING
        assert not route.called
        assert not context.out_dir.exists()

    def test_offline_without_local_tree(self, context, settings, workspace):
        """Offline mode fails when no local tree exists."""
        shutil.rmtree(workspace / "kernel")
        with pytest.raises(SourceNotFound) as exc_info:
            locate_kernel_source(context, settings)
        assert "offline" in str(exc_info.value)
        assert workspace / "kernel" in exc_info.value.candidates

    @respx.mock
    def test_download_fallback(self, context, settings, workspace):
        """The release archive is downloaded into OUT_DIR as last resort."""
        shutil.rmtree(workspace / "kernel")
        respx.get("https://example.com/kernel/archive/v0.6.7.tar.gz").mock(
            return_value=httpx.Response(200, content=release_tarball("0.6.7"))
        )
        settings = settings.model_copy(update={"offline": False})

        with httpx.Client() as client:
            source = locate_kernel_source(context, settings, client=client)

        assert source.origin == SourceOrigin.DOWNLOADED
        assert source.root == (context.out_dir / "kernel-0.6.7").resolve()
        assert source.manifest_path.is_file()

    @respx.mock
    def test_download_failure(self, context, settings, workspace):
        """A failed download becomes SourceNotFound."""
        shutil.rmtree(workspace / "kernel")
        respx.get("https://example.com/kernel/archive/v0.6.7.tar.gz").mock(
            side_effect=httpx.ConnectError("network unreachable")
        )
        settings = settings.model_copy(update={"offline": False})

        with httpx.Client() as client, pytest.raises(SourceNotFound) as exc_info:
            locate_kernel_source(context, settings, client=client)
        assert "0.6.7" in str(exc_info.value)

    @respx.mock
    def test_download_without_manifest(self, context, settings, workspace):
        """An archive that does not contain a manifest is rejected."""
        shutil.rmtree(workspace / "kernel")
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            info = tarfile.TarInfo("kernel-0.6.7/README.md")
            info.size = 0
            tar.addfile(info, io.BytesIO(b""))
        respx.get("https://example.com/kernel/archive/v0.6.7.tar.gz").mock(
            return_value=httpx.Response(200, content=buffer.getvalue())
        )
        settings = settings.model_copy(update={"offline": False})

        with httpx.Client() as client, pytest.raises(SourceNotFound):
            locate_kernel_source(context, settings, client=client)

    def test_no_manifest_dir(self, settings, tmp_path):
        """Without CARGO_MANIFEST_DIR only the configured directory is tried."""
        context = load_build_context({"OUT_DIR": str(tmp_path / "out")})
        with pytest.raises(SourceNotFound) as exc_info:
            locate_kernel_source(context, settings)
        assert exc_info.value.candidates == []
