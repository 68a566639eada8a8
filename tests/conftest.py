"""Shared fixtures for hermit_build tests."""

import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from hermit_build.config import Settings
from hermit_build.context import load_build_context
from hermit_build.toolchain import cargo_executable_name
from hermit_build.types import BuildContext


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings that never touch the network."""
    return Settings(
        _env_file=None,
        offline=True,
        download_base_url="https://example.com/kernel/archive",
    )


@pytest.fixture
def workspace(tmp_path) -> Path:
    """Checkout with the invoking crate and a sibling kernel tree."""
    root = tmp_path / "checkout"
    crate = root / "hermit"
    crate.mkdir(parents=True)
    (crate / "Cargo.toml").write_text('[package]\nname = "hermit"\n')

    kernel = root / "kernel"
    (kernel / "src").mkdir(parents=True)
    (kernel / "Cargo.toml").write_text('[package]\nname = "hermit-kernel"\n')
    (kernel / "Cargo.lock").write_text("")
    (kernel / "rust-toolchain.toml").write_text('[toolchain]\nchannel = "nightly"\n')

    builtins = kernel / "hermit-builtins"
    (builtins / "src").mkdir(parents=True)
    (builtins / "Cargo.toml").write_text('[package]\nname = "hermit-builtins"\n')
    return root


@pytest.fixture
def cargo_home(tmp_path) -> Path:
    """Toolchain home containing a cargo executable."""
    home = tmp_path / "cargo-home"
    bin_dir = home / "bin"
    bin_dir.mkdir(parents=True)
    cargo = bin_dir / cargo_executable_name()
    cargo.write_text("#!/bin/sh\n")
    cargo.chmod(0o755)
    return home


@pytest.fixture
def build_env(tmp_path, workspace, cargo_home) -> dict[str, str]:
    """Environment Cargo sets for a build script targeting Hermit."""
    return {
        "CARGO_CFG_TARGET_OS": "hermit",
        "CARGO_CFG_TARGET_ARCH": "x86_64",
        "PROFILE": "debug",
        "OUT_DIR": str(tmp_path / "out"),
        "CARGO_MANIFEST_DIR": str(workspace / "hermit"),
        "CARGO_HOME": str(cargo_home),
        "CARGO_FEATURE_TCP": "1",
        "CARGO_FEATURE_SMP": "1",
        "RUSTC": "rustc",
        "LD_LIBRARY_PATH": "/toolchain/lib",
        "PATH": "/usr/bin:/bin",
        "HOME": str(tmp_path),
    }


@pytest.fixture
def context(build_env) -> BuildContext:
    """BuildContext for a Hermit debug build with tcp and smp."""
    return load_build_context(build_env)


@pytest.fixture
def fake_cargo() -> Callable[..., Callable[..., subprocess.CompletedProcess]]:
    """Factory for a subprocess.run replacement that behaves like cargo.

    `cargo tree` prints the given listing; `cargo run` creates the archive
    under the requested target directory and exits with `build_exit`.
    """

    def factory(
        tree_output: str = "",
        build_exit: int = 0,
        create_artifact: bool = True,
    ) -> Callable[..., subprocess.CompletedProcess]:
        def fake_run(cmd, **kwargs):
            subcommand = cmd[1]
            if subcommand == "tree":
                return subprocess.CompletedProcess(cmd, 0, stdout=tree_output, stderr="")
            if subcommand == "run":
                if build_exit == 0 and create_artifact:
                    target_dir = Path(cmd[cmd.index("--target-dir") + 1])
                    arch = cmd[cmd.index("--arch") + 1]
                    profile = cmd[cmd.index("--profile") + 1]
                    if profile == "dev":
                        profile = "debug"
                    lib_dir = target_dir / arch / profile
                    lib_dir.mkdir(parents=True, exist_ok=True)
                    (lib_dir / "libhermit.a").write_bytes(b"!<arch>\n")
                return subprocess.CompletedProcess(cmd, build_exit)
            raise AssertionError(f"unexpected command: {cmd}")

        return fake_run

    return factory
