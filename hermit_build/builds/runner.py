"""Build runner for the nested kernel build.

This module handles:
- Composing the `cargo run --package=xtask -- build` command
- Executing the build with subprocess in the kernel source directory
- Capturing stdout/stderr to a log file

The build has no timeout and is never retried; any failure is fatal.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path

from hermit_build.errors import NestedBuildFailed
from hermit_build.features import translate_profile
from hermit_build.types import BuildInvocation, FeatureSet

logger = logging.getLogger(__name__)

# Package of the kernel's task runner
XTASK_PACKAGE = "xtask"


def compose_build_command(
    cargo: Path | str,
    target_dir: Path,
    arch: str,
    profile: str,
    features: FeatureSet,
    extra_flags: Sequence[str] = (),
) -> list[str]:
    """Compose the kernel build command.

    Args:
        cargo: Path to the cargo executable.
        target_dir: Target directory shared by xtask and the kernel build.
        arch: Target architecture.
        profile: Cargo profile of the outer build (translated here).
        features: Kernel features to enable.
        extra_flags: Dedicated flags such as `--instrument-mcount`.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    cmd = [
        str(cargo),
        "run",
        f"--package={XTASK_PACKAGE}",
        "--target-dir",
        str(target_dir),
        "--",
        "build",
        "--arch",
        arch,
        "--profile",
        translate_profile(profile),
        "--target-dir",
        str(target_dir),
    ]

    cmd.extend(extra_flags)

    # Features are controlled exclusively by the outer build
    cmd.append("--no-default-features")
    if features:
        cmd.extend(["--features", features.as_arg()])

    return cmd


def describe_exit(exit_code: int) -> str:
    """Describe a process exit code for error messages."""
    if exit_code < 0:
        return f"terminated by signal {-exit_code}"
    return f"exit code {exit_code}"


def run_nested_build(
    command: list[str],
    cwd: Path,
    env: Mapping[str, str],
    log_path: Path,
) -> BuildInvocation:
    """Execute the nested kernel build.

    Output of the build goes to `log_path`, never to this process's stdout.

    Args:
        command: Command from compose_build_command.
        cwd: Kernel source root.
        env: Isolated environment for the build.
        log_path: Path of the build log file.

    Returns:
        BuildInvocation of the successful build.

    Raises:
        NestedBuildFailed: If the build cannot start or does not exit zero.
    """
    cmd_str = shlex.join(command)
    logger.info("Executing kernel build: %s", cmd_str)
    logger.info("Working directory: %s", cwd)

    log_path.parent.mkdir(parents=True, exist_ok=True)
    started_at = datetime.now(timezone.utc)

    try:
        with log_path.open("w") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# CWD: {cwd}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.flush()

            result = subprocess.run(
                command,
                cwd=cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                env=dict(env),
                check=False,
            )
    except OSError as e:
        message = f"Failed to start kernel build: {e}"
        logger.error(message)
        raise NestedBuildFailed(message, log_path=log_path) from e

    exit_code = result.returncode
    finished_at = datetime.now(timezone.utc)

    with log_path.open("a") as log_file:
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Exit code: {exit_code}\n")
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"# Duration: {duration:.1f}s\n")

    if exit_code != 0:
        message = f"Kernel build failed with {describe_exit(exit_code)}"
        logger.error("%s. See log: %s", message, log_path)
        raise NestedBuildFailed(
            f"{message}. See log: {log_path}",
            exit_code=exit_code,
            log_path=log_path,
        )

    return BuildInvocation(
        command=command,
        cwd=cwd,
        exit_code=exit_code,
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
    )


__all__ = [
    "XTASK_PACKAGE",
    "compose_build_command",
    "describe_exit",
    "run_nested_build",
]
