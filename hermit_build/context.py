"""Construction of the BuildContext from the Cargo build-script environment.

This is the only place that reads the environment variables Cargo sets for
a build script. Everything downstream receives the resulting BuildContext.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from hermit_build.features import FEATURE_ENV_PREFIX, normalize_feature
from hermit_build.types import BuildContext

# Cargo build-script environment
TARGET_OS_VAR = "CARGO_CFG_TARGET_OS"
TARGET_ARCH_VAR = "CARGO_CFG_TARGET_ARCH"
PROFILE_VAR = "PROFILE"
OUT_DIR_VAR = "OUT_DIR"
MANIFEST_DIR_VAR = "CARGO_MANIFEST_DIR"
TOOLCHAIN_HOME_VAR = "CARGO_HOME"
CFG_FEATURE_VAR = "CARGO_CFG_FEATURE"
DOCS_RS_VAR = "DOCS_RS"

# Value of CARGO_CFG_FEATURE during a clippy run
LINT_CFG_FEATURE = "cargo-clippy"


def _optional_path(value: str | None) -> Path | None:
    if not value:
        return None
    return Path(value)


def enabled_flags_from_env(environ: Mapping[str, str]) -> frozenset[str]:
    """Collect the enabled features from CARGO_FEATURE_* variables.

    Args:
        environ: Environment mapping.

    Returns:
        Normalized feature names (e.g. 'pci-ids' for CARGO_FEATURE_PCI_IDS).
    """
    return frozenset(
        normalize_feature(key[len(FEATURE_ENV_PREFIX) :])
        for key in environ
        if key.startswith(FEATURE_ENV_PREFIX) and len(key) > len(FEATURE_ENV_PREFIX)
    )


def load_build_context(environ: Mapping[str, str] | None = None) -> BuildContext:
    """Snapshot the build-script environment into a BuildContext.

    Args:
        environ: Environment mapping; uses os.environ if not provided.

    Returns:
        Immutable BuildContext.
    """
    if environ is None:
        environ = os.environ
    snapshot = dict(environ)

    return BuildContext(
        target_os=snapshot.get(TARGET_OS_VAR, ""),
        target_arch=snapshot.get(TARGET_ARCH_VAR, ""),
        profile=snapshot.get(PROFILE_VAR, ""),
        enabled_flags=enabled_flags_from_env(snapshot),
        out_dir=_optional_path(snapshot.get(OUT_DIR_VAR)),
        manifest_dir=_optional_path(snapshot.get(MANIFEST_DIR_VAR)),
        toolchain_home=_optional_path(snapshot.get(TOOLCHAIN_HOME_VAR)),
        is_lint=snapshot.get(CFG_FEATURE_VAR) == LINT_CFG_FEATURE,
        is_docs=DOCS_RS_VAR in snapshot,
        environ=snapshot,
    )


__all__ = [
    "LINT_CFG_FEATURE",
    "enabled_flags_from_env",
    "load_build_context",
]
