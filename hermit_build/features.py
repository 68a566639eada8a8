"""Translation of Cargo features and profiles to the kernel's vocabulary.

The kernel build tool has a closed set of features; only the names listed in
KERNEL_FEATURES are ever forwarded, in that order.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable

from hermit_build.types import FeatureSet

FEATURE_ENV_PREFIX = "CARGO_FEATURE_"

# Features forwarded to the kernel build, in canonical order
KERNEL_FEATURES: tuple[str, ...] = (
    "acpi",
    "dhcpv4",
    "fsgsbase",
    "pci",
    "pci-ids",
    "smp",
    "tcp",
    "udp",
    "trace",
    "vga",
    "rtl8139",
    "fs",
)

# Features that map to dedicated build flags instead of kernel features
EXTRA_FLAG_FEATURES: tuple[tuple[str, str], ...] = (
    ("instrument", "--instrument-mcount"),
    ("randomize-layout", "--randomize-layout"),
)

# Cargo's profile name mapped to the kernel build's profile name
_PROFILE_ALIASES = {"debug": "dev"}


def normalize_feature(name: str) -> str:
    """Normalize a feature name to lower-case, dash-separated form."""
    return name.strip().lower().replace("_", "-")


def feature_env_var(name: str) -> str:
    """Return the environment variable Cargo sets for an enabled feature.

    Args:
        name: Feature name (e.g. 'pci-ids').

    Returns:
        Variable name (e.g. 'CARGO_FEATURE_PCI_IDS').
    """
    return FEATURE_ENV_PREFIX + name.upper().replace("-", "_")


def translate_profile(profile: str) -> str:
    """Translate a Cargo profile to the kernel build's profile.

    'debug' becomes 'dev'; every other name passes through unchanged.
    """
    return _PROFILE_ALIASES.get(profile, profile)


def translate_features(
    enabled_flags: Collection[str],
    allow_list: Iterable[str] = KERNEL_FEATURES,
) -> FeatureSet:
    """Select the enabled features the kernel build understands.

    Args:
        enabled_flags: Enabled feature names, in any order or spelling.
        allow_list: Features known to the kernel build, in canonical order.

    Returns:
        FeatureSet in allow-list order. Unknown flags are dropped.
    """
    enabled = {normalize_feature(flag) for flag in enabled_flags}
    selected: list[str] = []
    for name in allow_list:
        if normalize_feature(name) in enabled and name not in selected:
            selected.append(name)
    return FeatureSet(tuple(selected))


def extra_build_flags(enabled_flags: Collection[str]) -> list[str]:
    """Return the dedicated build flags gated on individual features."""
    enabled = {normalize_feature(flag) for flag in enabled_flags}
    return [flag for feature, flag in EXTRA_FLAG_FEATURES if feature in enabled]


__all__ = [
    "EXTRA_FLAG_FEATURES",
    "FEATURE_ENV_PREFIX",
    "KERNEL_FEATURES",
    "extra_build_flags",
    "feature_env_var",
    "normalize_feature",
    "translate_features",
    "translate_profile",
]
