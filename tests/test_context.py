"""Tests for context.py and the BuildContext model."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from hermit_build.context import enabled_flags_from_env, load_build_context
from hermit_build.errors import IncompleteBuildContext
from hermit_build.types import BuildContext


class TestEnabledFlagsFromEnv:
    """Tests for enabled_flags_from_env function."""

    def test_collects_feature_variables(self):
        """CARGO_FEATURE_* variables become normalized flag names."""
        env = {
            "CARGO_FEATURE_TCP": "1",
            "CARGO_FEATURE_PCI_IDS": "1",
            "CARGO_FEATURE_RANDOMIZE_LAYOUT": "1",
            "CARGO_PKG_NAME": "hermit",
        }
        assert enabled_flags_from_env(env) == {"tcp", "pci-ids", "randomize-layout"}

    def test_ignores_bare_prefix(self):
        """A variable consisting of the prefix only is not a feature."""
        assert enabled_flags_from_env({"CARGO_FEATURE_": "1"}) == frozenset()


class TestLoadBuildContext:
    """Tests for load_build_context function."""

    def test_full_environment(self, build_env, tmp_path, cargo_home, workspace):
        """All build-script variables are captured."""
        context = load_build_context(build_env)

        assert context.target_os == "hermit"
        assert context.target_arch == "x86_64"
        assert context.profile == "debug"
        assert context.enabled_flags == {"tcp", "smp"}
        assert context.out_dir == tmp_path / "out"
        assert context.manifest_dir == workspace / "hermit"
        assert context.toolchain_home == cargo_home
        assert context.is_lint is False
        assert context.is_docs is False
        assert context.target_dir == tmp_path / "out" / "target"

    def test_lint_pass(self):
        """CARGO_CFG_FEATURE=cargo-clippy marks a lint-only pass."""
        context = load_build_context({"CARGO_CFG_FEATURE": "cargo-clippy"})
        assert context.is_lint is True

    def test_docs_pass(self):
        """DOCS_RS marks a documentation-only pass, whatever its value."""
        context = load_build_context({"DOCS_RS": ""})
        assert context.is_docs is True

    def test_empty_environment(self):
        """Missing variables yield empty values, not errors."""
        context = load_build_context({})
        assert context.target_os == ""
        assert context.out_dir is None
        assert context.enabled_flags == frozenset()

    def test_defaults_to_process_environment(self):
        """Without an argument, os.environ is read."""
        with patch.dict(os.environ, {"CARGO_CFG_TARGET_OS": "hermit"}):
            context = load_build_context()
        assert context.target_os == "hermit"

    def test_snapshot_is_detached(self, build_env):
        """Later changes to the source mapping do not leak into the context."""
        context = load_build_context(build_env)
        build_env["PROFILE"] = "release"
        assert context.profile == "debug"
        assert context.environ["PROFILE"] == "debug"


class TestBuildContext:
    """Tests for BuildContext model."""

    def test_frozen(self):
        """BuildContext cannot be modified after construction."""
        context = BuildContext(target_os="hermit")
        with pytest.raises(ValidationError):
            context.target_os = "linux"  # type: ignore[misc]

    def test_require_build_inputs_complete(self, context):
        """A complete context passes the check."""
        context.require_build_inputs()

    def test_require_build_inputs_missing(self):
        """Missing values are named in the error."""
        context = BuildContext(target_os="hermit", target_arch="x86_64")
        with pytest.raises(IncompleteBuildContext) as exc_info:
            context.require_build_inputs()
        assert "PROFILE" in str(exc_info.value)
        assert "OUT_DIR" in str(exc_info.value)
        assert exc_info.value.code == "incomplete_context"

    def test_target_dir_without_out_dir(self):
        """target_dir requires OUT_DIR."""
        with pytest.raises(IncompleteBuildContext):
            _ = BuildContext().target_dir

    def test_target_dir(self):
        """target_dir is OUT_DIR/target."""
        context = BuildContext(out_dir=Path("/out"))
        assert context.target_dir == Path("/out/target")
