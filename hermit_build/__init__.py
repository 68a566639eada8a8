"""Hermit kernel build orchestration.

This package compiles the Hermit unikernel source tree into a static library
from inside a Cargo build script and emits the directives that link the
result into the enclosing build.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
