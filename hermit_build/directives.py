"""Cargo build-script directives.

Cargo reads directives from the build script's stdout, one per line, in the
form `cargo:<key>=<value>`. Nothing else may be written to that stream.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

DIRECTIVE_PREFIX = "cargo:"


class DirectiveWriter:
    """Writes directives to a text stream and keeps a record of them."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream
        self.emitted: list[str] = []

    @property
    def stream(self) -> TextIO:
        # Resolved lazily so that redirected stdout (tests, CLI runners) is honoured
        return self._stream if self._stream is not None else sys.stdout

    def emit(self, key: str, value: str) -> None:
        line = f"{DIRECTIVE_PREFIX}{key}={value}"
        self.emitted.append(line)
        print(line, file=self.stream, flush=True)

    def link_search(self, lib_dir: Path, kind: str = "native") -> None:
        self.emit("rustc-link-search", f"{kind}={lib_dir}")

    def link_lib(self, name: str, kind: str = "static") -> None:
        self.emit("rustc-link-lib", f"{kind}={name}")

    def rerun_if_changed(self, path: Path | str) -> None:
        self.emit("rerun-if-changed", str(path))

    def rerun_if_env_changed(self, var: str) -> None:
        self.emit("rerun-if-env-changed", var)

    def warning(self, message: str) -> None:
        self.emit("warning", message)


__all__ = ["DIRECTIVE_PREFIX", "DirectiveWriter"]
