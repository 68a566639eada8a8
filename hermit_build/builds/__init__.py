"""Kernel build module.

This module handles:
- Running the nested kernel build
- Locating the compiled archive
- Listing the path dependencies to watch for changes
"""

from hermit_build.builds.backend import BuildBackend, BuildRequest, CargoBackend

__all__ = ["BuildBackend", "BuildRequest", "CargoBackend"]
