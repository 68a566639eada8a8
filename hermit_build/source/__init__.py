"""Kernel source management.

This module handles:
- Locating a local kernel source tree
- Downloading and extracting a kernel release as fallback
"""

from hermit_build.source.locator import locate_kernel_source

__all__ = ["locate_kernel_source"]
