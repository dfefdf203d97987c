"""Utility module for common helper functions.

Import directly from submodules when needed:
  - from azmigrate.utils.metadata import ...
  - from azmigrate.utils.paths import ...
"""

# Only export module names, not individual functions
__all__ = [
    "logging_setup",
    "metadata",
    "paths",
]
