# ============================================================================
# VERSION - CIFLOW
# ============================================================================
"""
Version information for ciflow.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch
# Criteria for 0.3 - per-cell allow-failure overrides
__version__ = "0.3.1"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-19"

CODENAME = "Matrix Gate"
