# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for ciflow.
"""

from core.config.defaults import (
    SchedulerDefaults,
    ExecutorDefaults,
    MatrixDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "SchedulerDefaults",
    "ExecutorDefaults",
    "MatrixDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
