"""
Core module initialization.
Exports configuration and logging utilities.
"""

from quickbite.core.config import (
    get_settings,
    setup_logging,
    Settings,
    EnvironmentMode,
    FailurePolicy,
)

__all__ = ["get_settings", "setup_logging", "Settings", "EnvironmentMode", "FailurePolicy"]
