"""
Unblocker utilities module.
"""

from unblocker.utils.config import Settings, get_project_root, get_settings
from unblocker.utils.logging import (
    LogContext,
    bind_context,
    configure_logging,
    get_logger,
    unbind_context,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "get_project_root",
    # Logging
    "get_logger",
    "configure_logging",
    "bind_context",
    "unbind_context",
    "LogContext",
]
