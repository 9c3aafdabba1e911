"""Core utilities for the quotagate application."""

from quotagate.app.core.config import Settings, settings
from quotagate.app.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
]
