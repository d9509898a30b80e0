"""
Configuration module: Settings and logging.
"""

from match_shared.config.settings import settings, get_settings
from match_shared.config.logging import get_logger, setup_logging, mask_email

__all__ = [
    # settings
    "settings",
    "get_settings",
    # logging
    "get_logger",
    "setup_logging",
    "mask_email",
]
