"""
Configuration module: Settings, logging, constants.
"""

from crud_shared.config.settings import Settings, get_settings, settings
from crud_shared.config.logging import get_logger, setup_logging
from crud_shared.config.constants import (
    ROLE_SUPER_ADMIN,
    Buttons,
    CsrfIntention,
    FlashLevel,
    Limits,
)

__all__ = [
    # settings
    "Settings",
    "get_settings",
    "settings",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "ROLE_SUPER_ADMIN",
    "Buttons",
    "CsrfIntention",
    "FlashLevel",
    "Limits",
]
