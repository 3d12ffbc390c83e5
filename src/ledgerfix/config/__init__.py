"""Configuration module for ledgerfix."""

from ledgerfix.config.logging import configure_logging
from ledgerfix.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]
