"""Configuration module for invoice-desk."""

from invoice_desk.config.logging import configure_logging, get_logger
from invoice_desk.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]
