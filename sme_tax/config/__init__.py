"""Configuration module for the SME tax engine."""

from sme_tax.config.logging import configure_logging, get_logger
from sme_tax.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]
