"""Configuration and logging."""

from .config import ConfigurationError, Environment, Platform, Settings, settings
from .logging_config import session_id_var, setup_logging

__all__ = [
    "ConfigurationError",
    "Environment",
    "Platform",
    "Settings",
    "settings",
    "session_id_var",
    "setup_logging",
]
