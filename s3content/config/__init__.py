"""
Application configuration using Pydantic settings.

Configuration comes from environment variables (or a static storage config
file) with sensible defaults. Supports mock modes for local development.
"""

from .settings import (
    ConfigError,
    Settings,
    get_settings,
    get_storage_config,
    load_storage_config,
)

__all__ = [
    "ConfigError",
    "Settings",
    "get_settings",
    "get_storage_config",
    "load_storage_config",
]
