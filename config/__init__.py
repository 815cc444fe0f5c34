"""
Configuration module.

Exports:
    settings: Application settings instance
    get_settings: Function to get settings (cached)
    get_supabase_client: Cached Supabase client for the country store
    configure_logging: structlog setup for entry points
"""

from config.settings import settings, get_settings, Settings
from config.database import (
    get_supabase_client,
    DatabaseError,
    ConnectionError
)
from config.logging import configure_logging

__all__ = [
    # Settings
    "settings",
    "get_settings",
    "Settings",

    # Database
    "get_supabase_client",
    "DatabaseError",
    "ConnectionError",

    # Logging
    "configure_logging",
]
