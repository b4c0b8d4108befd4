"""
==============================================================================
Configuration Package
==============================================================================

Centralized configuration management using Pydantic Settings.

Usage:
------
    from exam_scanner.config import get_settings

    settings = get_settings()
    print(settings.database_url)
    print(settings.scan_timeout_seconds)

==============================================================================
"""

from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
