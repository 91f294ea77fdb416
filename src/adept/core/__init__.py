"""Core utilities for Adept."""

from adept.core.config import Settings, get_google_oauth_credentials, get_settings

__all__ = [
    "Settings",
    "get_google_oauth_credentials",
    "get_settings",
]
