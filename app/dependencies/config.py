"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache

from fastapi import Depends

from app.core.config import AppSettings, get_settings, is_ebay_configured


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


def get_ebay_configured() -> bool:
    """Whether eBay credentials are present; never raises."""
    return is_ebay_configured(get_app_settings().ebay)


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_ebay_configured"]
