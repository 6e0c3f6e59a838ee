"""
Core infrastructure: settings and logging
"""
from .config import PersonalizationSettings, settings, get_settings
from .logging import InterceptHandler, setup_logging

__all__ = [
    "PersonalizationSettings",
    "settings",
    "get_settings",
    "InterceptHandler",
    "setup_logging",
]
