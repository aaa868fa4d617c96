"""Utility functions for QuotaLens."""

from .i18n import Translator, default_translator
from .settings import SettingsManager

__all__ = [
    "Translator",
    "default_translator",
    "SettingsManager",
]
