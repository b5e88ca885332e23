"""
Configuration module for the lodge chancellor backend.

Provides centralized configuration for attendance windows, the beneficence
ledger mirror and CORS.
"""

from backend.src.config.settings import AppSettings, get_settings, CHARITY_EDIT_POLICIES

__all__ = [
    "AppSettings",
    "get_settings",
    "CHARITY_EDIT_POLICIES",
]
