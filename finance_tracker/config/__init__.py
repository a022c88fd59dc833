"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    FirebaseAuthSettings,
    FirestoreSettings,
    Settings,
    configuration_problems,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "FirebaseAuthSettings",
    "FirestoreSettings",
    "Settings",
    "configuration_problems",
    "get_settings",
    "validate_all_settings",
]
