"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.

Per-user preferences (theme, currency) are NOT configuration; they live
in the user's profile document and travel with the session.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FirestoreSettings(BaseSettings):
    """Cloud Firestore document database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIRESTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    project_id: str = Field(
        ...,
        description="Google Cloud project that hosts the Firestore database"
    )
    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    database: str = Field(
        default="(default)",
        description="Firestore database ID"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class FirebaseAuthSettings(BaseSettings):
    """Firebase Authentication (Identity Toolkit) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Firebase Web API key"
    )
    base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Identity Toolkit REST endpoint"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="HTTP timeout for identity requests"
    )
    federated_request_uri: str = Field(
        default="http://localhost",
        description="Request URI reported for federated (Google) sign-in"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: str = Field(
        default="firestore",
        pattern="^(firestore|memory)$",
        description="Entity store backend"
    )
    persist_audit_events: bool = Field(
        default=True,
        description="Write audit events to the audit_events collection"
    )

    # Profile defaults for first sign-in
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency assigned to new profiles"
    )
    default_theme: str = Field(
        default="dark",
        pattern="^(dark|light)$",
        description="Theme assigned to new profiles"
    )

    # Dashboard
    activity_window_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Trailing window of the activity chart"
    )
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="How many transactions the dashboard lists"
    )

    # Validation thresholds
    large_amount_warning: float = Field(
        default=100000000.0,
        description="Amounts above this produce a non-blocking warning"
    )
    future_date_tolerance_days: int = Field(
        default=365,
        description="How many days in the future a transaction can be dated without a warning"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Loaded lazily to allow partial configuration

    @property
    def firestore(self) -> FirestoreSettings:
        return FirestoreSettings()

    @property
    def firebase_auth(self) -> FirebaseAuthSettings:
        return FirebaseAuthSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, Optional[object]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid} plus "<name>_error"
    entries for the ones that failed. Useful for startup checks.
    """
    results: dict[str, Optional[object]] = {}

    settings = get_settings()

    for name in ("firestore", "firebase_auth", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results


def configuration_problems() -> dict[str, str]:
    """
    Settings the app cannot start without, mapped to what is wrong.

    Firestore settings are only required when Firestore is the storage
    backend. An empty dict means the app is ready to run.
    """
    status = validate_all_settings()

    required = ["app", "firebase_auth"]
    if status["app"] and get_settings().app.storage_backend == "firestore":
        required.append("firestore")

    return {
        name: str(status.get(f"{name}_error", "Not configured"))
        for name in required
        if not status[name]
    }
