"""Tests for the startup configuration check."""

import pytest

from finance_tracker.config import configuration_problems
from finance_tracker.config.settings import validate_all_settings

CONFIG_VARS = (
    "FIRESTORE_PROJECT_ID",
    "FIRESTORE_CREDENTIALS_PATH",
    "FIREBASE_AUTH_API_KEY",
    "STORAGE_BACKEND",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No configuration variables and no .env file in the working directory."""
    monkeypatch.chdir(tmp_path)
    for name in CONFIG_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def credentials_file(clean_env):
    path = clean_env / "service-account.json"
    path.write_text("{}")
    return path


class TestValidateAllSettings:
    """Tests for validate_all_settings."""

    def test_missing_keys_are_reported(self, clean_env):
        """Test required keys that are not set show up with an error."""
        status = validate_all_settings()

        assert status["firestore"] is False
        assert status["firebase_auth"] is False
        assert status["app"] is True
        assert "api_key" in status["firebase_auth_error"]
        assert "project_id" in status["firestore_error"]


class TestConfigurationProblems:
    """Tests for configuration_problems."""

    def test_firestore_required_for_firestore_backend(self, clean_env, monkeypatch):
        monkeypatch.setenv("FIREBASE_AUTH_API_KEY", "key")

        problems = configuration_problems()

        assert list(problems) == ["firestore"]

    def test_firestore_not_required_for_memory_backend(self, clean_env, monkeypatch):
        """Test the in-memory backend only needs the auth key."""
        monkeypatch.setenv("STORAGE_BACKEND", "memory")

        assert list(configuration_problems()) == ["firebase_auth"]

        monkeypatch.setenv("FIREBASE_AUTH_API_KEY", "key")
        assert configuration_problems() == {}

    def test_fully_configured(self, credentials_file, monkeypatch):
        monkeypatch.setenv("FIREBASE_AUTH_API_KEY", "key")
        monkeypatch.setenv("FIRESTORE_PROJECT_ID", "demo-project")
        monkeypatch.setenv("FIRESTORE_CREDENTIALS_PATH", str(credentials_file))

        assert configuration_problems() == {}

    def test_invalid_app_settings(self, clean_env, monkeypatch):
        """Test a bad app value is reported and Firestore is not checked."""
        monkeypatch.setenv("FIREBASE_AUTH_API_KEY", "key")
        monkeypatch.setenv("STORAGE_BACKEND", "sqlite")

        problems = configuration_problems()

        assert list(problems) == ["app"]
        assert "storage_backend" in problems["app"]
