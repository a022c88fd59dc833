"""Tests for the Streamlit front end, run headless through AppTest."""

from pathlib import Path
from types import SimpleNamespace

import pytest
import streamlit as st
from streamlit.testing.v1 import AppTest

from finance_tracker.orchestrator import LedgerSession
from finance_tracker.services.auth import AuthSession, AuthUser
from finance_tracker.services.storage import StorageError

APP_PATH = str(Path(__file__).resolve().parent.parent / "app" / "main.py")


@pytest.fixture
def app_env(monkeypatch, tmp_path):
    """In-memory backend, an auth key, and no stray .env file."""
    monkeypatch.chdir(tmp_path)
    for name in ("FIRESTORE_PROJECT_ID", "FIRESTORE_CREDENTIALS_PATH", "ACTIVITY_WINDOW_DAYS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("FIREBASE_AUTH_API_KEY", "test-key")
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    st.cache_resource.clear()
    yield monkeypatch
    st.cache_resource.clear()


def _signed_in_app() -> AppTest:
    app = AppTest.from_file(APP_PATH, default_timeout=30)
    user = AuthUser(uid="u1", email="ana@example.com")
    app.session_state["auth"] = SimpleNamespace(
        current_session=AuthSession(user=user, id_token="token"),
    )
    return app


class TestConfigurationPage:
    """Tests for the missing-configuration screen."""

    def test_missing_auth_key(self, app_env):
        """Test the app explains what is missing instead of starting."""
        app_env.delenv("FIREBASE_AUTH_API_KEY")

        app = AppTest.from_file(APP_PATH, default_timeout=30).run()

        assert not app.exception
        assert app.title[0].value == "⚙️ Configuration needed"
        assert len(app.error) == 1
        assert app.error[0].value.startswith("❌ Firebase Authentication")


class TestDashboard:
    """Tests for the signed-in dashboard."""

    def test_activity_window_follows_settings(self, app_env):
        """Test the chart heading and empty message use the configured window."""
        app_env.setenv("ACTIVITY_WINDOW_DAYS", "14")

        app = _signed_in_app().run()

        assert not app.exception
        assert "📈 Activity (last 14 days)" in [s.value for s in app.subheader]
        assert "No transactions in the last 14 days." in [i.value for i in app.info]

    def test_session_start_failure_shows_message(self, app_env):
        """Test a storage failure on start is shown, not raised."""
        async def failing_start(self):
            raise StorageError("backend down")

        app_env.setattr(LedgerSession, "start", failing_start)

        app = _signed_in_app().run()

        assert not app.exception
        assert [e.value for e in app.error] == [
            "Something went wrong talking to the server. Please try again."
        ]
