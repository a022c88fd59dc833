"""Tests for the Firebase auth service, against a mocked HTTP transport."""

import asyncio
import json

import httpx
import pytest

from finance_tracker.audit import AuditLogger
from finance_tracker.config import FirebaseAuthSettings
from finance_tracker.models import AuditEventType
from finance_tracker.services.auth import AuthenticationError, FirebaseAuthService
from finance_tracker.services.storage import Collections, EntityStoreAuditStorage, InMemoryEntityStore


SIGN_IN_BODY = {
    "localId": "uid-123",
    "email": "ana@example.com",
    "displayName": "",
    "idToken": "id-token-1",
    "refreshToken": "refresh-1",
    "expiresIn": "3600",
    "registered": True,
}


def _service(handler, audit_logger=None):
    settings = FirebaseAuthSettings(api_key="test-key")
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirebaseAuthService(settings=settings, http_client=client, audit_logger=audit_logger)


class Recorder:
    """Mock Identity Toolkit: records requests and replies per endpoint."""

    def __init__(self, replies):
        self.replies = replies
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit(":", 1)[-1]
        body = json.loads(request.content)
        self.requests.append((endpoint, dict(request.url.params), body))
        status, payload = self.replies[endpoint]
        return httpx.Response(status, json=payload)


class TestSignIn:
    """Tests for the sign-in flows."""

    def test_password_sign_in_sets_session(self):
        """Test a successful sign-in stores the session with a stable uid."""
        recorder = Recorder({"signInWithPassword": (200, SIGN_IN_BODY)})
        service = _service(recorder)

        session = asyncio.run(service.sign_in_with_password("ana@example.com", "secret"))

        assert session.user.uid == "uid-123"
        assert session.user.display_name is None
        assert service.current_session == session
        endpoint, params, body = recorder.requests[0]
        assert endpoint == "signInWithPassword"
        assert params == {"key": "test-key"}
        assert body == {"email": "ana@example.com", "password": "secret", "returnSecureToken": True}

    def test_provider_error_message_is_verbatim(self):
        """Test the provider's message reaches the caller unchanged."""
        recorder = Recorder({"signInWithPassword": (400, {
            "error": {"code": 400, "message": "INVALID_LOGIN_CREDENTIALS"}
        })})
        service = _service(recorder)

        with pytest.raises(AuthenticationError) as exc_info:
            asyncio.run(service.sign_in_with_password("ana@example.com", "wrong"))

        assert exc_info.value.message == "INVALID_LOGIN_CREDENTIALS"
        assert service.current_session is None

    def test_register(self):
        """Test registration uses accounts:signUp."""
        recorder = Recorder({"signUp": (200, SIGN_IN_BODY)})
        session = asyncio.run(_service(recorder).register_with_password("ana@example.com", "secret"))
        assert session.user.email == "ana@example.com"
        assert recorder.requests[0][0] == "signUp"

    def test_google_sign_in_posts_id_token(self):
        """Test federated sign-in forwards the Google ID token."""
        recorder = Recorder({"signInWithIdp": (200, {**SIGN_IN_BODY, "photoUrl": "https://img"})})
        session = asyncio.run(_service(recorder).sign_in_with_google("google-jwt"))
        _, _, body = recorder.requests[0]
        assert body["postBody"] == "id_token=google-jwt&providerId=google.com"
        assert session.user.photo_url == "https://img"
        assert session.user.avatar_url == "https://img"

    def test_sign_in_and_failure_are_audited(self):
        """Test sign-in and failed sign-in leave audit events."""
        store = InMemoryEntityStore()
        audit_logger = AuditLogger(EntityStoreAuditStorage(store))
        recorder = Recorder({"signInWithPassword": (200, SIGN_IN_BODY)})

        asyncio.run(_service(recorder, audit_logger).sign_in_with_password("ana@example.com", "x"))

        events = asyncio.run(store.find(Collections.AUDIT_EVENTS, "uid-123"))
        assert [event["eventType"] for event in events] == [AuditEventType.USER_SIGNED_IN.value]


class TestSessionObserver:
    """Tests for on_session_changed and sign_out."""

    def test_observer_sees_initial_state_and_changes(self):
        """Test the observer gets None, the session, then None again."""
        recorder = Recorder({"signInWithPassword": (200, SIGN_IN_BODY)})
        service = _service(recorder)
        seen = []

        unsubscribe = service.on_session_changed(
            lambda session: seen.append(session.user.uid if session else None)
        )
        asyncio.run(service.sign_in_with_password("ana@example.com", "secret"))
        asyncio.run(service.sign_out())
        unsubscribe()
        asyncio.run(service.sign_in_with_password("ana@example.com", "secret"))

        assert seen == [None, "uid-123", None]


class TestAccountUpdates:
    """Tests for profile and password updates."""

    def test_update_profile(self):
        """Test display name and avatar are sent with the session token."""
        recorder = Recorder({
            "signInWithPassword": (200, SIGN_IN_BODY),
            "update": (200, {"localId": "uid-123", "displayName": "Ana", "photoUrl": "https://avatar"}),
        })
        service = _service(recorder)
        asyncio.run(service.sign_in_with_password("ana@example.com", "secret"))

        user = asyncio.run(service.update_profile(display_name=" Ana ", photo_url="https://avatar"))

        _, _, body = recorder.requests[-1]
        assert body["idToken"] == "id-token-1"
        assert body["displayName"] == "Ana"
        assert user.display_name == "Ana"
        assert service.current_session.user.photo_url == "https://avatar"

    def test_update_profile_requires_session(self):
        """Test updates need a signed-in user."""
        with pytest.raises(AuthenticationError):
            asyncio.run(_service(Recorder({})).update_profile(display_name="x"))

    def test_change_password_reauthenticates_first(self):
        """Test the current password is checked before the new one is set."""
        recorder = Recorder({
            "signInWithPassword": (200, SIGN_IN_BODY),
            "update": (200, {"localId": "uid-123", "idToken": "id-token-2", "refreshToken": "refresh-2"}),
        })
        service = _service(recorder)
        asyncio.run(service.sign_in_with_password("ana@example.com", "old"))

        asyncio.run(service.change_password("old", "new-secret"))

        endpoints = [endpoint for endpoint, _, _ in recorder.requests]
        assert endpoints == ["signInWithPassword", "signInWithPassword", "update"]
        assert recorder.requests[1][2]["password"] == "old"
        assert recorder.requests[2][2]["password"] == "new-secret"
        assert service.current_session.id_token == "id-token-2"

    def test_change_password_with_wrong_current_password(self):
        """Test a failed re-authentication stops the change."""
        recorder = Recorder({"signInWithPassword": (200, SIGN_IN_BODY)})
        service = _service(recorder)
        asyncio.run(service.sign_in_with_password("ana@example.com", "old"))
        recorder.replies["signInWithPassword"] = (400, {"error": {"message": "INVALID_PASSWORD"}})

        with pytest.raises(AuthenticationError, match="INVALID_PASSWORD"):
            asyncio.run(service.change_password("wrong", "new-secret"))

        assert all(endpoint != "update" for endpoint, _, _ in recorder.requests)
