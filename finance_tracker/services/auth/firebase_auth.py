"""
Firebase Authentication via the Identity Toolkit REST API

DESIGN DECISION: We talk to Identity Toolkit directly over HTTPS instead
of pulling in an admin SDK. The admin SDKs mint and verify tokens for
servers; signing a *user* in with email/password or a Google ID token is
exactly what the REST endpoints do.

Error messages from the provider (EMAIL_NOT_FOUND, INVALID_PASSWORD,
EMAIL_EXISTS, ...) are passed to the caller verbatim.
"""

from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx
import structlog

from finance_tracker.config import FirebaseAuthSettings, get_settings
from finance_tracker.models.audit import AuditEventType
from finance_tracker.services.auth.interface import (
    AuthenticationError,
    AuthProviderInterface,
    AuthSession,
    AuthUser,
    SessionCallback,
)

if TYPE_CHECKING:
    from finance_tracker.audit import AuditLogger


logger = structlog.get_logger(__name__)


class FirebaseAuthService(AuthProviderInterface):
    """
    Identity Toolkit client holding one session.

    Flow:
    1. sign_in_* / register → session stored, observers notified
    2. update_profile / change_password → operate on the session's token
    3. sign_out → session dropped, observers notified with None
    """

    def __init__(
        self,
        settings: Optional[FirebaseAuthSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        audit_logger: Optional["AuditLogger"] = None,
    ):
        self._settings = settings or get_settings().firebase_auth
        self._http = http_client or httpx.AsyncClient(timeout=self._settings.timeout_seconds)
        self._audit_logger = audit_logger
        self._session: Optional[AuthSession] = None
        self._observers: list[SessionCallback] = []

    @property
    def current_session(self) -> Optional[AuthSession]:
        return self._session

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _call(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to accounts:<endpoint> and return the JSON body."""
        url = f"{self._settings.base_url}/accounts:{endpoint}"
        try:
            response = await self._http.post(
                url,
                params={"key": self._settings.api_key},
                json=payload,
            )
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Could not reach the identity service: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_error:
            error = body.get("error", {}) if isinstance(body, dict) else {}
            message = error.get("message") or f"HTTP {response.status_code}"
            raise AuthenticationError(message, code=str(error.get("code", response.status_code)))

        return body

    # -------------------------------------------------------------------------
    # Session handling
    # -------------------------------------------------------------------------

    def _session_from(self, body: dict[str, Any]) -> AuthSession:
        return AuthSession(
            user=AuthUser(
                uid=body["localId"],
                email=body.get("email"),
                display_name=body.get("displayName") or None,
                photo_url=body.get("photoUrl") or None,
            ),
            id_token=body["idToken"],
            refresh_token=body.get("refreshToken"),
        )

    def _set_session(self, session: Optional[AuthSession]) -> None:
        self._session = session
        for callback in list(self._observers):
            try:
                callback(session)
            except Exception as e:
                logger.error("session_observer_failed", error=str(e))

    def _require_session(self) -> AuthSession:
        if self._session is None:
            raise AuthenticationError("User not authenticated")
        return self._session

    async def _audit(
        self,
        event_type: AuditEventType,
        user_id: Optional[str],
        method: str,
        error_message: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_auth_event(
                event_type=event_type,
                user_id=user_id,
                method=method,
                error_message=error_message,
            )

    async def _sign_in(self, method: str, endpoint: str, payload: dict[str, Any]) -> AuthSession:
        try:
            body = await self._call(endpoint, payload)
        except AuthenticationError as e:
            await self._audit(AuditEventType.AUTH_FAILED, None, method, e.message)
            raise
        session = self._session_from(body)
        self._set_session(session)
        await self._audit(AuditEventType.USER_SIGNED_IN, session.user.uid, method)
        return session

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        return await self._sign_in("password", "signInWithPassword", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })

    async def register_with_password(self, email: str, password: str) -> AuthSession:
        return await self._sign_in("register", "signUp", {
            "email": email,
            "password": password,
            "returnSecureToken": True,
        })

    async def sign_in_with_google(self, google_id_token: str) -> AuthSession:
        return await self._sign_in("google", "signInWithIdp", {
            "postBody": f"id_token={google_id_token}&providerId=google.com",
            "requestUri": self._settings.federated_request_uri,
            "returnIdpCredential": True,
            "returnSecureToken": True,
        })

    async def sign_out(self) -> None:
        session = self._session
        self._set_session(None)
        if session:
            await self._audit(AuditEventType.USER_SIGNED_OUT, session.user.uid, "sign_out")

    async def update_profile(
        self,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> AuthUser:
        session = self._require_session()
        payload: dict[str, Any] = {"idToken": session.id_token, "returnSecureToken": False}
        if display_name is not None:
            payload["displayName"] = display_name.strip()
        if photo_url is not None:
            payload["photoUrl"] = photo_url

        body = await self._call("update", payload)

        user = session.user.model_copy(update={
            "display_name": body.get("displayName", session.user.display_name) or None,
            "photo_url": body.get("photoUrl", session.user.photo_url) or None,
        })
        self._set_session(session.model_copy(update={"user": user}))
        return user

    async def change_password(self, current_password: str, new_password: str) -> None:
        session = self._require_session()
        if not session.user.email:
            raise AuthenticationError("Password change requires an email account")

        # Re-authenticate first; a stale token would be rejected anyway
        fresh = await self._call("signInWithPassword", {
            "email": session.user.email,
            "password": current_password,
            "returnSecureToken": True,
        })
        body = await self._call("update", {
            "idToken": fresh["idToken"],
            "password": new_password,
            "returnSecureToken": True,
        })

        self._set_session(session.model_copy(update={
            "id_token": body.get("idToken", fresh["idToken"]),
            "refresh_token": body.get("refreshToken", fresh.get("refreshToken")),
        }))

    def on_session_changed(self, callback: SessionCallback) -> Callable[[], None]:
        self._observers.append(callback)
        callback(self._session)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    async def aclose(self) -> None:
        await self._http.aclose()
