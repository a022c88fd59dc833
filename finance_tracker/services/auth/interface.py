"""
Abstract Authentication Interface

The identity provider is an external collaborator: we only consume it.
All the ledger needs from it is a stable user ID per session; the rest
(profile fields, password changes) is surfaced on the profile page.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from pydantic import BaseModel, Field


class AuthUser(BaseModel):
    """The signed-in user as reported by the identity provider."""

    uid: str = Field(
        ...,
        min_length=1,
        description="Stable user identifier; owner ID of every record"
    )
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def avatar_url(self) -> str:
        """Chosen avatar, or one generated from the email."""
        return self.photo_url or f"https://api.dicebear.com/7.x/initials/svg?seed={self.email}"


class AuthSession(BaseModel):
    """An authenticated session."""

    user: AuthUser
    id_token: str = Field(..., repr=False)
    refresh_token: Optional[str] = Field(default=None, repr=False)


SessionCallback = Callable[[Optional[AuthSession]], None]


class AuthProviderInterface(ABC):
    """
    Abstract interface for the identity provider.

    Every failing call raises AuthenticationError carrying the provider's
    own message, unchanged.
    """

    @property
    @abstractmethod
    def current_session(self) -> Optional[AuthSession]:
        pass

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        pass

    @abstractmethod
    async def register_with_password(self, email: str, password: str) -> AuthSession:
        pass

    @abstractmethod
    async def sign_in_with_google(self, google_id_token: str) -> AuthSession:
        """Federated sign-in with an ID token obtained from Google."""
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    async def update_profile(
        self,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> AuthUser:
        pass

    @abstractmethod
    async def change_password(self, current_password: str, new_password: str) -> None:
        """Re-authenticate with the current password, then set the new one."""
        pass

    @abstractmethod
    def on_session_changed(self, callback: SessionCallback) -> Callable[[], None]:
        """
        Observe sign-in/sign-out.

        The callback is called right away with the current session (or
        None) and after every change. Returns a function that stops
        observing.
        """
        pass


class AuthenticationError(Exception):
    """The identity provider refused the request."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
