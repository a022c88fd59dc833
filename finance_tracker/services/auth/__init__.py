"""Authentication services package."""

from finance_tracker.services.auth.interface import (
    AuthenticationError,
    AuthProviderInterface,
    AuthSession,
    AuthUser,
)
from finance_tracker.services.auth.firebase_auth import FirebaseAuthService

__all__ = [
    "AuthenticationError",
    "AuthProviderInterface",
    "AuthSession",
    "AuthUser",
    "FirebaseAuthService",
]
