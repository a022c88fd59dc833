"""
Profile Service

Per-user display preferences (theme, currency) live in one record per
user in the `users` collection, keyed by the user ID. They are loaded
once per session and passed down explicitly; nothing here is global.
"""

from typing import Optional, Union

from pydantic import ValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.formatting import CURRENCIES
from finance_tracker.ledger.errors import LedgerValidationError
from finance_tracker.models import AuditEventType, Theme, UserProfile, ValidationIssue
from finance_tracker.services.storage import Collections, EntityStoreInterface


class ProfileService:
    """Load-or-create and update of UserProfile records."""

    def __init__(
        self,
        store: EntityStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app

    async def load_profile(self, user_id: str) -> UserProfile:
        """
        The user's profile; created with the default theme and currency
        on first load.
        """
        record = await self._store.get(Collections.USERS, user_id)
        if record is not None:
            return UserProfile.model_validate(record)

        profile = UserProfile(
            theme=self._settings.default_theme,
            currency=self._settings.default_currency,
        )
        await self._store.set(Collections.USERS, user_id, profile.to_document())
        await self._audit_logger.log_profile_changed(
            event_type=AuditEventType.PROFILE_CREATED,
            user_id=user_id,
            changes={"theme": profile.theme.value, "currency": profile.currency},
        )
        return profile

    async def update_profile(
        self,
        user_id: str,
        theme: Union[Theme, str, None] = None,
        currency: Optional[str] = None,
    ) -> UserProfile:
        """
        Change theme and/or currency.

        Raises:
            LedgerValidationError: Unknown theme or currency
        """
        current = await self.load_profile(user_id)
        changes = {}
        if theme is not None:
            changes["theme"] = theme
        if currency is not None:
            changes["currency"] = currency
            if currency.upper() not in CURRENCIES:
                raise LedgerValidationError([ValidationIssue(
                    field="currency",
                    issue_type="invalid_value",
                    message=f"Unsupported currency: {currency}",
                    severity="error",
                    suggested_fix=f"Choose one of {', '.join(CURRENCIES)}",
                )])

        if not changes:
            return current

        try:
            profile = UserProfile.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise LedgerValidationError.from_pydantic(e)

        await self._store.set(Collections.USERS, user_id, profile.to_document())
        await self._audit_logger.log_profile_changed(
            event_type=AuditEventType.PROFILE_UPDATED,
            user_id=user_id,
            changes={"theme": profile.theme.value, "currency": profile.currency},
        )
        return profile
