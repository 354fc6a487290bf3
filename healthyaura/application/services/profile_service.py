"""Profile service — preference, email and password edits for the signed-in user."""

from typing import Any, Optional

import structlog

from healthyaura.application.services.session_service import SessionManager
from healthyaura.core.exceptions import ValidationException
from healthyaura.domain.schemas.auth import (
    ChangePasswordRequest,
    UpdateEmailRequest,
    UpdatePreferencesRequest,
    UserProfile,
)

logger = structlog.get_logger(__name__)


class ProfileService:
    def __init__(self, session: SessionManager):
        self.session = session
        self.api = session.api

    async def get_profile(self) -> Optional[UserProfile]:
        """Latest profile; falls back to the cached one when the backend is unreachable."""
        self.session.require_user()
        return await self.session.refresh_profile()

    async def update_preferences(self, preferences: str) -> UserProfile:
        self.session.require_user()
        body = UpdatePreferencesRequest(preferences=preferences.strip())
        data = await self.api.put("/profile/me", json=body.to_wire())
        # older backends answer with an empty body
        return self._apply(data, {"preferences": body.preferences})

    async def update_email(self, email: str) -> UserProfile:
        self.session.require_user()
        email = email.strip()
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise ValidationException("Please enter a valid email address.", {"field": "email"})
        data = await self.api.put("/profile/me/email", json=UpdateEmailRequest(email=email).to_wire())
        return self._apply(data, {"email": email})

    async def change_password(self, password: str) -> None:
        self.session.require_user()
        if not password or not password.strip():
            raise ValidationException("Password cannot be empty.", {"field": "password"})
        await self.api.put("/profile/me/password", json=ChangePasswordRequest(password=password).to_wire())
        logger.info("Password changed", username=self.session.user.username)

    def _apply(self, data: Any, sent: dict[str, Any]) -> UserProfile:
        fields = dict(sent)
        if isinstance(data, dict):
            fields.update({k: v for k, v in data.items() if v is not None})
        profile = self.session.apply_profile(fields)
        logger.info("Profile updated", username=profile.username, fields=sorted(sent))
        return profile
