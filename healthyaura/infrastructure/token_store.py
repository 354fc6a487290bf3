"""Token store — persists the bearer token and the cached user snapshot."""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from healthyaura.config import Settings, get_settings
from healthyaura.domain.repositories.storage import SessionStorage
from healthyaura.domain.schemas.auth import UserProfile

logger = logging.getLogger(__name__)


class TokenStore:
    """Reads and writes the two session keys of a SessionStorage.

    The token and the user snapshot are always cleared together.
    """

    def __init__(self, storage: SessionStorage, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.storage = storage
        self.token_key = settings.TOKEN_STORAGE_KEY
        self.user_key = settings.USER_STORAGE_KEY

    def load_token(self) -> Optional[str]:
        token = self.storage.get(self.token_key)
        return token or None

    def save_token(self, token: str) -> None:
        self.storage.set(self.token_key, token)

    def has_profile(self) -> bool:
        return self.storage.get(self.user_key) is not None

    def load_profile(self) -> Optional[UserProfile]:
        """Return the cached profile, removing the entry when it cannot be used."""
        raw = self.storage.get(self.user_key)
        if raw is None:
            return None
        try:
            profile = UserProfile.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable cached user: {e.__class__.__name__}")
            self.storage.remove(self.user_key)
            return None
        if not profile.username.strip():
            logger.warning("Discarding cached user without a username")
            self.storage.remove(self.user_key)
            return None
        return profile

    def save_profile(self, profile: UserProfile) -> None:
        self.storage.set(self.user_key, json.dumps(profile.to_wire()))

    def clear(self) -> None:
        self.storage.remove(self.token_key)
        self.storage.remove(self.user_key)
