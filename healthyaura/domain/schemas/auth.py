"""Pydantic schemas for sessions, credentials and profiles."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import field_validator

from healthyaura.domain.schemas.common import WireModel


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"

    @classmethod
    def normalize(cls, value: Any) -> "Role":
        if isinstance(value, Role):
            return value
        text = str(value or "").strip().upper()
        if text.startswith("ROLE_"):
            text = text[len("ROLE_"):]
        return cls.ADMIN if text == cls.ADMIN.value else cls.USER


class LoginRequest(WireModel):
    username: str
    password: str


class SignupRequest(WireModel):
    username: str
    email: str
    password: str


class AuthResponse(WireModel):
    token: Optional[str] = None
    username: Optional[str] = None
    role: Role = Role.USER

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Role:
        return Role.normalize(value)


class Credential(WireModel):
    token: str
    issued_username: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class ProfileResponse(WireModel):
    username: Optional[str] = None
    email: Optional[str] = None
    preferences: Optional[str] = None
    total_points: Optional[int] = None


class UserProfile(WireModel):
    """The signed-in user as shown to the UI and cached on disk.

    Right after login only username, role and token are known (the basic
    record); the rest is merged in from /profile/me.
    """

    username: str
    role: Role = Role.USER
    token: Optional[str] = None
    email: Optional[str] = None
    preferences: Optional[str] = None
    # None until a profile or points response has reported a balance
    total_points: Optional[int] = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Role:
        return Role.normalize(value)

    @field_validator("total_points", mode="before")
    @classmethod
    def _non_negative_points(cls, value: Any) -> Optional[int]:
        if value is None:
            return None
        return max(int(value), 0)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def merged_with(self, profile: ProfileResponse) -> "UserProfile":
        updates = profile.model_dump(exclude_none=True)
        if not updates.get("username"):
            updates.pop("username", None)
        return self.model_validate({**self.model_dump(), **updates})


class LockoutRecord(WireModel):
    failed_attempts: int = 0
    locked_until: Optional[datetime] = None

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now


class UpdatePreferencesRequest(WireModel):
    preferences: str


class UpdateEmailRequest(WireModel):
    email: str


class ChangePasswordRequest(WireModel):
    password: str
