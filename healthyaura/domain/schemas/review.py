"""Pydantic schemas for reviews, flags and rating summaries."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from healthyaura.domain.schemas.common import WireModel


class Review(WireModel):
    id: int
    eatery_id: Optional[int] = None
    eatery_name: Optional[str] = None
    author_id: Optional[int] = Field(default=None, alias="userId")
    author_alias: Optional[str] = None
    health_score: int
    hygiene_score: int
    text_feedback: str = ""
    photos: list[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_own_review: bool = False

    @field_validator("photos", mode="before")
    @classmethod
    def _photos_default(cls, value):
        return value or []

    @field_validator("is_own_review", mode="before")
    @classmethod
    def _own_default(cls, value):
        return bool(value)


class ReviewDraft(WireModel):
    """Validated outbound body for create and update."""

    health_score: int
    hygiene_score: int
    text_feedback: str
    photos: list[str] = []


class RatingSummary(WireModel):
    average_health_score: Optional[float] = None
    average_hygiene_score: Optional[float] = None
    total_reviews: int = 0

    @field_validator("total_reviews", mode="before")
    @classmethod
    def _count_default(cls, value):
        return value or 0


class ReviewSnapshot(WireModel):
    """Review list and rating summary of one eatery, fetched and stored together."""

    eatery_id: int
    reviews: list[Review]
    summary: RatingSummary
    fetched_at: datetime


class FlagStatus(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"

    @property
    def is_terminal(self) -> bool:
        return self is not FlagStatus.PENDING


class ResolveAction(str, Enum):
    REMOVE = "REMOVE"
    DISMISS = "DISMISS"

    @property
    def resulting_status(self) -> FlagStatus:
        return FlagStatus.RESOLVED if self is ResolveAction.REMOVE else FlagStatus.DISMISSED


class FlagRequest(WireModel):
    reason: str


class Flag(WireModel):
    id: Optional[int] = None
    review_id: Optional[int] = None
    reason: str = ""
    status: FlagStatus = FlagStatus.PENDING
    resolve_action: Optional[ResolveAction] = None
    admin_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def _status_upper(cls, value):
        if isinstance(value, FlagStatus):
            return value
        return str(value or FlagStatus.PENDING.value).upper()
