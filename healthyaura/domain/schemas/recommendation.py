"""Pydantic schemas for home page recommendations."""

from typing import Optional

from pydantic import AliasChoices, Field, field_validator

from healthyaura.domain.schemas.common import WireModel


class Coordinates(WireModel):
    lat: float
    lng: float


class Recommendation(WireModel):
    id: int
    name: str
    address: Optional[str] = None
    full_address: Optional[str] = None
    # older backend builds sent dietaryTags
    tags: list[str] = Field(default=[], validation_alias=AliasChoices("tags", "dietaryTags"))
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance: Optional[float] = None
    reason: Optional[str] = None
    score: Optional[float] = None
    average_health: Optional[float] = None
    average_hygiene: Optional[float] = None
    review_count: int = 0

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_list(cls, value):
        if not value:
            return []
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        return list(value)

    @field_validator("review_count", mode="before")
    @classmethod
    def _count_default(cls, value):
        return value or 0


class Recommendations(WireModel):
    personalized: list[Recommendation] = []
    nearby: list[Recommendation] = []
    location: Optional[Coordinates] = None
