"""Rating service — averages and star buckets for review scores."""

import math
from enum import Enum
from typing import Iterable, Optional

from healthyaura.domain.schemas.review import RatingSummary, Review

HALF_STAR_FROM = 0.25
ROUND_UP_FROM = 0.75


class StarFill(str, Enum):
    FULL = "full"
    HALF = "half"
    EMPTY = "empty"


def stars_for(average: Optional[float], slots: int = 5) -> list[StarFill]:
    """Turn an average score into `slots` star buckets.

    A fraction in [0.25, 0.75) shows a half star; 0.75 and above rounds up to
    a full star. None, zero and negatives are all empty; anything at or above
    `slots` is all full.
    """
    if slots <= 0:
        return []
    if average is None or math.isnan(average) or average <= 0:
        return [StarFill.EMPTY] * slots
    if average >= slots:
        return [StarFill.FULL] * slots

    full = math.floor(average)
    fraction = average - full
    half = 0
    if fraction >= ROUND_UP_FROM:
        full += 1
    elif fraction >= HALF_STAR_FROM:
        half = 1

    full = min(full, slots)
    half = min(half, slots - full)
    return [StarFill.FULL] * full + [StarFill.HALF] * half + [StarFill.EMPTY] * (slots - full - half)


def average_score(scores: Iterable[Optional[int]]) -> Optional[float]:
    """Mean of the present scores, rounded to two decimals; None when there are none."""
    values = [s for s in scores if s is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def summarize(reviews: Iterable[Review]) -> RatingSummary:
    reviews = list(reviews)
    return RatingSummary(
        average_health_score=average_score(r.health_score for r in reviews),
        average_hygiene_score=average_score(r.hygiene_score for r in reviews),
        total_reviews=len(reviews),
    )


def stars_for_summary(summary: RatingSummary, slots: int = 5) -> dict[str, list[StarFill]]:
    return {
        "health": stars_for(summary.average_health_score, slots),
        "hygiene": stars_for(summary.average_hygiene_score, slots),
    }
