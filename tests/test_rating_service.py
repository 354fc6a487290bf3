import pytest

from healthyaura.application.services.rating_service import (
    StarFill,
    average_score,
    stars_for,
    stars_for_summary,
    summarize,
)
from healthyaura.domain.schemas.review import RatingSummary, Review

FULL, HALF, EMPTY = StarFill.FULL, StarFill.HALF, StarFill.EMPTY


@pytest.mark.parametrize(
    "average, expected",
    [
        (None, [EMPTY] * 5),
        (0, [EMPTY] * 5),
        (-2, [EMPTY] * 5),
        (5, [FULL] * 5),
        (7.5, [FULL] * 5),
        (3.6, [FULL, FULL, FULL, HALF, EMPTY]),
        (4.4, [FULL, FULL, FULL, FULL, HALF]),
        (4.8, [FULL] * 5),
        (4.75, [FULL] * 5),
        (2.25, [FULL, FULL, HALF, EMPTY, EMPTY]),
        (2.2, [FULL, FULL, EMPTY, EMPTY, EMPTY]),
        (0.5, [HALF, EMPTY, EMPTY, EMPTY, EMPTY]),
        (1, [FULL, EMPTY, EMPTY, EMPTY, EMPTY]),
    ],
)
def test_stars_for(average, expected):
    assert stars_for(average) == expected


def test_nan_is_empty():
    assert stars_for(float("nan")) == [EMPTY] * 5


def test_always_fills_every_slot():
    for slots in (1, 3, 5, 10):
        for step in range(0, 120):
            assert len(stars_for(step / 10, slots)) == slots


def test_more_score_never_shows_fewer_stars():
    def weight(stars):
        return sum({FULL: 2, HALF: 1, EMPTY: 0}[s] for s in stars)

    previous = -1
    for step in range(0, 61):
        current = weight(stars_for(step / 10))
        assert current >= previous
        previous = current


def test_average_score():
    assert average_score([]) is None
    assert average_score([None, None]) is None
    assert average_score([5, 4, None, 4]) == 4.33


def test_summarize_and_stars_for_summary():
    reviews = [
        Review(id=i, health_score=h, hygiene_score=g)
        for i, (h, g) in enumerate([(5, 3), (4, 4), (4, 5), (5, 4), (4, 4)], start=1)
    ]

    summary = summarize(reviews)

    assert summary.total_reviews == 5
    assert summary.average_health_score == 4.4
    assert summary.average_hygiene_score == 4.0
    stars = stars_for_summary(summary)
    assert stars["health"] == [FULL, FULL, FULL, FULL, HALF]
    assert stars["hygiene"] == [FULL, FULL, FULL, FULL, EMPTY]


def test_empty_summary_shows_no_stars():
    stars = stars_for_summary(RatingSummary())

    assert stars == {"health": [EMPTY] * 5, "hygiene": [EMPTY] * 5}
