"""Recommendation service — home page lists by preference and by location."""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog
from pydantic import ValidationError

from healthyaura.application.services.session_service import SessionManager
from healthyaura.config import Settings, get_settings
from healthyaura.core.exceptions import AppError
from healthyaura.domain.schemas.recommendation import Coordinates, Recommendation, Recommendations

logger = structlog.get_logger(__name__)

RECOMMENDATIONS_PATH = "/home/recommendations"

# Resolves to the device position, or None when permission is denied
Locator = Callable[[], Awaitable[Optional[Coordinates]]]


class RecommendationFetcher:
    """Fetches the personalized and the nearby list side by side.

    The two halves are independent: a missing location or a failed request
    leaves that half empty and the other half intact.
    """

    def __init__(self, session: SessionManager, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.session = session
        self.api = session.api
        self.display_count = settings.RECOMMENDATION_DISPLAY_COUNT
        self.geolocation_timeout = settings.GEOLOCATION_TIMEOUT_SECONDS

    async def fetch(self, locate: Optional[Locator] = None) -> Recommendations:
        if not self.session.is_authenticated:
            return Recommendations()

        personalized, (location, nearby) = await asyncio.gather(
            self._personalized(),
            self._nearby(locate),
        )
        logger.info(
            "Recommendations loaded",
            personalized=len(personalized),
            nearby=len(nearby),
            located=location is not None,
        )
        return Recommendations(personalized=personalized, nearby=nearby, location=location)

    async def _personalized(self) -> list[Recommendation]:
        return await self._fetch_list(None)

    async def _nearby(self, locate: Optional[Locator]) -> tuple[Optional[Coordinates], list[Recommendation]]:
        location = await self._locate(locate)
        if location is None:
            return None, []
        return location, await self._fetch_list(location)

    async def _locate(self, locate: Optional[Locator]) -> Optional[Coordinates]:
        if locate is None:
            return None
        try:
            return await asyncio.wait_for(locate(), timeout=self.geolocation_timeout)
        except asyncio.TimeoutError:
            logger.info("Location not available in time")
        except Exception as e:
            # locators wrap platform APIs; any failure means "no location"
            logger.info("Location not available", error=e.__class__.__name__)
        return None

    async def _fetch_list(self, location: Optional[Coordinates]) -> list[Recommendation]:
        params = {"lat": location.lat, "lng": location.lng} if location else None
        try:
            data = await self.api.get(RECOMMENDATIONS_PATH, params=params)
        except AppError as e:
            logger.warning(
                "Recommendations request failed",
                nearby=location is not None,
                error=e.code,
            )
            return []
        return self._truncate(data)

    def _truncate(self, data: Any) -> list[Recommendation]:
        if not isinstance(data, list):
            return []
        items = []
        for item in data[: self.display_count]:
            try:
                items.append(Recommendation.model_validate(item))
            except ValidationError:
                logger.warning("Skipping malformed recommendation")
        return items
