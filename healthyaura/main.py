"""HealthyAura client — wiring entry point.

Builds every service around one SessionManager:

    async with open_client() as client:
        await client.session.sign_in("alice", "secret")
        recs = await client.recommendations.fetch()
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
import structlog

from healthyaura.application.services.moderation_service import ModerationWorkflow
from healthyaura.application.services.profile_service import ProfileService
from healthyaura.application.services.recommendation_service import RecommendationFetcher
from healthyaura.application.services.review_service import ReviewLifecycle
from healthyaura.application.services.rewards_service import RewardsService
from healthyaura.application.services.session_service import Clock, SessionManager, utc_now
from healthyaura.config import Settings, get_settings
from healthyaura.core.logging import configure_logging
from healthyaura.domain.repositories.storage import SessionStorage
from healthyaura.infrastructure.api_client import HealthyAuraAPIClient
from healthyaura.infrastructure.storage import JsonFileStorage
from healthyaura.infrastructure.token_store import TokenStore

logger = structlog.get_logger(__name__)


@dataclass
class HealthyAuraClient:
    settings: Settings
    api: HealthyAuraAPIClient
    session: SessionManager
    profile: ProfileService
    reviews: ReviewLifecycle
    moderation: ModerationWorkflow
    recommendations: RecommendationFetcher
    rewards: RewardsService


def build_client(
    settings: Optional[Settings] = None,
    storage: Optional[SessionStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Clock = utc_now,
) -> HealthyAuraClient:
    settings = settings or get_settings()
    api = HealthyAuraAPIClient(settings, transport=transport)
    token_store = TokenStore(storage or JsonFileStorage(settings.STORAGE_PATH), settings)
    session = SessionManager(api, token_store, settings, clock=clock)
    return HealthyAuraClient(
        settings=settings,
        api=api,
        session=session,
        profile=ProfileService(session),
        reviews=ReviewLifecycle(session, settings),
        moderation=ModerationWorkflow(session),
        recommendations=RecommendationFetcher(session, settings),
        rewards=RewardsService(session),
    )


@asynccontextmanager
async def open_client(
    settings: Optional[Settings] = None,
    storage: Optional[SessionStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Clock = utc_now,
    configure_logs: bool = True,
) -> AsyncIterator[HealthyAuraClient]:
    """Client lifespan — restore the persisted session on entry, close HTTP on exit."""
    settings = settings or get_settings()
    if configure_logs:
        configure_logging(settings)

    client = build_client(settings, storage=storage, transport=transport, clock=clock)
    logger.info("Starting HealthyAura client", env=settings.ENVIRONMENT, api=settings.API_BASE_URL)
    await client.session.restore()
    try:
        yield client
    finally:
        # a boot refresh still in flight must not hit a closed HTTP client
        await client.session.wait_for_refresh()
        await client.api.aclose()
        logger.info("HealthyAura client stopped")
