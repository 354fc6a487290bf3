"""Rewards service — points balance, catalog and redemption."""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from healthyaura.application.services.session_service import SessionManager
from healthyaura.core.exceptions import AppError, InsufficientPointsException, InvalidServerResponseException
from healthyaura.domain.schemas.rewards import PointsBalance, Redemption, Reward

logger = structlog.get_logger(__name__)


class RewardsService:
    def __init__(self, session: SessionManager):
        self.session = session
        self.api = session.api

    async def get_points(self) -> PointsBalance:
        """Current balance; also copied into the session profile."""
        self.session.require_user()
        balance = _parse(PointsBalance, await self.api.get("/rewards/me"))
        self.session.apply_profile({"total_points": balance.total_points})
        return balance

    async def get_catalog(self) -> list[Reward]:
        self.session.require_user()
        data = await self.api.get("/rewards/catalog")
        rewards = [_parse(Reward, item) for item in (data if isinstance(data, list) else [])]
        return [reward for reward in rewards if reward.active]

    async def redeem(self, reward: Reward) -> Redemption:
        """Redeem a reward. The balance check here only spares a doomed request; the backend decides."""
        user = self.session.require_user()
        total_points = user.total_points
        if total_points is None:
            # balance never loaded, e.g. the profile fetch failed at sign in
            total_points = (await self.get_points()).total_points
        if not reward.affordable_with(total_points):
            logger.info(
                "Redemption blocked, not enough points",
                reward_id=reward.id,
                points_required=reward.points_required,
                total_points=total_points,
            )
            raise InsufficientPointsException(reward.points_required, total_points)

        data = await self.api.post(f"/rewards/me/redeem-reward/{reward.id}")
        redemption = _parse(Redemption, data or {})
        logger.info("Reward redeemed", reward_id=reward.id, points_used=redemption.points_used)

        try:
            await self.get_points()
        except AppError as e:
            logger.warning("Could not refresh points after redemption", error=e.code)
            if redemption.points_left is not None:
                self.session.apply_profile({"total_points": redemption.points_left})
        return redemption


def _parse(model: Any, data: Any):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidServerResponseException("Invalid server response", {"errors": e.errors(include_url=False)}) from e
