"""Pydantic schemas for points and rewards."""

from typing import Optional

from pydantic import field_validator

from healthyaura.domain.schemas.common import WireModel


class PointsBalance(WireModel):
    username: Optional[str] = None
    total_points: int = 0
    redeemed_points: int = 0
    last_updated: Optional[str] = None

    @field_validator("total_points", "redeemed_points", mode="before")
    @classmethod
    def _non_negative(cls, value):
        return max(int(value or 0), 0)


class Reward(WireModel):
    id: int
    name: str
    description: Optional[str] = None
    points_required: int
    active: bool = True

    def affordable_with(self, total_points: int) -> bool:
        return total_points >= self.points_required


class Redemption(WireModel):
    username: Optional[str] = None
    reward_name: Optional[str] = None
    description: Optional[str] = None
    points_used: int = 0
    points_left: Optional[int] = None
    message: str = "Reward redeemed successfully!"
