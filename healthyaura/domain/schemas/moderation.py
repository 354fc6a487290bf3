"""Pydantic schemas for the admin dashboard."""

from datetime import datetime
from typing import Optional

from healthyaura.domain.schemas.common import WireModel
from healthyaura.domain.schemas.review import Flag


class DashboardMetrics(WireModel):
    pending_flags: int = 0
    pending_by_reason: dict[str, int] = {}
    pending_by_keywords: dict[str, int] = {}


class AdminActionLog(WireModel):
    id: Optional[int] = None
    admin_username: Optional[str] = None
    action_type: Optional[str] = None
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    eatery_id: Optional[int] = None
    details: Optional[str] = None
    timestamp: Optional[datetime] = None


class DashboardSnapshot(WireModel):
    metrics: DashboardMetrics
    flags: list[Flag]
    recent_actions: list[AdminActionLog] = []
    logs: list[AdminActionLog] = []
