"""Moderation service — admin review flags, hide/delete and the admin dashboard.

Flag lifecycle as the client sees it: PENDING -> RESOLVED (action REMOVE) or
PENDING -> DISMISSED (action DISMISS). Both end states are final here.
Hiding or deleting a review is expected to follow a REMOVE resolution of one of
its flags; that order is advice (logged), not enforced.
"""

import asyncio
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from healthyaura.application.services.session_service import (
    SessionManager,
    build_signup_request,
    parse_auth_response,
)
from healthyaura.core.exceptions import (
    BusinessRuleViolationException,
    InvalidServerResponseException,
    ValidationException,
)
from healthyaura.domain.schemas.auth import AuthResponse, SignupRequest
from healthyaura.domain.schemas.moderation import AdminActionLog, DashboardMetrics, DashboardSnapshot
from healthyaura.domain.schemas.review import Flag, FlagStatus, ResolveAction

logger = structlog.get_logger(__name__)

MODERATION_PATH = "/admin/review-moderation"
DASHBOARD_PATH = "/admin/dashboard"


class ModerationWorkflow:
    """Admin-only operations. Every call checks the ADMIN role before any request."""

    def __init__(self, session: SessionManager):
        self.session = session
        self.api = session.api
        # Flags seen in listings or resolved through this workflow, by id
        self._flags: dict[int, Flag] = {}

    def known_flag(self, flag_id: int) -> Optional[Flag]:
        return self._flags.get(flag_id)

    # Flags

    async def list_flags(self, status: Optional[Union[FlagStatus, str]] = None) -> list[Flag]:
        self.session.require_admin()
        data = await self.api.get(f"{DASHBOARD_PATH}/flags", params={"status": _status_param(status)})
        return self._remember(self._parse_flags(data))

    async def flags_by_reason(self, reason: str, status: Optional[Union[FlagStatus, str]] = None) -> list[Flag]:
        self.session.require_admin()
        reason = (reason or "").strip()
        if not reason:
            return await self.list_flags(status)
        data = await self.api.get(
            f"{DASHBOARD_PATH}/flags/by-reason",
            params={"reason": reason, "status": _status_param(status)},
        )
        return self._remember(self._parse_flags(data))

    async def resolve_flag(
        self,
        flag_id: int,
        action: Union[ResolveAction, str],
        notes: Optional[str] = None,
    ) -> Flag:
        """Close a pending flag. REMOVE only records intent; the review stays visible."""
        self.session.require_admin()
        try:
            action = ResolveAction(str(action.value if isinstance(action, ResolveAction) else action).upper())
        except ValueError:
            raise ValidationException("Action must be REMOVE or DISMISS.", {"field": "action"})

        known = self._flags.get(flag_id)
        if known is not None and known.status.is_terminal:
            raise BusinessRuleViolationException(
                "Flag has already been resolved",
                details={"flag_id": flag_id, "status": known.status.value},
            )

        notes = (notes or "").strip() or None
        await self.api.put(
            f"{MODERATION_PATH}/flags/{flag_id}/resolve",
            params={"action": action.value, "notes": notes},
        )

        base = known or Flag(id=flag_id)
        resolved = base.model_copy(
            update={
                "status": action.resulting_status,
                "resolve_action": action,
                "admin_notes": notes,
                "reviewed_at": self.session.now(),
            }
        )
        self._flags[flag_id] = resolved
        logger.info("Flag resolved", flag_id=flag_id, action=action.value)
        return resolved

    # Reviews

    async def hide_review(self, review_id: int, reason: str) -> None:
        self.session.require_admin()
        reason = self._require_reason(reason)
        self._check_removal_order(review_id, "hide")
        await self.api.put(f"{MODERATION_PATH}/reviews/{review_id}/hide", params={"reason": reason})
        logger.info("Review hidden", review_id=review_id)

    async def delete_review(self, review_id: int, reason: str) -> None:
        self.session.require_admin()
        reason = self._require_reason(reason)
        self._check_removal_order(review_id, "delete")
        await self.api.delete(f"{MODERATION_PATH}/reviews/{review_id}", params={"reason": reason})
        logger.info("Review deleted by admin", review_id=review_id)

    # Dashboard

    async def load_dashboard(self, status: Union[FlagStatus, str] = FlagStatus.PENDING) -> DashboardSnapshot:
        """Fetch the four dashboard panels concurrently; all must succeed."""
        self.session.require_admin()
        results = await asyncio.gather(
            self.api.get(f"{DASHBOARD_PATH}/metrics"),
            self.api.get(f"{DASHBOARD_PATH}/flags", params={"status": _status_param(status)}),
            self.api.get(f"{DASHBOARD_PATH}/recent-summary"),
            self.api.get("/admin/logs"),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                logger.warning("Admin dashboard failed to load", error=result.__class__.__name__)
                raise result

        metrics, flags, recent, logs = results
        try:
            return DashboardSnapshot(
                metrics=DashboardMetrics.model_validate(metrics or {}),
                flags=self._remember(self._parse_flags(flags)),
                recent_actions=[AdminActionLog.model_validate(item) for item in _as_list(recent)],
                logs=[AdminActionLog.model_validate(item) for item in _as_list(logs)],
            )
        except ValidationError as e:
            raise InvalidServerResponseException("Invalid server response", {"errors": e.errors(include_url=False)}) from e

    # Accounts

    async def create_admin_account(self, payload: Union[SignupRequest, dict[str, Any]]) -> AuthResponse:
        """Register another admin. The current session is left untouched."""
        self.session.require_admin()
        request = build_signup_request(payload)
        data = await self.api.post("/auth/admin/signup", json=request.to_wire())
        response = parse_auth_response(data)
        logger.info("Admin account created", username=response.username or request.username)
        return response

    # Helpers

    def _remember(self, flags: list[Flag]) -> list[Flag]:
        for flag in flags:
            if flag.id is not None:
                self._flags[flag.id] = flag
        return flags

    def _check_removal_order(self, review_id: int, operation: str) -> None:
        removal_resolved = any(
            flag.review_id == review_id and flag.status is FlagStatus.RESOLVED
            for flag in self._flags.values()
        )
        if not removal_resolved:
            logger.warning(
                "Review moderated without a flag resolved as REMOVE",
                review_id=review_id,
                operation=operation,
            )

    @staticmethod
    def _require_reason(reason: str) -> str:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Review ID and reason are required.", {"field": "reason"})
        return reason

    @staticmethod
    def _parse_flags(data: Any) -> list[Flag]:
        try:
            return [Flag.model_validate(item) for item in _as_list(data)]
        except ValidationError as e:
            raise InvalidServerResponseException("Invalid server response", {"errors": e.errors(include_url=False)}) from e


def _status_param(status: Optional[Union[FlagStatus, str]]) -> Optional[str]:
    if status is None:
        return None
    if isinstance(status, FlagStatus):
        return status.value
    return str(status).upper() or None


def _as_list(data: Any) -> list:
    return data if isinstance(data, list) else []
