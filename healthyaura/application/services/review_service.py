"""Review service — create/edit/delete/flag a user's review and keep ratings in sync.

After every successful mutation the eatery's review list and its rating summary
are fetched again together, so the two never describe different review sets.
"""

import asyncio
from typing import Any, Iterable, Optional

import structlog
from pydantic import ValidationError

from healthyaura.application.services.session_service import SessionManager
from healthyaura.config import Settings, get_settings
from healthyaura.core.exceptions import (
    AppError,
    BusinessRuleViolationException,
    ForbiddenException,
    InvalidServerResponseException,
    ReviewCooldownActiveException,
    ValidationException,
)
from healthyaura.domain.schemas.review import (
    Flag,
    FlagRequest,
    FlagStatus,
    RatingSummary,
    Review,
    ReviewDraft,
    ReviewSnapshot,
)

logger = structlog.get_logger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5

# Backend wording for its submission limits ("You must wait 7 days before
# submitting a new review...", "Daily review limit reached...")
COOLDOWN_MARKERS = ("must wait", "daily review limit")


def reviews_path(eatery_id: int) -> str:
    return f"/api/eateries/{eatery_id}/reviews"


def is_cooldown_rejection(error: AppError) -> bool:
    if error.status_code == 429:
        return True
    text = (error.message or "").lower()
    return any(marker in text for marker in COOLDOWN_MARKERS)


class ReviewLifecycle:
    """Review operations of the signed-in user, scoped per eatery."""

    def __init__(self, session: SessionManager, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.session = session
        self.api = session.api
        self.max_photos = settings.REVIEW_MAX_PHOTOS
        self._snapshots: dict[int, ReviewSnapshot] = {}

    def snapshot(self, eatery_id: int) -> Optional[ReviewSnapshot]:
        """Last list+summary pair fetched for the eatery, if still valid."""
        return self._snapshots.get(eatery_id)

    # Validation

    def validate(
        self,
        health_score: Any,
        hygiene_score: Any,
        text_feedback: Optional[str],
        photos: Iterable[str] = (),
    ) -> ReviewDraft:
        """Pre-flight checks. Raises ValidationException; never touches the network."""
        errors: dict[str, str] = {}
        for field, value in (("health_score", health_score), ("hygiene_score", hygiene_score)):
            if isinstance(value, bool) or not isinstance(value, int):
                errors[field] = "Score is required"
            elif not MIN_SCORE <= value <= MAX_SCORE:
                errors[field] = f"Score must be between {MIN_SCORE} and {MAX_SCORE}"

        text = (text_feedback or "").strip()
        if not text:
            errors["text_feedback"] = "Review text cannot be empty"

        photos = [p for p in photos if p]
        if len(photos) > self.max_photos:
            errors["photos"] = f"Maximum {self.max_photos} photos allowed"

        if errors:
            raise ValidationException("Please fix the highlighted fields.", {"fields": errors})
        return ReviewDraft(
            health_score=health_score,
            hygiene_score=hygiene_score,
            text_feedback=text,
            photos=photos,
        )

    # Reads

    async def list_reviews(self, eatery_id: int, sort_by: str = "RECENT") -> list[Review]:
        data = await self.api.get(reviews_path(eatery_id), params={"sortBy": sort_by})
        # the backend answers {"message": "No reviews yet."} instead of []
        if isinstance(data, dict) or data is None:
            return []
        if not isinstance(data, list):
            raise InvalidServerResponseException("Invalid server response", {"path": reviews_path(eatery_id)})
        return [self._parse_review(item) for item in data]

    async def get_ratings(self, eatery_id: int) -> RatingSummary:
        data = await self.api.get(f"{reviews_path(eatery_id)}/ratings")
        try:
            return RatingSummary.model_validate(data or {})
        except ValidationError as e:
            raise InvalidServerResponseException("Invalid server response", {"errors": e.errors(include_url=False)}) from e

    async def get_my_review(self, eatery_id: int) -> Optional[Review]:
        self.session.require_user()
        data = await self.api.get(f"{reviews_path(eatery_id)}/my-review")
        if not isinstance(data, dict) or "id" not in data:
            return None
        return self._parse_review(data)

    async def refresh(self, eatery_id: int) -> ReviewSnapshot:
        """Fetch list and summary concurrently and store them as one snapshot.

        On failure the cached snapshot is dropped, never half-replaced.
        """
        results = await asyncio.gather(
            self.list_reviews(eatery_id),
            self.get_ratings(eatery_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                self._snapshots.pop(eatery_id, None)
                raise result

        reviews, summary = results
        snapshot = ReviewSnapshot(
            eatery_id=eatery_id,
            reviews=reviews,
            summary=summary,
            fetched_at=self.session.now(),
        )
        self._snapshots[eatery_id] = snapshot
        return snapshot

    # Mutations

    async def create(
        self,
        eatery_id: int,
        health_score: int,
        hygiene_score: int,
        text_feedback: str,
        photos: Iterable[str] = (),
    ) -> Review:
        """Post a review. The backend edits the author's existing review instead when there is one."""
        self.session.require_user()
        draft = self.validate(health_score, hygiene_score, text_feedback, photos)

        data = await self._submit("POST", reviews_path(eatery_id), draft)
        review = self._review_from(data)
        logger.info("Review posted", eatery_id=eatery_id, review_id=review.id)
        await self._resync(eatery_id)
        return review

    async def update(
        self,
        eatery_id: int,
        review: Review,
        health_score: int,
        hygiene_score: int,
        text_feedback: str,
        photos: Iterable[str] = (),
    ) -> Review:
        self.session.require_user()
        self._require_own(review, "You can only edit your own reviews.")
        draft = self.validate(health_score, hygiene_score, text_feedback, photos)

        data = await self._submit("PUT", f"{reviews_path(eatery_id)}/{review.id}", draft)
        updated = self._review_from(data)
        logger.info("Review updated", eatery_id=eatery_id, review_id=updated.id)
        await self._resync(eatery_id)
        return updated

    async def delete(self, eatery_id: int, review: Review, confirmed: bool) -> None:
        """Delete the author's own review. `confirmed` is the caller's yes/no answer."""
        self.session.require_user()
        if not confirmed:
            raise ValidationException("Review deletion was not confirmed.", {"field": "confirmed"})
        self._require_own(review, "You can only delete your own reviews.")

        await self.api.delete(f"{reviews_path(eatery_id)}/{review.id}")
        logger.info("Review deleted", eatery_id=eatery_id, review_id=review.id)
        await self._resync(eatery_id)

    async def flag(self, eatery_id: int, review: Review, reason: str) -> Flag:
        """Report someone else's review for moderation."""
        self.session.require_user()
        reason = (reason or "").strip()
        if not reason:
            raise ValidationException("Flag reason is required.", {"field": "reason"})
        if self._is_own(review):
            raise ForbiddenException("You cannot flag your own review.")

        await self.api.post(
            f"{reviews_path(eatery_id)}/{review.id}/flag",
            json=FlagRequest(reason=reason).to_wire(),
        )
        logger.info("Review flagged", eatery_id=eatery_id, review_id=review.id)
        return Flag(
            review_id=review.id,
            reason=reason,
            status=FlagStatus.PENDING,
            created_at=self.session.now(),
        )

    # Helpers

    async def _submit(self, method: str, path: str, draft: ReviewDraft) -> Any:
        try:
            return await self.api.request(method, path, json=draft.to_wire())
        except BusinessRuleViolationException as e:
            if is_cooldown_rejection(e):
                logger.info("Review refused by cooldown", path=path)
                raise ReviewCooldownActiveException(e.message, e.details) from e
            raise

    async def _resync(self, eatery_id: int) -> None:
        try:
            await self.refresh(eatery_id)
        except AppError as e:
            # the mutation itself went through; the next read fetches both again
            logger.warning("Could not refresh reviews after change", eatery_id=eatery_id, error=e.code)

    def _review_from(self, data: Any) -> Review:
        if isinstance(data, dict) and isinstance(data.get("review"), dict):
            data = data["review"]
        if not isinstance(data, dict):
            raise InvalidServerResponseException("Invalid server response: no review returned")
        return self._parse_review(data)

    def _parse_review(self, data: Any) -> Review:
        try:
            review = Review.model_validate(data)
        except ValidationError as e:
            raise InvalidServerResponseException("Invalid server response", {"errors": e.errors(include_url=False)}) from e
        if not review.is_own_review and self._is_own(review):
            review = review.model_copy(update={"is_own_review": True})
        return review

    def _is_own(self, review: Review) -> bool:
        if review.is_own_review:
            return True
        user = self.session.user
        return bool(user and review.author_alias and review.author_alias == user.username)

    def _require_own(self, review: Review, message: str) -> None:
        if not self._is_own(review):
            raise ForbiddenException(message)
