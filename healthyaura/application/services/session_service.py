"""Session service — sign in/up/out, lockout policy and profile refresh.

SessionManager is the one session context of the client. Every other service
receives it and asks it for the current user and credential; nothing else
touches the persisted token or the Authorization header.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from healthyaura.config import Settings, get_settings
from healthyaura.core.exceptions import (
    AppError,
    BusinessRuleViolationException,
    ForbiddenException,
    InvalidCredentialsException,
    InvalidServerResponseException,
    LockedOutException,
    NetworkException,
    UnauthorizedException,
    ValidationException,
)
from healthyaura.domain.schemas.auth import (
    AuthResponse,
    Credential,
    LockoutRecord,
    LoginRequest,
    ProfileResponse,
    SignupRequest,
    UserProfile,
)
from healthyaura.infrastructure.api_client import HealthyAuraAPIClient
from healthyaura.infrastructure.token_store import TokenStore

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

INCORRECT_CREDENTIALS_MESSAGE = "The username or password is incorrect. Please try again."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionManager:
    """Owns the signed-in user, the lockout table and the persisted session."""

    def __init__(
        self,
        api: HealthyAuraAPIClient,
        token_store: TokenStore,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
    ):
        settings = settings or get_settings()
        self.api = api
        self.token_store = token_store
        self.max_attempts = settings.LOCKOUT_MAX_ATTEMPTS
        self.lockout_window = timedelta(minutes=settings.LOCKOUT_WINDOW_MINUTES)
        self.auto_sign_in_after_signup = settings.AUTO_SIGN_IN_AFTER_SIGNUP
        self._clock = clock

        self._user: Optional[UserProfile] = None
        # Per-username, lives as long as this object. Not persisted.
        self._lockouts: dict[str, LockoutRecord] = {}
        # Bumped on every sign-in and sign-out; refreshes from an older generation are dropped.
        self._generation = 0
        self._refresh_task: Optional[asyncio.Task] = None

    # State

    @property
    def user(self) -> Optional[UserProfile]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self._user is not None and bool(self._user.token)

    @property
    def credential(self) -> Optional[Credential]:
        if not self.is_authenticated:
            return None
        return Credential(
            token=self._user.token,
            issued_username=self._user.username,
            role=self._user.role,
        )

    @property
    def refresh_pending(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def now(self) -> datetime:
        return self._clock()

    def require_user(self) -> UserProfile:
        """Current user, or UnauthorizedException when signed out."""
        if not self.is_authenticated:
            raise UnauthorizedException("You need to sign in first.")
        return self._user

    def require_admin(self) -> UserProfile:
        """Current user when it holds the ADMIN role."""
        user = self.require_user()
        if not user.is_admin:
            logger.warning("Admin operation refused", username=user.username, role=user.role.value)
            raise ForbiddenException("Admin access is required for this action.")
        return user

    def lockout_record(self, username: str) -> LockoutRecord:
        return (self._lockouts.get(username) or LockoutRecord()).model_copy()

    # Boot

    async def restore(self) -> Optional[UserProfile]:
        """Surface the cached user at once and refresh it in the background.

        Never raises: missing or unreadable data leaves the session signed out.
        """
        # load_profile drops a corrupted entry even when there is no token
        cached = self.token_store.load_profile()
        token = self.token_store.load_token()
        if not token or cached is None:
            logger.info("No persisted session to restore")
            return None

        if cached.token != token:
            cached = cached.model_copy(update={"token": token})
        self._user = cached
        self.api.set_bearer_token(token)
        self._refresh_task = asyncio.create_task(self._refresh(self._generation))
        logger.info("Restored cached session", username=cached.username)
        return cached

    async def wait_for_refresh(self) -> Optional[UserProfile]:
        """Join the background refresh started by restore(), if any."""
        if self._refresh_task is None:
            return self._user
        await self._refresh_task
        return self._user

    # Profile

    async def refresh_profile(self) -> Optional[UserProfile]:
        """Fetch /profile/me and merge it in. Failures keep the current profile."""
        if not self.is_authenticated:
            return None
        return await self._refresh(self._generation)

    async def _refresh(self, generation: int) -> Optional[UserProfile]:
        try:
            data = await self.api.get("/profile/me")
            profile = ProfileResponse.model_validate(data or {})
        except (AppError, ValidationError) as e:
            logger.warning(
                "Profile refresh failed, keeping last known profile",
                error=e.__class__.__name__,
            )
            return self._user if generation == self._generation else None

        if generation != self._generation or self._user is None:
            logger.info("Discarding profile refresh from a finished session")
            return None

        self.apply_profile(profile)
        return self._user

    def apply_profile(self, profile: Union[ProfileResponse, dict[str, Any]]) -> UserProfile:
        """Merge profile fields into the signed-in user and persist the snapshot."""
        user = self.require_user()
        if not isinstance(profile, ProfileResponse):
            profile = ProfileResponse.model_validate(profile)
        merged = user.merged_with(profile)
        self._user = merged
        self.token_store.save_profile(merged)
        return merged

    # Sign in / up / out

    async def sign_in(self, username: str, password: str) -> Credential:
        """
        Authenticate against /auth/login.

        Raises LockedOutException without any network call while the username is
        inside its lockout window. Every failure counts towards the lockout.
        """
        record = self._lockouts.get(username)
        now = self.now()
        if record is not None and record.is_locked(now):
            logger.warning("Login refused locally, account locked", username=username)
            raise LockedOutException(record.locked_until)

        generation = self._generation
        try:
            data = await self.api.post(
                "/auth/login",
                json=LoginRequest(username=username, password=password).to_wire(),
            )
            auth = parse_auth_response(data)
            if not auth.token:
                raise InvalidServerResponseException("Invalid server response: no token returned")
        except InvalidServerResponseException:
            self._record_failure(username)
            raise
        except NetworkException as e:
            self._record_failure(username)
            raise NetworkException(INCORRECT_CREDENTIALS_MESSAGE, e.details) from e
        except (UnauthorizedException, ForbiddenException, BusinessRuleViolationException) as e:
            self._record_failure(username)
            raise InvalidCredentialsException(
                e.details.get("server_message") or INCORRECT_CREDENTIALS_MESSAGE,
                {"status_code": e.status_code},
            ) from e
        except AppError:
            self._record_failure(username)
            raise

        self._lockouts[username] = LockoutRecord()
        self._check_generation(generation, username)
        credential = await self._adopt(auth, fallback_username=username)
        logger.info("Signed in", username=credential.issued_username, role=credential.role.value)
        return credential

    async def sign_up(self, payload: Union[SignupRequest, dict[str, Any]]) -> AuthResponse:
        """
        Register through /auth/signup and return the backend's answer.

        The new account is only signed in when AUTO_SIGN_IN_AFTER_SIGNUP is on and
        the backend returned a token; otherwise navigation is the caller's call.
        """
        request = build_signup_request(payload)
        generation = self._generation
        data = await self.api.post("/auth/signup", json=request.to_wire())
        response = parse_auth_response(data)
        logger.info("Signed up", username=response.username or request.username)

        if self.auto_sign_in_after_signup and response.token:
            self._check_generation(generation, request.username)
            await self._adopt(response, fallback_username=request.username)
            self._lockouts.pop(request.username, None)
        return response

    def sign_out(self) -> None:
        """Forget the session everywhere. Safe to call when already signed out."""
        self._generation += 1
        self.token_store.clear()
        self.api.clear_bearer_token()
        if self._user is not None:
            logger.info("Signed out", username=self._user.username)
        self._user = None
        self._refresh_task = None

    # Helpers

    def _check_generation(self, generation: int, username: str) -> None:
        """Refuse to adopt a login answer when the session was signed out meanwhile."""
        if generation != self._generation:
            logger.info("Discarding sign in answered after sign out", username=username)
            raise UnauthorizedException("Signed out while signing in. Please sign in again.")

    async def _adopt(self, auth: AuthResponse, fallback_username: str) -> Credential:
        self._generation += 1
        generation = self._generation

        basic = UserProfile(
            username=auth.username or fallback_username,
            role=auth.role,
            token=auth.token,
        )
        self.token_store.save_token(auth.token)
        self.token_store.save_profile(basic)
        self.api.set_bearer_token(auth.token)
        self._user = basic

        await self._refresh(generation)
        return Credential(token=auth.token, issued_username=basic.username, role=basic.role)

    def _record_failure(self, username: str) -> LockoutRecord:
        now = self.now()
        current = self._lockouts.get(username)
        if current is None or (current.locked_until is not None and current.locked_until <= now):
            # an expired lock starts a fresh count
            current = LockoutRecord()

        attempts = current.failed_attempts + 1
        locked_until = current.locked_until
        if attempts >= self.max_attempts:
            locked_until = now + self.lockout_window
            logger.warning(
                "Account locked after repeated failures",
                username=username,
                attempts=attempts,
                locked_until=locked_until.isoformat(),
            )

        record = LockoutRecord(failed_attempts=attempts, locked_until=locked_until)
        self._lockouts[username] = record
        return record


def parse_auth_response(data: Any) -> AuthResponse:
    """Normalize a login/signup body; anything but an object is a malformed response."""
    if not isinstance(data, dict):
        raise InvalidServerResponseException("Invalid server response")
    try:
        return AuthResponse.model_validate(data)
    except ValidationError as e:
        raise InvalidServerResponseException("Invalid server response", {"errors": e.errors(include_url=False)}) from e


def build_signup_request(payload: Union[SignupRequest, dict[str, Any]]) -> SignupRequest:
    if isinstance(payload, SignupRequest):
        request = payload
    else:
        try:
            request = SignupRequest.model_validate(payload)
        except ValidationError as e:
            raise ValidationException(
                "Username, email and password are required.",
                {"errors": e.errors(include_url=False)},
            ) from e
    missing = [name for name in ("username", "email", "password") if not getattr(request, name).strip()]
    if missing:
        raise ValidationException("Username, email and password are required.", {"missing": missing})
    return request
