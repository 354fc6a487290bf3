"""HealthyAura backend HTTP client.

Single gateway for every call the client makes:
- JSON headers and a default Bearer token that the session sets and clears
- Retries with growing delay for idempotent reads (GET) on transport errors and 5xx
- Backend failures mapped onto the exceptions in core.exceptions
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from healthyaura.config import Settings, get_settings
from healthyaura.core.exceptions import (
    AppError,
    BusinessRuleViolationException,
    EntityNotFoundException,
    ForbiddenException,
    InvalidServerResponseException,
    NetworkException,
    ServerErrorException,
    UnauthorizedException,
)
from healthyaura.core.middleware import clear_request_id, event_hooks

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)
MAX_ERROR_TEXT = 200


def error_message(response: httpx.Response) -> Optional[str]:
    """Pull the human-readable message out of an error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text[:MAX_ERROR_TEXT] or None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    if isinstance(body, str) and body.strip():
        return body.strip()[:MAX_ERROR_TEXT]
    return None


def exception_for(response: httpx.Response) -> AppError:
    """Classify a non-2xx response."""
    status_code = response.status_code
    message = error_message(response)
    details = {"status_code": status_code, "path": response.request.url.path}
    if message:
        details["server_message"] = message

    if status_code == httpx.codes.UNAUTHORIZED:
        return UnauthorizedException(message or "Unauthorized", details)
    if status_code == httpx.codes.FORBIDDEN:
        return ForbiddenException(message or "Forbidden", details)
    if status_code == httpx.codes.NOT_FOUND:
        return EntityNotFoundException(message or "Entity not found", details)
    if status_code >= 500:
        return ServerErrorException(
            message or "An unexpected error occurred. Please try again later.",
            status_code,
            details,
        )
    return BusinessRuleViolationException(message or "Request rejected", status_code, details)


class HealthyAuraAPIClient:
    """Async client for the HealthyAura REST backend."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.base_url = settings.API_BASE_URL.rstrip("/")
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.max_retries = max(settings.API_MAX_RETRIES, 0)
        self.retry_delay = settings.API_RETRY_DELAY_SECONDS
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=settings.API_TIMEOUT_SECONDS,
            transport=transport,
            event_hooks=event_hooks(),
        )

    # Default Authorization header

    def set_bearer_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    def clear_bearer_token(self) -> None:
        self._client.headers.pop("Authorization", None)

    @property
    def has_bearer_token(self) -> bool:
        return "Authorization" in self._client.headers

    # Requests

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body (None for an empty body).

        Args:
            method: HTTP verb
            path: Path relative to API_BASE_URL
            json: Request body
            params: Query string parameters; None values are dropped

        GET requests are retried up to max_retries times; anything else is sent once.
        """
        method = method.upper()
        attempts = 1 + (self.max_retries if method == "GET" else 0)
        query = {k: v for k, v in (params or {}).items() if v is not None} or None

        last_error: Optional[AppError] = None
        for attempt in range(1, attempts + 1):
            try:
                response = await self._client.request(method, path, json=json, params=query)
            except httpx.TransportError as e:
                clear_request_id()
                last_error = NetworkException(
                    "Unable to reach the server",
                    {"path": path, "error": e.__class__.__name__},
                )
                logger.warning(f"{method} {path} connection error (attempt {attempt}/{attempts}): {e!r}")
            else:
                if response.is_success:
                    return self._decode(response)
                last_error = exception_for(response)
                if response.status_code not in RETRYABLE_STATUS:
                    raise last_error
                logger.warning(
                    f"{method} {path} failed (attempt {attempt}/{attempts}): "
                    f"{response.status_code} - {last_error.message}"
                )

            if attempt < attempts:
                await asyncio.sleep(self.retry_delay * attempt)

        raise last_error

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise InvalidServerResponseException(
                "Invalid server response",
                {"path": response.request.url.path, "status_code": response.status_code},
            )

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        return await self.request("POST", path, json=json, params=params)

    async def put(self, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        return await self.request("PUT", path, json=json, params=params)

    async def delete(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("DELETE", path, params=params)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HealthyAuraAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
