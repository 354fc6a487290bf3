"""
httpx event hooks for the backend client.
Tags each outbound request with an X-Request-ID and logs requests and responses with timing.
"""

import time
import uuid

import httpx
import structlog

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def log_request(request: httpx.Request) -> None:
    """Stamp the request with a correlation id and log its start."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.headers[REQUEST_ID_HEADER] = request_id
    request.extensions["started_at"] = time.perf_counter()

    structlog.contextvars.bind_contextvars(request_id=request_id)
    logger.debug(
        "Request started",
        method=request.method,
        path=request.url.path,
    )


async def log_response(response: httpx.Response) -> None:
    """Log request completion; never reads the body so tokens stay out of the logs."""
    request = response.request
    started_at = request.extensions.get("started_at")
    process_time_ms = round((time.perf_counter() - started_at) * 1000, 2) if started_at else None

    log = logger.info if response.is_success else logger.warning
    log(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        process_time_ms=process_time_ms,
    )
    clear_request_id()


def clear_request_id() -> None:
    """Drop the request id from the log context; the response hook never runs after a transport error."""
    structlog.contextvars.unbind_contextvars("request_id")


def event_hooks() -> dict:
    """Hooks to pass to httpx.AsyncClient(event_hooks=...)."""
    return {
        "request": [log_request],
        "response": [log_response],
    }
