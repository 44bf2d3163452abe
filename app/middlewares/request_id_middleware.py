from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request, Response
from typing import Callable
import time
import uuid
from app.utils.context import set_request_id, reset_request_id
from app.utils.logging import get_logger, redact_secrets

REQUEST_ID_HEADER = "X-Request-ID"


def _incoming_request_id(request: Request) -> str:
    # Only well-formed UUIDs are trusted, anything else gets a fresh ID
    try:
        return str(uuid.UUID(request.headers.get(REQUEST_ID_HEADER)))
    except (ValueError, TypeError):
        return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tags each request with an ID for logs, responses and queued emails"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = _incoming_request_id(request)
        request.state.request_id = request_id

        token = set_request_id(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            path = redact_secrets(request.url.path)
            get_logger().info(
                f"{request.method} {path} -> {response.status_code} "
                f"({elapsed_ms:.1f} ms)"
            )
        finally:
            reset_request_id(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
