"""Request middleware: request id propagation and access logging."""

import time
import uuid
import logging
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an id and log its outcome.

    Adds headers:
    - X-Request-ID: caller-supplied or generated id
    - X-Response-Time: processing time in milliseconds
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or _new_request_id()
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

        logger.info(
            f"[{request_id}] {request.method} {request.url.path} "
            f"- {response.status_code} ({elapsed_ms:.2f}ms)"
        )
        return response


def _new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:16]}"


def get_request_id(request: Request) -> str:
    """Request id set by the middleware, or a fresh one outside it."""
    return getattr(request.state, "request_id", None) or _new_request_id()
