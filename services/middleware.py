"""FastAPI middleware — request ID and access log (pure ASGI)."""

from __future__ import annotations

import logging
import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = b"x-request-id"


def _incoming_request_id(scope: Scope) -> str:
    for name, value in scope.get("headers", []):
        if name == REQUEST_ID_HEADER and value:
            return value.decode("latin-1")
    return uuid.uuid4().hex[:8]


class RequestIdMiddleware:
    """Tag every HTTP exchange with a request ID and log it once answered.

    A client-supplied ``X-Request-ID`` is kept, otherwise a short random ID
    is made up.  It is exposed as ``request.state.request_id`` and echoed in
    the response headers.  Written as plain ASGI rather than
    ``BaseHTTPMiddleware`` so PDF and Excel downloads pass through as-is.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _incoming_request_id(scope)
        scope.setdefault("state", {})["request_id"] = request_id
        started = time.monotonic()

        async def tagged_send(message: Message) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [
                    *message.get("headers", []),
                    (REQUEST_ID_HEADER, request_id.encode("latin-1")),
                ]
                logger.info(
                    "[%s] %s %s → %d (%.0fms)",
                    request_id,
                    scope.get("method", "?"),
                    scope.get("path", ""),
                    message["status"],
                    (time.monotonic() - started) * 1000,
                )
            await send(message)

        await self.app(scope, receive, tagged_send)
