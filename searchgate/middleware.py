"""
ASGI middleware wrapped around every gateway route.

CorrelationIdMiddleware tags each HTTP exchange with an id (taken from the
x-correlation-id request header, or freshly generated) that appears in every
log line written while handling it and is echoed back in the response.

ErrorBoundaryMiddleware turns an exception escaping a handler into a bare
500, so a client never sees a trace or engine message.
"""

from starlette.datastructures import Headers, MutableHeaders

from searchgate.json_mapper import SortedJSONResponse
from searchgate.logging_config import (
    CORRELATION_HEADER,
    generate_correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
)

logger = get_logger(__name__)


class CorrelationIdMiddleware:

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        cid = Headers(scope=scope).get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(cid)

        async def tagged_send(message):
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message).append(CORRELATION_HEADER, cid)
            await send(message)

        await self.app(scope, receive, tagged_send)


class ErrorBoundaryMiddleware:
    """Last-resort handler for exceptions the route handlers did not map."""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        started = False

        async def watched_send(message):
            nonlocal started
            started = started or message["type"] == "http.response.start"
            await send(message)

        try:
            await self.app(scope, receive, watched_send)
        except Exception:
            logger.exception(f"Unhandled error on {scope.get('method')} {scope.get('path')}")
            if started:
                # Status line already sent; the connection is all that is left
                return
            response = SortedJSONResponse(
                {"correlationId": get_correlation_id(), "error": "Internal server error"},
                status_code=500,
            )
            await response(scope, receive, send)
