"""Correlation ID middleware.

Tags every request with a correlation id, taken from the incoming
``X-Correlation-ID`` header when it is usable and generated otherwise.
The id is placed in the logging context and echoed in the response.

Written as pure ASGI middleware; BaseHTTPMiddleware runs the endpoint in
a separate task, which breaks asyncpg connections.
"""

import re
import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from sugar_monitor.logging_config import correlation_id_ctx, get_logger

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Client-supplied ids end up in log lines
_VALID_CORRELATION_ID = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

# Probed every few seconds by orchestrators
_QUIET_PATHS = frozenset({"/health"})


def resolve_correlation_id(raw: bytes | None) -> str:
    """Return the client's correlation id if well-formed, else a new UUID."""
    if raw:
        candidate = raw.decode("latin-1").strip()
        if _VALID_CORRELATION_ID.match(candidate):
            return candidate
    return str(uuid.uuid4())


class CorrelationIdMiddleware:
    """Sets the correlation id and logs request start, completion, and failure."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        correlation_id = resolve_correlation_id(headers.get(b"x-correlation-id"))
        token = correlation_id_ctx.set(correlation_id)

        method = scope.get("method", "")
        path = scope.get("path", "")
        quiet = path in _QUIET_PATHS
        start_time = time.perf_counter()
        status_code: int | None = None

        if not quiet:
            client = scope.get("client")
            logger.info(
                "Request started",
                method=method,
                path=path,
                client_ip=client[0] if client else None,
            )

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status")
                response_headers = list(message.get("headers", []))
                response_headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": response_headers}
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        else:
            if not quiet:
                logger.info(
                    "Request completed",
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
        finally:
            correlation_id_ctx.reset(token)
