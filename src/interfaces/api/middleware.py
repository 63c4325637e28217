"""HTTP middleware for the API shell.

Registered by `create_app()`; outermost first the chain is:
request id + access log → security headers → gzip → body size limit → CORS →
request timeout → unhandled-error rendering → routes.
"""

from __future__ import annotations

import asyncio
import time

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from src.shared.errors import (
    ERROR_INTERNAL,
    TITLE_REQUEST_TIMEOUT,
    AppError,
    InternalError,
    PayloadTooLargeError,
    error_response,
    visible_message,
)
from src.shared.logging import get_logger
from src.shared.request_id import (
    REQUEST_ID_HEADER,
    get_request_id,
    resolve_request_id,
    set_request_id,
)

log = get_logger(__name__)


# Same defaults helmet applies to an express app
SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Assign the request id and write one access log line per request."""

    async def dispatch(self, request, call_next):
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        set_request_id(rid)
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            log.info(
                "request_completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": status,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
        response.headers[REQUEST_ID_HEADER] = rid
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def render_app_error(exc: AppError, *, development: bool) -> JSONResponse:
    """Turn an `AppError` into the JSON error envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            error=exc.title,
            message=visible_message(exc, development=development),
            code=exc.code,
            request_id=get_request_id(),
            details=exc.details if exc.public or development else None,
        ),
    )


class _ResponseTracker:
    """Wraps `send` and remembers whether the response head went out."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.started = False

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.started = True
        await self._send(message)


class UnhandledErrorMiddleware:
    """Render uncaught exceptions as the masked 500 envelope.

    Sits innermost so the outer layers still add the request id, security
    and CORS headers to the error response.
    """

    def __init__(self, app: ASGIApp, development: bool = False) -> None:
        self.app = app
        self.development = development

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        tracker = _ResponseTracker(send)
        try:
            await self.app(scope, receive, tracker)
        except Exception as exc:
            log.exception(
                "unhandled_error",
                extra={"method": scope.get("method"), "path": scope.get("path")},
            )
            if tracker.started:
                raise
            response = render_app_error(
                InternalError(
                    code=ERROR_INTERNAL,
                    message=str(exc) or exc.__class__.__name__,
                    details={"type": exc.__class__.__name__},
                ),
                development=self.development,
            )
            await response(scope, receive, send)


class BodySizeLimitMiddleware:
    """Enforce the request body limit.

    A declared Content-Length over the limit is refused before the app runs.
    Bodies without one (chunked uploads) are counted as they are received,
    and reading stops at the first chunk that crosses the limit.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    def _too_large(self) -> PayloadTooLargeError:
        return PayloadTooLargeError(
            code="payload_too_large",
            message=f"Request body exceeds {self.max_bytes} bytes",
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = None
        for key, value in scope.get("headers", []):
            if key == b"content-length":
                try:
                    declared = int(value)
                except ValueError:
                    declared = None
                break

        if declared is not None and declared > self.max_bytes:
            log.warning(
                "payload_too_large",
                extra={"path": scope.get("path"), "content_length": declared},
            )
            await render_app_error(self._too_large(), development=False)(scope, receive, send)
            return

        received = 0

        async def counting_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    log.warning(
                        "payload_too_large",
                        extra={"path": scope.get("path"), "received": received},
                    )
                    # rendered as 413 by the AppError handler
                    raise self._too_large()
            return message

        tracker = _ResponseTracker(send)
        try:
            await self.app(scope, counting_receive, tracker)
        except PayloadTooLargeError as exc:
            # the body was read outside a route, e.g. by another middleware
            if tracker.started:
                raise
            await render_app_error(exc, development=False)(scope, receive, send)


class RequestTimeoutMiddleware:
    """Bound the time the inner app may take to answer a request."""

    def __init__(self, app: ASGIApp, timeout: float) -> None:
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        tracker = _ResponseTracker(send)
        try:
            await asyncio.wait_for(self.app(scope, receive, tracker), self.timeout)
        except asyncio.TimeoutError:
            log.error(
                "request_timeout",
                extra={
                    "method": scope.get("method"),
                    "path": scope.get("path"),
                    "timeout": self.timeout,
                },
            )
            if tracker.started:
                # headers already went out; nothing sane left to send
                raise
            response = JSONResponse(
                status_code=503,
                content=error_response(
                    error=TITLE_REQUEST_TIMEOUT,
                    message=f"Request did not complete within {self.timeout}s",
                    code="request_timeout",
                    request_id=get_request_id(),
                ),
            )
            await response(scope, receive, send)
