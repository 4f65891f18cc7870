"""HTTP middleware: request correlation, W3C trace propagation, and access logging."""

import logging
import re
import time
import uuid
from typing import Callable, Iterable, NamedTuple, Optional

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .exceptions import InternalServerError
from .observability import metrics_collector

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
TENANT_HEADER = "X-Tenant-ID"

_TRACEPARENT = re.compile(r"^00-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")
_QUIET_PATHS = frozenset({"/health", "/metrics", "/favicon.ico"})


class TraceParent(NamedTuple):
    trace_id: str
    parent_id: str
    flags: str


def parse_traceparent(value: Optional[str]) -> Optional[TraceParent]:
    """Parse a version-00 ``traceparent`` header, or None if absent or malformed."""
    match = _TRACEPARENT.match(value or "")
    if not match:
        return None
    trace_id, parent_id, flags = match.groups()
    if not int(trace_id, 16) or not int(parent_id, 16):
        return None
    return TraceParent(trace_id, parent_id, flags)


def get_client_ip(request: Request) -> str:
    """
    Best guess at the caller's address, used to key rate limits.

    Proxy headers win over the socket peer: the first X-Forwarded-For hop,
    then X-Real-IP.
    """
    forwarded = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    if forwarded:
        return forwarded

    real_ip = request.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Attach a request id and trace context to every request.

    Incoming ``X-Request-ID`` and ``traceparent`` headers are honoured and
    echoed on the response. Both ids are bound to the structlog context so
    every log line of the request carries them.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        parent = parse_traceparent(request.headers.get("traceparent"))
        tracestate = request.headers.get("tracestate")

        trace_id = parent.trace_id if parent else uuid.uuid4().hex
        flags = parent.flags if parent else "01"
        span_id = uuid.uuid4().hex[:16]

        request.state.request_id = request_id
        request.state.trace_context = {
            "trace_id": trace_id,
            "span_id": span_id,
            "parent_span_id": parent.parent_id if parent else None,
            "flags": flags,
            "tracestate": tracestate,
        }
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, trace_id=trace_id)

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["traceparent"] = f"00-{trace_id}-{span_id}-{flags}"
        if tracestate:
            response.headers["tracestate"] = tracestate
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Log one line per request with timing and record it in the request metrics."""

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        quiet_paths: Optional[Iterable[str]] = None,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.quiet_paths = frozenset(quiet_paths) if quiet_paths is not None else _QUIET_PATHS

    async def _describe(self, request: Request) -> dict:
        fields = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": get_client_ip(request),
            "tenant_id": request.headers.get(TENANT_HEADER),
        }
        if self.log_request_body and request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            if body:
                fields["request_body"] = body.decode("utf-8", errors="replace")[:1000]
        return fields

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.quiet_paths:
            return await call_next(request)

        fields = await self._describe(request)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.error("Request crashed outside the exception handlers", exc_info=True, extra=fields)
            problem = InternalServerError(instance=str(request.url))
            response = JSONResponse(status_code=500, content=problem.problem_details)

        elapsed = time.perf_counter() - started
        route = request.scope.get("route")
        metrics_collector.record_request(
            request.method, getattr(route, "path", request.url.path), response.status_code, elapsed
        )

        fields.update(status_code=response.status_code, duration_ms=round(elapsed * 1000, 2))
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, "%s %s -> %s", request.method, request.url.path, response.status_code, extra=fields)
        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """Install the middleware stack. Correlation runs outermost so access logs can see its ids."""
    if enable_logging:
        app.add_middleware(
            AccessLogMiddleware,
            log_request_body=settings.debug and not settings.is_production,
        )
    app.add_middleware(CorrelationMiddleware)
