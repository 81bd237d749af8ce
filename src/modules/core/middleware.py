import time
import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger()

CORRELATION_HEADER = "X-Request-ID"
QUIET_PATHS = frozenset({"/health"})


class CorrelationIdMiddleware:
    """Attach a correlation ID to every request and to every log line it produces.

    The ID comes from the ``X-Request-ID`` header when the caller (usually
    the admin portal front end) sends one, otherwise a UUID4 is generated.
    It is echoed back on the response so support staff can match a portal
    error to the server logs for an order.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = request.META.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        quiet = request.path in QUIET_PATHS
        started = time.monotonic()
        if not quiet:
            logger.info("request.started", method=request.method, path=request.get_full_path())

        response = self.get_response(request)

        if not quiet:
            logger.info(
                "request.finished",
                method=request.method,
                path=request.get_full_path(),
                status_code=response.status_code,
                duration_ms=round((time.monotonic() - started) * 1000, 2),
            )

        response[CORRELATION_HEADER] = cid
        return response
