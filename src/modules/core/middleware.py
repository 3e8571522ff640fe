import time
import uuid
from contextvars import ContextVar
from typing import Callable

import structlog
from django.http import HttpRequest, HttpResponse

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

logger = structlog.get_logger(__name__)


def _incoming_request_id(request: HttpRequest) -> str:
    """Client supplied id, or a fresh one when absent or oversized."""
    cid = (request.META.get("HTTP_X_REQUEST_ID") or "").strip()
    if not cid or len(cid) > MAX_REQUEST_ID_LENGTH:
        return str(uuid.uuid4())
    return cid


class CorrelationIdMiddleware:
    """Tag every log line of a request with one correlation id.

    The id is bound into structlog context vars, so service and repository
    logs emitted while handling the request (``order.item_added``,
    ``transport.scheduled``...) carry it, and it is echoed back in the
    ``X-Request-ID`` response header.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        cid = _incoming_request_id(request)
        correlation_id_var.set(cid)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=cid)

        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = round((time.monotonic() - started) * 1000, 2)

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "http.request_finished",
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration_ms=elapsed_ms,
        )

        response[REQUEST_ID_HEADER] = cid
        return response
