"""Middleware for request processing and observability."""

import time
from uuid import uuid4

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-Id"

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id and log its outcome.

    - Reuses the ``X-Correlation-Id`` request header or generates a UUID4
    - Binds it to structlog context vars for every log line of the request
    - Echoes it back in the response header
    - Logs ``request_completed`` at error/warning/info for 5xx/4xx/other
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid4())
        request.state.correlation_id = correlation_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            # rendered as a 500 by the outermost error handler
            self._log_completed(request, 500, started)
            raise

        response.headers[CORRELATION_HEADER] = correlation_id
        self._log_completed(request, response.status_code, started)
        return response

    @staticmethod
    def _log_completed(request: Request, status_code: int, started: float) -> None:
        if status_code >= 500:
            log = logger.error
        elif status_code >= 400:
            log = logger.warning
        else:
            log = logger.info
        log(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
