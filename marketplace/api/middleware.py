"""Per-request logging context for the marketplace API."""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from marketplace.logging import (
    clear_request_context,
    log_api_request,
    set_request_context,
)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log its outcome and latency.

    The id is taken from ``X-Request-ID`` when the caller sends one and is
    echoed back on the response. The acting user is bound later, once the
    session dependency has resolved it.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        set_request_context(request_id=request_id)
        started = time.perf_counter()

        def finish(status_code: int, error: Optional[str] = None) -> None:
            log_api_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=(time.perf_counter() - started) * 1000,
                user_agent=request.headers.get("User-Agent"),
                error=error,
            )

        try:
            response = await call_next(request)
        except Exception as e:
            finish(500, str(e))
            raise
        else:
            finish(response.status_code)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_request_context()
