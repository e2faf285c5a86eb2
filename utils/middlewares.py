"""
utils/middlewares.py
--------------------
Request-scoped middleware for the sandbox service.

- `RequestContextMiddleware` binds a request id (taken from `X-Request-ID` when
  the client sends one) to the logging context vars, echoes it back as a
  response header, records a Sentry breadcrumb, and logs one line per request.
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from utils.logging_config import request_id_var
from utils.sentry_utils import capture_breadcrumb

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

# Polling clients hit these constantly; keep them out of INFO logs.
QUIET_PATH_PREFIXES = ("/health", "/static/")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Per-request correlation id + access log line.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = self._request_id(request)
        request.state.request_id = request_id
        req_token = request_id_var.set(request_id)

        start_time = time.time()
        try:
            capture_breadcrumb(
                category="request",
                message=f"{request.method} {request.url.path}",
                data={"request_id": request_id},
            )
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            level = logging.DEBUG if request.url.path.startswith(QUIET_PATH_PREFIXES) else logging.INFO
            logger.log(
                level,
                "%s %s -> %d (%.1f ms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                },
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(req_token)

    @staticmethod
    def _request_id(request: Request) -> str:
        incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH:
            return incoming
        return str(uuid.uuid4())


# ------------------------------------------------------------------ #
#                       Application helper                           #
# ------------------------------------------------------------------ #
def setup_middlewares(app: FastAPI) -> FastAPI:
    """Mounts the request-scoped middlewares. CORS is added in `main`."""
    app.add_middleware(RequestContextMiddleware)
    return app
