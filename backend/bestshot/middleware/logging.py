"""
Best Shot Backend — Request Logging Middleware
================================================

What:  One access log line per HTTP request: method, path, status, duration,
       request id and client IP.

What we log vs what we DON'T log:
    Log:        method, masked path, status, duration, IP, request ID
    Don't log:  request bodies, and access codes. A code is the participant's
                only credential, so /api/vote/ABC123/submit is written as
                /api/vote/{code}/submit.
"""

import logging
import re
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from bestshot.middleware.request_id import request_id_var

logger = logging.getLogger("bestshot.access")

_VOTE_CODE_RE = re.compile(r"^(/api/vote/)[^/]+")

# Probes and docs would drown out real traffic
QUIET_PATHS = {"/health"}


def mask_path(path: str) -> str:
    """Replace the access code segment of a vote path with {code}."""
    return _VOTE_CODE_RE.sub(r"\1{code}", path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = mask_path(request.url.path)

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
