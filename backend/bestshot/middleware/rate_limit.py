"""
Best Shot Backend — Access Code Guessing Limiter
==================================================

What:  Per-IP sliding window over failed vote-link lookups.
Why:   The access code is the only credential on /api/vote/{code}. A client
       that keeps hitting unknown codes is enumerating them; legitimate
       participants open their own link and never fail.
How:   Every 404 response on /api/vote/* records a timestamp for the client
       IP. While the IP has code_guess_limit failures inside the last
       code_guess_window seconds, further /api/vote/* requests are answered
       with 429 and a Retry-After header without touching the database.

In-memory and per-process. Multi-worker deployments get one window per
worker.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from bestshot.config import settings
from bestshot.exceptions import RateLimitExceededError
from bestshot.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

VOTE_PATH_PREFIX = "/api/vote/"


class CodeGuessLimitMiddleware(BaseHTTPMiddleware):

    def __init__(
        self,
        app,
        limit: Optional[int] = None,
        window: Optional[int] = None,
        clock: Callable[[], float] = time.time,
        sweep_every: int = 1000,
    ):
        super().__init__(app)
        self.limit = limit or settings.code_guess_limit
        self.window = window or settings.code_guess_window
        self._clock = clock
        # IP → timestamps of failed lookups
        self._failures: Dict[str, List[float]] = defaultdict(list)
        # Every sweep_every vote requests, IPs with no recent failure are dropped
        self._sweep_every = sweep_every
        self._seen = 0

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not request.url.path.startswith(VOTE_PATH_PREFIX):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = self._clock()
        window_start = now - self.window

        self._seen += 1
        if self._seen % self._sweep_every == 0:
            self._cleanup_inactive_ips(window_start)

        recent = [ts for ts in self._failures.get(client_ip, ()) if ts > window_start]
        if recent:
            self._failures[client_ip] = recent
        else:
            self._failures.pop(client_ip, None)

        if len(recent) >= self.limit:
            retry_after = int(recent[0] + self.window - now) + 1
            logger.warning(
                "Blocking vote lookups from %s: %d unknown codes in %ds",
                client_ip,
                len(recent),
                self.window,
            )
            exc = RateLimitExceededError(retry_after=retry_after)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": exc.message,
                    "details": {"retry_after": retry_after},
                    "request_id": request_id_var.get(""),
                },
                headers={"Retry-After": str(retry_after)},
            )

        response = await call_next(request)

        if response.status_code == 404:
            self._failures[client_ip].append(now)

        return response

    def _cleanup_inactive_ips(self, window_start: float) -> None:
        """Forget IPs whose failures have all aged out of the window."""
        inactive_ips = [
            ip for ip, timestamps in self._failures.items()
            if not timestamps or max(timestamps) <= window_start
        ]
        for ip in inactive_ips:
            del self._failures[ip]

        if inactive_ips:
            logger.debug("Cleaned up %d inactive IP entries", len(inactive_ips))

    @property
    def tracked_ips(self) -> int:
        return len(self._failures)
