"""
Request Middleware
==================

Request logging and response timing.

Every logged line carries a request id (taken from an incoming
``X-Request-ID`` header when the caller supplies one) and, for player
routes, the player id, so a rejected batch in the engine log can be tied
back to the request that submitted it.

Usage:
    from rosterguard.middleware import setup_middleware
    setup_middleware(app, settings)
"""

import logging
import re
import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from rosterguard.config import Settings

logger = logging.getLogger(__name__)


REQUEST_ID_HEADER = "X-Request-ID"

# /api/players/{player_id}[/...]; "bulk-update" is a collection route
_PLAYER_PATH = re.compile(r"^/api/players/(?P<player_id>[^/]+)")


def player_id_from_path(path: str) -> Optional[str]:
    match = _PLAYER_PATH.match(path)
    if match is None or match.group("player_id") == "bulk-update":
        return None
    return match.group("player_id")


# =============================================================================
# REQUEST LOGGING
# =============================================================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every API request with its outcome.

    Log format:
    Request: {method} {path} {status} {duration_ms}ms request_id=... player=... client=...

    Writes (POST) that fail with 4xx are logged at WARNING, 5xx at ERROR;
    successful reads are logged at DEBUG to keep dashboards polling
    ``update-history`` out of the INFO stream.
    """

    # Probe endpoints are polled constantly
    EXCLUDE_PATHS = {"/health", "/ready", "/live", "/favicon.ico"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.EXCLUDE_PATHS:
            return await call_next(request)

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        start_time = time.perf_counter()

        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            status_code = response.status_code if response else 500
            player_id = player_id_from_path(request.url.path)

            line = (
                f"Request: {request.method} {request.url.path} {status_code} {duration_ms:.2f}ms "
                f"request_id={request_id} player={player_id or '-'} client={self._get_client_ip(request)}"
            )

            if status_code >= 500:
                logger.error(line)
            elif status_code >= 400:
                logger.warning(line)
            elif request.method == "GET":
                logger.debug(line)
            else:
                logger.info(line)

            if response:
                response.headers[REQUEST_ID_HEADER] = request_id

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP, handling proxies."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()

        if request.client:
            return request.client.host

        return "unknown"


async def add_timing_header(request: Request, call_next):
    """Add X-Response-Time header to all responses."""
    start_time = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Response-Time"] = f"{(time.perf_counter() - start_time) * 1000:.2f}ms"
    return response


# =============================================================================
# SETUP
# =============================================================================

def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register CORS, timing and request logging middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "X-Response-Time"],
    )
    app.middleware("http")(add_timing_header)
    app.add_middleware(RequestLoggingMiddleware)
