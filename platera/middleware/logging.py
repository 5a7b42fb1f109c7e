"""
Platera Backend — Request Logging Middleware
============================================

What:  One access log line per request: method, path, status, duration,
       request id, resolved user and client address.
Who:   Logger "platera.access"; fields are also attached as `extra` for
       structured handlers.

Level by status class:
    5xx → ERROR, 4xx → WARNING, everything else → INFO

Never logged: request bodies, cookies, Authorization headers.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from platera.middleware.request_id import request_id_var

logger = logging.getLogger("platera.access")

QUIET_PATHS = {"/health"}


def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        rid = request_id_var.get("")
        user_id = getattr(request.state, "user_id", "-")
        client_ip = client_address(request)
        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] user=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            user_id,
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "user_id": user_id,
                "client_ip": client_ip,
            },
        )
        return response
