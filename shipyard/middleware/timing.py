"""
Request id and duration for every response.

Sets ``g.request_id`` (taken from an incoming X-Request-ID when present) and
echoes it back along with X-Request-Duration-Ms. API requests are logged
with the context fields the JSON formatter understands.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000

# Probed every few seconds by the load balancer
_UNLOGGED_PREFIX = "/api/v1/health"


def _level_for(status, duration_ms):
    if duration_ms > SLOW_REQUEST_MS:
        return logging.WARNING, "Slow request"
    if status >= 500:
        return logging.ERROR, "Server error"
    return logging.DEBUG, "Request"


def init_request_timing(app: Flask):

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"

        if not request.path.startswith("/api/") or request.path.startswith(_UNLOGGED_PREFIX):
            return response

        user = getattr(g, "current_user", None)
        level, label = _level_for(response.status_code, duration_ms)
        logger.log(
            level, "%s: %s %s %d", label, request.method, request.path, response.status_code,
            extra={
                "request_id": g.request_id,
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "user_id": user.user_id if user is not None else None,
            },
        )
        return response
