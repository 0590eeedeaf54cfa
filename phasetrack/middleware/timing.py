"""
Request id and access timing.

Every response carries ``X-Request-ID`` (echoed from the request when the
client sent one) and ``X-Request-Duration-Ms``.  The access line is logged
with the project and phase ids taken from the URL, at DEBUG normally,
WARNING when slow and ERROR on a 5xx.  Health probes are not logged.
"""

import logging
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

SLOW_THRESHOLD_MS = 1000

_QUIET_PREFIX = "/api/v1/health"


def _access_level(status_code, duration_ms):
    if status_code >= 500:
        return logging.ERROR
    if duration_ms > SLOW_THRESHOLD_MS:
        return logging.WARNING
    return logging.DEBUG


def init_request_timing(app: Flask):
    @app.before_request
    def _begin():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _finish(response):
        started = g.get("request_start")
        if started is None:
            return response

        elapsed = (time.perf_counter() - started) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"

        if request.path.startswith(_QUIET_PREFIX):
            return response

        scope = request.view_args or {}
        logger.log(
            _access_level(response.status_code, elapsed),
            "%s %s -> %d in %.0fms",
            request.method, request.path, response.status_code, elapsed,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed,
                "remote_addr": request.remote_addr,
                "project_id": scope.get("project_id"),
                "phase_id": scope.get("phase_id"),
            },
        )
        return response
