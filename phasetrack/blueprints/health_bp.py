"""
Health probes.

    GET /api/v1/health         service name and status
    GET /api/v1/health/ready   readiness, 200 while the process serves
    GET /api/v1/health/live    database and limiter storage round trips
"""

import logging
import time

import redis
from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from phasetrack.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")

SERVICE_NAME = "phasetrack"


def _elapsed_ms(started):
    return round((time.perf_counter() - started) * 1000, 1)


def _check_database():
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Liveness probe: database unreachable: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": _elapsed_ms(started)}


def _check_redis(url):
    if not url:
        return {"status": "skipped", "detail": "REDIS_URL not set"}
    started = time.perf_counter()
    try:
        redis.from_url(url, socket_timeout=2).ping()
    except redis.RedisError as exc:
        logger.warning("Liveness probe: redis unreachable: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": _elapsed_ms(started)}


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": SERVICE_NAME}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Only the database decides the status code; redis backs the limiter and may be absent."""
    checks = {
        "database": _check_database(),
        "redis": _check_redis(current_app.config.get("REDIS_URL", "")),
    }
    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
        "app": {"name": SERVICE_NAME, "debug": current_app.debug, "testing": current_app.testing},
    }), 200 if healthy else 503
