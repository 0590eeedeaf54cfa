"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in phasetrack/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from phasetrack.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

# Blueprints whose routes mutate phase or edge state
WRITE_BLUEPRINTS = ("projects", "phases", "dependencies")

# Analysis endpoints recompute on every call
READ_BLUEPRINTS = ("analysis",)


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Lifecycle / graph writes:  60/minute
        - Analysis reads:            200/minute
        - Health check:              exempt

    Rate limiting is disabled when RATELIMIT_ENABLED is false (testing).
    """
    if not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled (RATELIMIT_ENABLED=False)")
        return

    for bp_name in WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: write=%s read=%s", WRITE_LIMIT, READ_LIMIT)
