"""
Phase scheduling and risk-recovery service.

    from phasetrack import create_app
    app = create_app()            # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import event
from sqlalchemy.engine import Engine

from phasetrack.config import config
from phasetrack.middleware.logging_config import configure_logging
from phasetrack.middleware.rate_limiter import init_rate_limits
from phasetrack.middleware.timing import init_request_timing
from phasetrack.models import db

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(key_func=get_remote_address, default_limits=[])


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, _record):
    # SQLite ignores ON DELETE clauses unless the pragma is set per connection
    if "sqlite" in type(dbapi_conn).__module__:
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def _init_cors(app):
    origins = app.config.get("CORS_ORIGINS", "*")
    if not origins or origins == "*":
        CORS(app)
        return
    CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])


def _register_blueprints(app):
    from phasetrack.blueprints.analysis_bp import analysis_bp
    from phasetrack.blueprints.dependency_bp import dependency_bp
    from phasetrack.blueprints.health_bp import health_bp
    from phasetrack.blueprints.phase_bp import phase_bp
    from phasetrack.blueprints.project_bp import project_bp

    for bp in (project_bp, phase_bp, dependency_bp, analysis_bp, health_bp):
        app.register_blueprint(bp)


def _register_app_errors(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled 500: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500


def create_app(config_name=None):
    """Build the app for ``config_name`` (development, testing or production)."""
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name or os.getenv("APP_ENV", "development")]())
    os.makedirs(app.instance_path, exist_ok=True)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    _init_cors(app)
    init_request_timing(app)

    @app.before_request
    def _require_json_body():
        if request.method not in ("POST", "PUT", "PATCH") or not request.path.startswith("/api/"):
            return
        if request.data and "json" not in (request.content_type or ""):
            abort(415, description="Content-Type must be application/json")

    from phasetrack.services.notification import NotificationService
    from phasetrack.services.phase_events import init_phase_events

    init_phase_events(app).subscribe(NotificationService.notify_phase_event)

    # Model modules must be imported before create_all and for Alembic autogenerate
    from phasetrack.models import audit, notification, phase, project  # noqa: F401

    with app.app_context():
        db.create_all()

    _register_blueprints(app)
    _register_app_errors(app)
    init_rate_limits(app, limiter)

    return app
