"""
Shared pytest fixtures for the phase scheduling test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_project: factory that creates a project through the service layer
    - log_work: factory that adds a WorkLog row for a phase
"""

import pytest

from phasetrack import create_app
from phasetrack.models import db as _db
from phasetrack.models.phase import Phase, WorkLog
from phasetrack.services.project_service import create_project


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def make_project():
    """Create a project whose phases have the given planned weeks.

    Returns the project dict (with ``phases`` in order).
    """

    def _make(weeks=(2, 3, 1, 4), name="Riverside Library", start_date="2026-01-05", **kwargs):
        phases = [
            {"phase_name": f"Phase {i}", "planned_weeks": w}
            for i, w in enumerate(weeks, start=1)
        ]
        return create_project(name=name, phases=phases, start_date=start_date, **kwargs)

    return _make


@pytest.fixture()
def log_work():
    """Add a WorkLog row for ``phase_id`` and commit."""

    def _log(phase_id, engineer_id=1, hours=4.0):
        phase = _db.session.get(Phase, phase_id)
        wl = WorkLog(
            project_id=phase.project_id,
            phase_id=phase_id,
            engineer_id=engineer_id,
            hours=hours,
        )
        _db.session.add(wl)
        _db.session.commit()
        return wl

    return _log

