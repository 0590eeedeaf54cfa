"""
Infrastructure tests: event bus, logging formatter, config selection,
notification service and the app-level error envelopes.
"""

import json
import logging

import pytest
from flask import g

from phasetrack import create_app
from phasetrack.config import ProductionConfig, TestingConfig, config
from phasetrack.middleware.logging_config import JSONFormatter, RequestContextFilter
from phasetrack.middleware.timing import _access_level
from phasetrack.services.notification import NotificationService
from phasetrack.services.phase_events import PhaseEvent, PhaseEventBus


def _event(action="approve", project_id=None):
    return PhaseEvent(project_id=project_id, phase_id=2, new_status="approved", actor_id=3, action=action)


class TestPhaseEventBus:
    def test_publish_counts_successful_handlers(self):
        bus = PhaseEventBus()
        seen = []
        bus.subscribe(seen.append)

        def _broken(event):
            raise ValueError("nope")

        bus.subscribe(_broken)
        assert bus.publish(_event()) == 1
        assert seen[0].action == "approve"

    def test_subscribe_is_idempotent(self):
        bus = PhaseEventBus()
        seen = []
        bus.subscribe(seen.append)
        bus.subscribe(seen.append)
        assert len(bus.handlers) == 1
        bus.unsubscribe(seen.append)
        assert bus.publish(_event()) == 0

    def test_event_to_dict(self):
        data = _event().to_dict()
        assert data["phase_id"] == 2
        assert data["new_status"] == "approved"
        assert "occurred_at" in data

    def test_app_bus_has_notification_subscriber(self, app):
        bus = app.extensions["phase_events"]
        assert NotificationService.notify_phase_event in bus.handlers


class TestNotificationService:
    def test_notify_unknown_action_uses_generic_title(self, make_project):
        project = make_project([1])
        notif = NotificationService.notify_phase_event(_event(action="archive", project_id=project["id"]))
        assert notif.title == "Phase 2 updated"
        assert notif.message == "Status: approved (by user 3)."

    def test_create_targets_recipient(self, make_project):
        project = make_project([1])
        notif = NotificationService.create(title="Ping", recipient="12", project_id=project["id"])
        data = notif.to_dict()
        assert data["recipient"] == "12"
        assert data["is_read"] is False
        assert data["read_at"] is None
        assert data["category"] == "system"

    def test_notify_known_action_template(self, make_project):
        project = make_project([1])
        notif = NotificationService.notify_phase_event(_event(action="delay", project_id=project["id"]))
        assert notif.title == "Delay recorded on phase 2"
        assert notif.severity == "warning"


class TestLogging:
    def test_json_formatter_includes_context(self):
        record = logging.LogRecord("phasetrack.test", logging.INFO, __file__, 10, "hello %s", ("x",), None)
        record.phase_id = 9
        record.request_id = "r1"
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "hello x"
        assert payload["phase_id"] == 9
        assert payload["request_id"] == "r1"
        assert "project_id" not in payload

    def test_context_filter_stamps_request_scope(self, app):
        record = logging.LogRecord("phasetrack.test", logging.INFO, __file__, 10, "msg", (), None)
        with app.test_request_context("/api/v1/projects"):
            g.request_id = "req-7"
            g.actor_id = 4
            assert RequestContextFilter().filter(record) is True
        assert record.request_id == "req-7"
        assert record.actor_id == 4

    def test_context_filter_outside_request_leaves_record(self):
        record = logging.LogRecord("phasetrack.test", logging.INFO, __file__, 10, "msg", (), None)
        assert RequestContextFilter().filter(record) is True
        assert not hasattr(record, "request_id")

    @pytest.mark.parametrize("status, ms, level", [
        (200, 5.0, logging.DEBUG),
        (201, 2500.0, logging.WARNING),
        (503, 5.0, logging.ERROR),
    ])
    def test_access_log_level(self, status, ms, level):
        assert _access_level(status, ms) == level


class TestConfig:
    def test_testing_config(self, app):
        assert app.config["TESTING"] is True
        assert app.config["RATELIMIT_ENABLED"] is False
        assert config["testing"] is TestingConfig

    def test_production_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        with pytest.raises(RuntimeError):
            ProductionConfig()


class TestAppErrors:
    def test_unknown_route_404(self, client):
        res = client.get("/api/v1/nowhere")
        assert res.status_code == 404
        assert res.get_json()["path"] == "/api/v1/nowhere"

    def test_method_not_allowed(self, client):
        res = client.delete("/api/v1/projects")
        assert res.status_code == 405

    def test_second_app_instance_gets_own_bus(self, app):
        other = create_app("testing")
        assert other.extensions["phase_events"] is not app.extensions["phase_events"]
