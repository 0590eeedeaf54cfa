"""
Analysis API tests: critical path, cascade, recovery suggestions,
schedule optimization, plus health endpoints.
"""

import pytest

BASE = "/api/v1"


@pytest.fixture()
def project(make_project):
    return make_project([2, 3, 1, 4])


def _ids(project):
    return [p["id"] for p in project["phases"]]


class TestCriticalPathAPI:
    def test_default_mode(self, client, project):
        res = client.get(f"{BASE}/projects/{project['id']}/critical-path")
        assert res.status_code == 200
        data = res.get_json()
        assert data["mode"] == "touching"
        assert data["total_duration"] == 70
        assert data["critical_phase_ids"] == _ids(project)
        # JSON object keys are strings
        assert data["float_by_phase_id"][str(_ids(project)[0])] == 0

    def test_strict_mode(self, client, project):
        res = client.get(f"{BASE}/projects/{project['id']}/critical-path?mode=strict")
        assert res.status_code == 200
        assert res.get_json()["mode"] == "strict"

    def test_bad_mode(self, client, project):
        res = client.get(f"{BASE}/projects/{project['id']}/critical-path?mode=loose")
        assert res.status_code == 422

    def test_unknown_project(self, client):
        assert client.get(f"{BASE}/projects/31/critical-path").status_code == 404


class TestCascadeAPI:
    def test_cascade(self, client, project):
        first = _ids(project)[0]
        res = client.get(f"{BASE}/phases/{first}/cascade?delay_days=5")
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 3
        assert [e["impact_magnitude"] for e in data["effects"]] == [5.0, 4.0, 3.2]

    def test_missing_delay(self, client, project):
        res = client.get(f"{BASE}/phases/{_ids(project)[0]}/cascade")
        assert res.status_code == 422

    @pytest.mark.parametrize("raw", ["nan", "inf", "-inf"])
    def test_non_finite_delay_422(self, client, project, raw):
        res = client.get(f"{BASE}/phases/{_ids(project)[0]}/cascade?delay_days={raw}")
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_bad_impact_type(self, client, project):
        res = client.get(f"{BASE}/phases/{_ids(project)[0]}/cascade?delay_days=2&impact_type=vibes")
        assert res.status_code == 422


class TestRecoveryAPI:
    def test_suggestions(self, client, project):
        res = client.post(
            f"{BASE}/projects/{project['id']}/recovery-suggestions",
            json={
                "type": "timeline_deviation",
                "severity": "critical",
                "phase_ids": [_ids(project)[0]],
                "predicted_impact": {"days": 10, "cost": 0},
            },
        )
        assert res.status_code == 200
        data = res.get_json()
        assert data["project_id"] == project["id"]
        assert data["suggestions"][0]["id"] == "stakeholder_engagement"
        assert len(data["suggestions"]) == 4

    def test_invalid_warning(self, client, project):
        res = client.post(
            f"{BASE}/projects/{project['id']}/recovery-suggestions",
            json={"type": "timeline_deviation", "severity": "extreme"},
        )
        assert res.status_code == 422
        assert "severity" in res.get_json()["details"]

    def test_unknown_project(self, client):
        res = client.post(
            f"{BASE}/projects/404/recovery-suggestions",
            json={"type": "skill_gap", "severity": "warning"},
        )
        assert res.status_code == 404


class TestOptimizationAPI:
    def test_schedule_optimization(self, client, project):
        res = client.get(f"{BASE}/projects/{project['id']}/schedule-optimization")
        assert res.status_code == 200
        data = res.get_json()
        assert data["bottleneck_phase_ids"] == [_ids(project)[3]]
        assert data["potential_time_savings"] == 0


class TestHealthAPI:
    def test_health(self, client):
        res = client.get(f"{BASE}/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_live(self, client):
        res = client.get(f"{BASE}/health/live")
        assert res.status_code == 200
        data = res.get_json()
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["redis"]["status"] == "skipped"

    def test_request_id_header(self, client):
        res = client.get(f"{BASE}/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
