"""
Project and dependency API tests.

Covers:
    - POST /projects happy path, timeline mismatch, validation errors
    - GET project / phases, 404 envelope
    - dependency list / add / generate / delete with error status mapping
"""

import pytest

BASE = "/api/v1"

PHASES = [
    {"phase_name": "Concept", "planned_weeks": 2},
    {"phase_name": "Schematic Design", "planned_weeks": 3},
    {"phase_name": "Permits", "planned_weeks": 1},
    {"phase_name": "Construction Docs", "planned_weeks": 4},
]


def _create(client, **overrides):
    body = {"name": "Harbor Pavilion", "start_date": "2026-03-02", "phases": PHASES}
    body.update(overrides)
    return client.post(f"{BASE}/projects", json=body, headers={"X-User-Id": "7"})


# ═════════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════════


class TestProjectAPI:
    def test_create(self, client):
        res = _create(client, planned_total_weeks=10)
        assert res.status_code == 201
        data = res.get_json()
        assert data["name"] == "Harbor Pavilion"
        assert data["created_by"] == 7
        assert [p["phase_order"] for p in data["phases"]] == [1, 2, 3, 4]
        assert [p["status"] for p in data["phases"]] == ["ready"] + ["not_started"] * 3
        assert data["phases"][0]["planned_start_date"] == "2026-03-02"
        assert data["phases"][0]["planned_end_date"] == "2026-03-16"
        assert data["phases"][1]["planned_start_date"] == "2026-03-16"

    def test_timeline_mismatch(self, client):
        res = _create(client, planned_total_weeks=12)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "Timeline mismatch" in body["error"]

    def test_timeline_mismatch_allowed(self, client):
        res = _create(client, planned_total_weeks=12, allow_timeline_mismatch=True)
        assert res.status_code == 201
        assert res.get_json()["planned_total_weeks"] == 12

    def test_missing_name(self, client):
        res = _create(client, name="")
        assert res.status_code == 422

    def test_bad_weeks(self, client):
        res = _create(client, phases=[{"phase_name": "Concept", "planned_weeks": 0}])
        assert res.status_code == 422

    @pytest.mark.parametrize("overrides, field", [
        ({"planned_total_weeks": "abc"}, "planned_total_weeks"),
        ({"planned_total_weeks": -3}, "planned_total_weeks"),
        ({"predicted_hours": "lots"}, "predicted_hours"),
        ({"phases": [{"phase_name": "Concept", "planned_weeks": 2, "predicted_hours": "x"}]},
         "phases[1].predicted_hours"),
    ])
    def test_bad_numeric_fields_422(self, client, overrides, field):
        res = _create(client, **overrides)
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert field in body["details"]

    def test_non_finite_weeks_422(self, client):
        res = client.post(
            f"{BASE}/projects",
            data='{"name": "Harbor Pavilion", "phases": [{"phase_name": "Concept", "planned_weeks": Infinity}]}',
            content_type="application/json",
        )
        assert res.status_code == 422

    def test_predicted_hours_stored_as_numbers(self, client):
        res = _create(client, predicted_hours="120",
                      phases=[{"phase_name": "Concept", "planned_weeks": 2, "predicted_hours": "40.5"}])
        assert res.status_code == 201
        data = res.get_json()
        assert data["predicted_hours"] == 120
        assert data["phases"][0]["predicted_hours"] == 40.5

    def test_bad_start_date(self, client):
        res = _create(client, start_date="next tuesday")
        assert res.status_code == 422

    def test_non_json_body_rejected(self, client):
        res = client.post(f"{BASE}/projects", data="name=x", content_type="text/plain")
        assert res.status_code == 415

    def test_get_and_list_phases(self, client):
        project_id = _create(client).get_json()["id"]

        res = client.get(f"{BASE}/projects/{project_id}")
        assert res.status_code == 200
        assert len(res.get_json()["phases"]) == 4

        res = client.get(f"{BASE}/projects/{project_id}/phases")
        assert res.status_code == 200
        assert res.get_json()["total"] == 4

    def test_get_unknown(self, client):
        res = client.get(f"{BASE}/projects/999")
        assert res.status_code == 404
        body = res.get_json()
        assert body["code"] == "ERR_NOT_FOUND"
        assert body["error"] == "Project id=999 not found"


# ═════════════════════════════════════════════════════════════════════════════
# Dependencies
# ═════════════════════════════════════════════════════════════════════════════


class TestDependencyAPI:
    def _project(self, client):
        data = _create(client).get_json()
        return data["id"], [p["id"] for p in data["phases"]]

    def test_list_default_chain(self, client):
        project_id, ids = self._project(client)
        res = client.get(f"{BASE}/projects/{project_id}/dependencies")
        assert res.status_code == 200
        data = res.get_json()
        assert data["total"] == 3
        assert data["items"][0]["predecessor_name"] == "Concept"
        assert data["items"][0]["successor_name"] == "Schematic Design"

    def test_add_edge(self, client):
        project_id, ids = self._project(client)
        res = client.post(
            f"{BASE}/projects/{project_id}/dependencies",
            json={"predecessor_phase_id": ids[0], "successor_phase_id": ids[3], "weight_factor": 0.7},
        )
        assert res.status_code == 201
        edge = res.get_json()
        assert edge["successor_phase_id"] == ids[3]
        assert edge["weight_factor"] == 0.7
        assert edge["dependency_type"] == "finish_to_start"

    def test_duplicate_edge_409(self, client):
        project_id, ids = self._project(client)
        res = client.post(
            f"{BASE}/projects/{project_id}/dependencies",
            json={"predecessor_phase_id": ids[0], "successor_phase_id": ids[1]},
        )
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_cycle_422(self, client):
        project_id, ids = self._project(client)
        res = client.post(
            f"{BASE}/projects/{project_id}/dependencies",
            json={"predecessor_phase_id": ids[3], "successor_phase_id": ids[0]},
        )
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_GRAPH_INVALID"

    def test_self_reference_422(self, client):
        project_id, ids = self._project(client)
        res = client.post(
            f"{BASE}/projects/{project_id}/dependencies",
            json={"predecessor_phase_id": ids[1], "successor_phase_id": ids[1]},
        )
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_GRAPH_INVALID"

    def test_nan_weight_422(self, client):
        project_id, ids = self._project(client)
        res = client.post(
            f"{BASE}/projects/{project_id}/dependencies",
            data=('{"predecessor_phase_id": %d, "successor_phase_id": %d, "weight_factor": NaN}'
                  % (ids[0], ids[3])),
            content_type="application/json",
        )
        assert res.status_code == 422
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert body["details"] == {"weight_factor": "nan"}

    def test_missing_ids(self, client):
        project_id, _ = self._project(client)
        res = client.post(f"{BASE}/projects/{project_id}/dependencies", json={"predecessor_phase_id": 1})
        assert res.status_code == 422
        assert res.get_json()["details"]["missing"] == ["successor_phase_id"]

    def test_bad_type(self, client):
        project_id, ids = self._project(client)
        res = client.post(
            f"{BASE}/projects/{project_id}/dependencies",
            json={"predecessor_phase_id": ids[0], "successor_phase_id": ids[2], "dependency_type": "whenever"},
        )
        assert res.status_code == 422

    def test_delete_and_regenerate(self, client):
        project_id, ids = self._project(client)
        edges = client.get(f"{BASE}/projects/{project_id}/dependencies").get_json()["items"]

        res = client.delete(f"{BASE}/dependencies/{edges[0]['id']}")
        assert res.status_code == 200
        assert res.get_json() == {"deleted": edges[0]["id"]}

        res = client.post(f"{BASE}/projects/{project_id}/dependencies/generate")
        assert res.status_code == 201
        data = res.get_json()
        assert data["count"] == 1
        assert data["created"][0]["predecessor_phase_id"] == ids[0]

    def test_delete_unknown(self, client):
        res = client.delete(f"{BASE}/dependencies/5050")
        assert res.status_code == 404
