"""
Dependency graph service tests.

Covers:
    - default sequential chain created with the project (and idempotent regeneration)
    - add_edge validation order: type, lag, weight, self-reference, scope, duplicate, cycle
    - remove_edge and audit rows
"""

import pytest

from phasetrack.core.exceptions import ConflictError, GraphError, NotFoundError, ValidationError
from phasetrack.models import db
from phasetrack.models.audit import AuditLog
from phasetrack.models.phase import PhaseDependency
from phasetrack.services.dependency_graph import (
    add_edge,
    edges_of,
    generate_default_edges,
    remove_edge,
)


def _ids(project):
    return [p["id"] for p in project["phases"]]


# ═════════════════════════════════════════════════════════════════════════════
# Default chain
# ═════════════════════════════════════════════════════════════════════════════


class TestDefaultEdges:
    def test_project_creation_chains_consecutive_phases(self, make_project):
        project = make_project([2, 3, 1, 4])
        ids = _ids(project)

        edges = edges_of(project["id"])
        pairs = [(e["predecessor_phase_id"], e["successor_phase_id"]) for e in edges]
        assert pairs == [(ids[0], ids[1]), (ids[1], ids[2]), (ids[2], ids[3])]
        for e in edges:
            assert e["dependency_type"] == "finish_to_start"
            assert e["lag_days"] == 0
            assert e["weight_factor"] == 1.0
            assert e["is_critical_path"] is True

    def test_regenerate_is_idempotent(self, make_project):
        project = make_project([1, 1, 1])
        created = generate_default_edges(project["id"])
        assert created == []
        assert PhaseDependency.query.filter_by(project_id=project["id"]).count() == 2

    def test_single_phase_project_has_no_edges(self, make_project):
        project = make_project([4])
        assert edges_of(project["id"]) == []

    def test_unknown_project(self):
        with pytest.raises(NotFoundError):
            generate_default_edges(9999)

    def test_default_edges_are_audited(self, make_project):
        project = make_project([1, 1])
        rows = AuditLog.query.filter_by(action="dependency.create", project_id=project["id"]).all()
        assert len(rows) == 1
        assert rows[0].entity_type == "phase_dependency"


# ═════════════════════════════════════════════════════════════════════════════
# add_edge
# ═════════════════════════════════════════════════════════════════════════════


class TestAddEdge:
    def test_skip_ahead_edge(self, make_project):
        project = make_project([2, 3, 1, 4])
        ids = _ids(project)

        edge = add_edge(project["id"], ids[0], ids[3], actor_id=5)

        assert edge.id is not None
        assert edge.predecessor_phase_id == ids[0]
        assert edge.successor_phase_id == ids[3]
        assert edge.is_critical_path is False
        assert len(edges_of(project["id"])) == 4

    def test_custom_type_lag_weight_are_stored(self, make_project):
        project = make_project([1, 1, 1])
        ids = _ids(project)

        edge = add_edge(
            project["id"], ids[0], ids[2],
            dependency_type="start_to_start", lag_days=3, weight_factor=0.5,
        )
        assert edge.dependency_type == "start_to_start"
        assert edge.lag_days == 3
        assert edge.weight_factor == 0.5

    def test_self_reference_rejected(self, make_project):
        project = make_project([1, 1])
        ids = _ids(project)
        with pytest.raises(GraphError):
            add_edge(project["id"], ids[0], ids[0])

    def test_duplicate_rejected(self, make_project):
        project = make_project([1, 1])
        ids = _ids(project)
        with pytest.raises(ConflictError):
            add_edge(project["id"], ids[0], ids[1])

    def test_cycle_rejected(self, make_project):
        project = make_project([1, 1, 1])
        ids = _ids(project)
        # chain is 1→2→3; 3→1 closes the loop
        with pytest.raises(GraphError) as exc:
            add_edge(project["id"], ids[2], ids[0])
        assert "cycle" in str(exc.value)
        assert PhaseDependency.query.filter_by(project_id=project["id"]).count() == 2

    def test_two_node_cycle_rejected(self, make_project):
        project = make_project([1, 1])
        ids = _ids(project)
        with pytest.raises(GraphError):
            add_edge(project["id"], ids[1], ids[0])

    def test_phase_from_other_project_is_not_found(self, make_project):
        first = make_project([1, 1], name="First")
        second = make_project([1, 1], name="Second")
        with pytest.raises(NotFoundError):
            add_edge(first["id"], _ids(first)[0], _ids(second)[1])

    def test_unknown_project(self):
        with pytest.raises(NotFoundError):
            add_edge(9999, 1, 2)

    @pytest.mark.parametrize("kwargs", [
        {"dependency_type": "finish_to_lunch"},
        {"lag_days": 1.5},
        {"lag_days": "2"},
        {"weight_factor": -0.1},
        {"weight_factor": "heavy"},
        {"weight_factor": float("nan")},
        {"weight_factor": float("inf")},
    ])
    def test_invalid_attributes(self, make_project, kwargs):
        project = make_project([1, 1, 1])
        ids = _ids(project)
        with pytest.raises(ValidationError):
            add_edge(project["id"], ids[0], ids[2], **kwargs)

    def test_add_edge_writes_audit(self, make_project):
        project = make_project([1, 1, 1])
        ids = _ids(project)
        edge = add_edge(project["id"], ids[0], ids[2], actor_id=11)

        row = AuditLog.query.filter_by(
            action="dependency.create", entity_id=str(edge.id),
        ).one()
        assert row.actor_id == 11
        assert row.diff["successor_phase_id"] == ids[2]


# ═════════════════════════════════════════════════════════════════════════════
# remove_edge
# ═════════════════════════════════════════════════════════════════════════════


class TestRemoveEdge:
    def test_remove(self, make_project):
        project = make_project([1, 1, 1])
        edge_id = edges_of(project["id"])[0]["id"]

        remove_edge(edge_id, actor_id=2)

        assert db.session.get(PhaseDependency, edge_id) is None
        assert AuditLog.query.filter_by(action="dependency.delete", entity_id=str(edge_id)).count() == 1

    def test_removed_edge_can_be_added_back(self, make_project):
        project = make_project([1, 1])
        ids = _ids(project)
        remove_edge(edges_of(project["id"])[0]["id"])
        edge = add_edge(project["id"], ids[0], ids[1])
        assert edge.id is not None

    def test_remove_unknown(self):
        with pytest.raises(NotFoundError):
            remove_edge(424242)
