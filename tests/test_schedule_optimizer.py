"""Schedule optimizer tests: parallel candidates, bottlenecks, resource conflicts."""

from phasetrack.services import phase_lifecycle
from phasetrack.services.dependency_graph import add_edge, edges_of, remove_edge
from phasetrack.services.schedule_optimizer import optimize_schedule


def _ids(project):
    return [p["id"] for p in project["phases"]]


def test_sequential_chain_has_only_bottleneck(make_project):
    project = make_project([2, 3, 1, 4])
    ids = _ids(project)

    result = optimize_schedule(project["id"])

    assert result["parallelizable_phase_ids"] == []
    assert result["bottleneck_phase_ids"] == [ids[3]]
    assert result["potential_time_savings"] == 0
    assert result["recommendations"] == [
        "Focus resource allocation on 1 bottleneck phases to reduce critical path",
    ]
    assert result["risk_factors"] == [
        "High-duration phases on critical path increase project risk",
    ]
    assert result["resource_conflicts"] == []


def test_three_week_phase_is_not_a_bottleneck(make_project):
    project = make_project([3, 3])
    result = optimize_schedule(project["id"])
    assert result["bottleneck_phase_ids"] == []
    assert result["recommendations"] == []


def test_float_makes_phase_parallelizable(make_project):
    project = make_project([2, 3, 1, 4])
    p1, p2, p3, p4 = _ids(project)
    chain = {(e["predecessor_phase_id"], e["successor_phase_id"]): e["id"] for e in edges_of(project["id"])}
    remove_edge(chain[(p2, p3)])
    add_edge(project["id"], p1, p3)
    add_edge(project["id"], p2, p4)

    result = optimize_schedule(project["id"])

    assert result["parallelizable_phase_ids"] == [p3]
    assert result["potential_time_savings"] == 4
    assert result["recommendations"][0] == (
        "Consider parallel execution for 1 phases with available float time"
    )



def test_savings_round_half_up(make_project):
    project = make_project([1, 6, 1])
    p1, p2, p3 = _ids(project)
    chain = {(e["predecessor_phase_id"], e["successor_phase_id"]): e["id"] for e in edges_of(project["id"])}
    remove_edge(chain[(p2, p3)])
    add_edge(project["id"], p1, p3)

    result = optimize_schedule(project["id"])

    # 35 days of float on the last phase, 30% of which is 10.5
    assert result["parallelizable_phase_ids"] == [p3]
    assert result["potential_time_savings"] == 11

def test_resource_conflict(make_project, log_work):
    project = make_project([1, 1, 1])
    first, second, third = _ids(project)
    phase_lifecycle.start_phase(first)
    phase_lifecycle.grant_early_access(second)
    phase_lifecycle.start_phase(second)
    log_work(first, engineer_id=21)
    log_work(second, engineer_id=21)
    log_work(first, engineer_id=22)
    log_work(third, engineer_id=22)

    result = optimize_schedule(project["id"])

    assert result["resource_conflicts"] == [{"engineer_id": 21, "phase_count": 2}]
    assert "Resolve resource conflicts by redistributing workload or adjusting phase timing" in result["recommendations"]
    assert "Resource conflicts may cause delays and reduce quality" in result["risk_factors"]
