"""
Cascade Impact Analyzer tests.

Decay, probability and urgency per depth; traversal bound; one entry per
reachable phase; input validation.
"""

import pytest

from phasetrack.core.exceptions import NotFoundError, ValidationError
from phasetrack.services.cascade_impact import (
    MAX_CASCADE_DEPTH,
    analyze_cascade,
    mitigation_urgency,
    propagation_probability,
)
from phasetrack.services.dependency_graph import add_edge


def _ids(project):
    return [p["id"] for p in project["phases"]]


class TestFormulas:
    @pytest.mark.parametrize("depth,expected", [(1, 90), (2, 75), (3, 60), (4, 45), (5, 30), (6, 20), (9, 20)])
    def test_probability(self, depth, expected):
        assert propagation_probability(depth) == expected

    @pytest.mark.parametrize("magnitude,depth,expected", [
        (6, 1, "immediate"),
        (6, 2, "immediate"),
        (6, 3, "within_24h"),
        (5, 1, "within_24h"),
        (4, 3, "within_24h"),
        (4, 4, "within_week"),
        (1.5, 5, "within_week"),
        (1, 1, "monitor"),
        (0, 1, "monitor"),
    ])
    def test_urgency(self, magnitude, depth, expected):
        assert mitigation_urgency(magnitude, depth) == expected


class TestAnalyzeCascade:
    def test_chain_decay(self, make_project):
        project = make_project([1, 1, 1, 1])
        first, second, third, fourth = _ids(project)

        effects = analyze_cascade(first, 5)

        assert [e["affected_phase_id"] for e in effects] == [second, third, fourth]
        assert [e["impact_magnitude"] for e in effects] == [5.0, 4.0, 3.2]
        assert [e["propagation_probability"] for e in effects] == [90, 75, 60]
        assert [e["mitigation_urgency"] for e in effects] == ["within_24h"] * 3
        assert [e["depth_level"] for e in effects] == [1, 2, 3]
        assert all(e["impact_type"] == "delay" for e in effects)
        assert effects[0]["phase_name"] == "Phase 2"

    def test_last_phase_has_no_effects(self, make_project):
        project = make_project([1, 1])
        assert analyze_cascade(_ids(project)[-1], 10) == []

    def test_depth_is_capped(self, make_project):
        project = make_project([1] * 8)
        ids = _ids(project)

        effects = analyze_cascade(ids[0], 10)

        assert len(effects) == MAX_CASCADE_DEPTH
        assert max(e["depth_level"] for e in effects) == MAX_CASCADE_DEPTH
        assert ids[6] not in {e["affected_phase_id"] for e in effects}

    def test_shallowest_path_wins(self, make_project):
        project = make_project([1, 1, 1, 1])
        first, second, third, fourth = _ids(project)
        add_edge(project["id"], first, fourth)

        effects = analyze_cascade(first, 10)

        by_id = {e["affected_phase_id"]: e for e in effects}
        assert len(effects) == 3
        assert by_id[fourth]["depth_level"] == 1
        assert by_id[fourth]["impact_magnitude"] == 10.0

    def test_edge_weight_scales_impact(self, make_project):
        project = make_project([1, 1, 1])
        first, _, third = _ids(project)
        add_edge(project["id"], first, third, weight_factor=0.5)

        effects = analyze_cascade(first, 10)

        third_effect = next(e for e in effects if e["affected_phase_id"] == third)
        assert third_effect["impact_magnitude"] == 5.0
        assert third_effect["weight_factor"] == 0.5
        assert third_effect["mitigation_urgency"] == "within_24h"

    def test_impact_type_passthrough(self, make_project):
        project = make_project([1, 1])
        effects = analyze_cascade(_ids(project)[0], 2, impact_type="cost")
        assert effects[0]["impact_type"] == "cost"

    def test_zero_delay(self, make_project):
        project = make_project([1, 1])
        effects = analyze_cascade(_ids(project)[0], 0)
        assert effects[0]["impact_magnitude"] == 0
        assert effects[0]["mitigation_urgency"] == "monitor"

    def test_does_not_cross_projects(self, make_project):
        first = make_project([1, 1], name="A")
        make_project([1, 1], name="B")
        effects = analyze_cascade(_ids(first)[0], 3)
        assert [e["affected_phase_id"] for e in effects] == [_ids(first)[1]]

    def test_unknown_phase(self):
        with pytest.raises(NotFoundError):
            analyze_cascade(999, 3)

    @pytest.mark.parametrize("delay,impact_type", [
        (-1, "delay"), ("soon", "delay"), (3, "morale"),
        (float("nan"), "delay"), ("inf", "cost"),
    ])
    def test_invalid_input(self, make_project, delay, impact_type):
        project = make_project([1, 1])
        with pytest.raises(ValidationError):
            analyze_cascade(_ids(project)[0], delay, impact_type=impact_type)
