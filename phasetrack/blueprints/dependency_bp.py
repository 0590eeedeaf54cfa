"""
Phase dependency graph API.

Endpoints:
    GET    /api/v1/projects/<project_id>/dependencies           — edges with phase names
    POST   /api/v1/projects/<project_id>/dependencies           — add custom edge
    POST   /api/v1/projects/<project_id>/dependencies/generate  — default sequential chain
    DELETE /api/v1/dependencies/<edge_id>                       — remove edge
"""

import logging

from flask import Blueprint, jsonify

from phasetrack.blueprints import register_error_handlers
from phasetrack.core.exceptions import ValidationError
from phasetrack.services import dependency_graph
from phasetrack.utils.helpers import actor_id, json_body

logger = logging.getLogger(__name__)

dependency_bp = register_error_handlers(Blueprint("dependencies", __name__, url_prefix="/api/v1"))


@dependency_bp.route("/projects/<int:project_id>/dependencies", methods=["GET"])
def list_dependencies(project_id):
    items = dependency_graph.edges_of(project_id)
    return jsonify({"items": items, "total": len(items)}), 200


@dependency_bp.route("/projects/<int:project_id>/dependencies", methods=["POST"])
def create_dependency(project_id):
    """Add a custom edge.

    Body: {
        predecessor_phase_id, successor_phase_id,
        dependency_type?, lag_days?, weight_factor?
    }
    """
    data = json_body()
    missing = [f for f in ("predecessor_phase_id", "successor_phase_id") if data.get(f) is None]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required", details={"missing": missing})
    try:
        predecessor_id = int(data["predecessor_phase_id"])
        successor_id = int(data["successor_phase_id"])
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Phase ids must be integers")

    edge = dependency_graph.add_edge(
        project_id,
        predecessor_id,
        successor_id,
        dependency_type=data.get("dependency_type") or "finish_to_start",
        lag_days=data.get("lag_days", 0),
        weight_factor=data.get("weight_factor", 1.0),
        actor_id=actor_id(),
    )
    return jsonify(edge.to_dict()), 201


@dependency_bp.route("/projects/<int:project_id>/dependencies/generate", methods=["POST"])
def generate_dependencies(project_id):
    created = dependency_graph.generate_default_edges(project_id, actor_id=actor_id())
    return jsonify({"created": [e.to_dict() for e in created], "count": len(created)}), 201


@dependency_bp.route("/dependencies/<int:edge_id>", methods=["DELETE"])
def delete_dependency(edge_id):
    dependency_graph.remove_edge(edge_id, actor_id=actor_id())
    return jsonify({"deleted": edge_id}), 200
