"""
Project setup API.

Endpoints:
    POST /api/v1/projects                      — create project + phases + default chain
    GET  /api/v1/projects/<project_id>         — project with its phases
    GET  /api/v1/projects/<project_id>/phases  — phases in phase_order
"""

import logging

from flask import Blueprint, jsonify

from phasetrack.blueprints import register_error_handlers
from phasetrack.services import project_service
from phasetrack.utils.helpers import actor_id, json_body, parse_date_input

logger = logging.getLogger(__name__)

project_bp = register_error_handlers(Blueprint("projects", __name__, url_prefix="/api/v1"))


@project_bp.route("/projects", methods=["POST"])
def create_project():
    """Create a project.

    Body: {
        name, phases: [{phase_name, planned_weeks, is_custom?, predicted_hours?}],
        start_date?, planned_total_weeks?, predicted_hours?, allow_timeline_mismatch?
    }
    """
    data = json_body()
    project = project_service.create_project(
        name=data.get("name"),
        phases=data.get("phases"),
        start_date=parse_date_input(data.get("start_date"), "start_date"),
        planned_total_weeks=data.get("planned_total_weeks"),
        predicted_hours=data.get("predicted_hours"),
        actor_id=actor_id(),
        allow_timeline_mismatch=bool(data.get("allow_timeline_mismatch", False)),
    )
    return jsonify(project), 201


@project_bp.route("/projects/<int:project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(project_service.get_project(project_id)), 200


@project_bp.route("/projects/<int:project_id>/phases", methods=["GET"])
def list_phases(project_id):
    items = project_service.list_phases(project_id)
    return jsonify({"items": items, "total": len(items)}), 200
