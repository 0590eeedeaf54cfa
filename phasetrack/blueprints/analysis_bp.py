"""
Schedule analysis API (read-only, recomputed per request).

Endpoints:
    GET  /api/v1/projects/<project_id>/critical-path?mode=touching|strict
    GET  /api/v1/phases/<phase_id>/cascade?delay_days=&impact_type=
    POST /api/v1/projects/<project_id>/recovery-suggestions   body: warning
    GET  /api/v1/projects/<project_id>/schedule-optimization
"""

import logging

from flask import Blueprint, jsonify, request

from phasetrack.blueprints import register_error_handlers
from phasetrack.core.exceptions import ValidationError
from phasetrack.services.cascade_impact import analyze_cascade
from phasetrack.services.critical_path import MARKING_MODES, MARKING_STRICT, MARKING_TOUCHING, calculate_critical_path
from phasetrack.services.recovery_suggestions import RiskWarning, generate_recovery_suggestions
from phasetrack.services.schedule_optimizer import optimize_schedule
from phasetrack.utils.helpers import json_body

logger = logging.getLogger(__name__)

analysis_bp = register_error_handlers(Blueprint("analysis", __name__, url_prefix="/api/v1"))


@analysis_bp.route("/projects/<int:project_id>/critical-path", methods=["GET"])
def critical_path(project_id):
    mode = request.args.get("mode", MARKING_TOUCHING)
    if mode not in MARKING_MODES:
        raise ValidationError(f"Invalid mode: {mode}", details={"mode": list(MARKING_MODES)})
    return jsonify(calculate_critical_path(project_id, strict=mode == MARKING_STRICT)), 200


@analysis_bp.route("/phases/<int:phase_id>/cascade", methods=["GET"])
def cascade(phase_id):
    delay_days = request.args.get("delay_days")
    if delay_days in (None, ""):
        raise ValidationError("delay_days is required", details={"delay_days": "required"})
    effects = analyze_cascade(
        phase_id,
        delay_days,
        impact_type=request.args.get("impact_type", "delay"),
    )
    return jsonify({"phase_id": phase_id, "effects": effects, "total": len(effects)}), 200


@analysis_bp.route("/projects/<int:project_id>/recovery-suggestions", methods=["POST"])
def recovery_suggestions(project_id):
    """Rank remediation strategies for a warning.

    Body: {type, severity, phase_ids?, predicted_impact: {days, cost}}
    The path's project id wins over any project_id in the body.
    """
    warning = RiskWarning.from_dict(json_body(), project_id=project_id)
    suggestions = generate_recovery_suggestions(warning)
    return jsonify({"project_id": project_id, "suggestions": suggestions}), 200


@analysis_bp.route("/projects/<int:project_id>/schedule-optimization", methods=["GET"])
def schedule_optimization(project_id):
    return jsonify(optimize_schedule(project_id)), 200
