"""
Phase lifecycle API.

Endpoints:
    POST /api/v1/phases/<phase_id>/start
    POST /api/v1/phases/<phase_id>/submit
    POST /api/v1/phases/<phase_id>/approve
    POST /api/v1/phases/<phase_id>/complete
    POST /api/v1/phases/<phase_id>/warning              {warning_flag, note?}
    POST /api/v1/phases/<phase_id>/delay                {delay_reason, additional_weeks? | new_end_date?, note?}
    POST /api/v1/phases/<phase_id>/grant-early-access   {note?}
    POST /api/v1/phases/<phase_id>/revoke-early-access  {note?}
    GET  /api/v1/projects/<project_id>/early-access-overview

Every POST accepts an optional ``expected_version``; a stale value is
answered with 409 before any guard runs.  The acting user comes from the
``X-User-Id`` header.
"""

import logging

from flask import Blueprint, jsonify

from phasetrack.blueprints import register_error_handlers
from phasetrack.core.exceptions import ValidationError
from phasetrack.services import phase_lifecycle
from phasetrack.utils.helpers import actor_id, json_body, parse_date_input

logger = logging.getLogger(__name__)

phase_bp = register_error_handlers(Blueprint("phases", __name__, url_prefix="/api/v1"))


def _common_args() -> tuple[dict, dict]:
    data = json_body()
    kwargs = {
        "actor_id": actor_id(),
        "note": data.get("note") or "",
        "expected_version": data.get("expected_version"),
    }
    return data, kwargs


# ── Normal flow ──────────────────────────────────────────────────────────────


@phase_bp.route("/phases/<int:phase_id>/start", methods=["POST"])
def start_phase(phase_id):
    _, kwargs = _common_args()
    return jsonify(phase_lifecycle.start_phase(phase_id, **kwargs)), 200


@phase_bp.route("/phases/<int:phase_id>/submit", methods=["POST"])
def submit_phase(phase_id):
    _, kwargs = _common_args()
    return jsonify(phase_lifecycle.submit_phase(phase_id, **kwargs)), 200


@phase_bp.route("/phases/<int:phase_id>/approve", methods=["POST"])
def approve_phase(phase_id):
    _, kwargs = _common_args()
    return jsonify(phase_lifecycle.approve_phase(phase_id, **kwargs)), 200


@phase_bp.route("/phases/<int:phase_id>/complete", methods=["POST"])
def complete_phase(phase_id):
    _, kwargs = _common_args()
    return jsonify(phase_lifecycle.complete_phase(phase_id, **kwargs)), 200


# ── Risk flags ───────────────────────────────────────────────────────────────


@phase_bp.route("/phases/<int:phase_id>/warning", methods=["POST"])
def mark_warning(phase_id):
    data, kwargs = _common_args()
    flag = data.get("warning_flag")
    if not isinstance(flag, bool):
        raise ValidationError("warning_flag must be true or false", details={"warning_flag": flag})
    return jsonify(phase_lifecycle.mark_warning(phase_id, flag, **kwargs)), 200


@phase_bp.route("/phases/<int:phase_id>/delay", methods=["POST"])
def handle_delay(phase_id):
    data, kwargs = _common_args()
    result = phase_lifecycle.handle_delay(
        phase_id,
        reason=data.get("delay_reason"),
        additional_weeks=data.get("additional_weeks"),
        new_end_date=parse_date_input(data.get("new_end_date"), "new_end_date"),
        **kwargs,
    )
    return jsonify(result), 200


# ── Early access ─────────────────────────────────────────────────────────────


@phase_bp.route("/phases/<int:phase_id>/grant-early-access", methods=["POST"])
def grant_early_access(phase_id):
    data, kwargs = _common_args()
    kwargs["note"] = data.get("note") or None
    return jsonify(phase_lifecycle.grant_early_access(phase_id, **kwargs)), 200


@phase_bp.route("/phases/<int:phase_id>/revoke-early-access", methods=["POST"])
def revoke_early_access(phase_id):
    _, kwargs = _common_args()
    return jsonify(phase_lifecycle.revoke_early_access(phase_id, **kwargs)), 200


@phase_bp.route("/projects/<int:project_id>/early-access-overview", methods=["GET"])
def early_access_overview(project_id):
    return jsonify(phase_lifecycle.early_access_overview(project_id)), 200
