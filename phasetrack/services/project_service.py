"""
Project setup service.

Creates a project with its ordered phase sequence and the default
sequential dependency chain in one transaction, and serves the read
views the lifecycle and analysis endpoints start from.
"""

import logging
import math
from datetime import date, timedelta

from sqlalchemy import select

from phasetrack.core.exceptions import NotFoundError, ValidationError
from phasetrack.models import db
from phasetrack.models.audit import write_audit
from phasetrack.models.phase import Phase
from phasetrack.models.project import Project
from phasetrack.services.critical_path import DAYS_PER_WEEK
from phasetrack.services.dependency_graph import generate_default_edges
from phasetrack.utils.helpers import parse_number

logger = logging.getLogger(__name__)

# Allowed gap between sum(phase weeks) and planned_total_weeks.
TIMELINE_TOLERANCE_WEEKS = 0.01


def _optional_hours(value, field):
    if value in (None, ""):
        return None
    return parse_number(value, field, minimum=0)


def _validate_phase_specs(phases) -> list[dict]:
    if not isinstance(phases, list) or not phases:
        raise ValidationError("At least one phase is required", details={"phases": "required"})

    cleaned = []
    for idx, spec in enumerate(phases, start=1):
        if not isinstance(spec, dict):
            raise ValidationError(f"Phase #{idx} must be an object")
        name = (spec.get("phase_name") or spec.get("name") or "").strip()
        if not name:
            raise ValidationError(f"Phase #{idx}: phase_name is required", details={"index": idx})
        try:
            weeks = float(spec.get("planned_weeks"))
        except (TypeError, ValueError):
            weeks = math.nan
        if not math.isfinite(weeks):
            raise ValidationError(f"Phase #{idx}: planned_weeks must be a number", details={"index": idx})
        if weeks <= 0:
            raise ValidationError(f"Phase #{idx}: planned_weeks must be > 0", details={"index": idx})
        cleaned.append({
            "phase_name": name,
            "planned_weeks": weeks,
            "is_custom": bool(spec.get("is_custom", False)),
            "predicted_hours": _optional_hours(spec.get("predicted_hours"), f"phases[{idx}].predicted_hours"),
        })
    return cleaned


def create_project(
    name: str,
    phases: list[dict],
    start_date: date | None = None,
    planned_total_weeks: float | None = None,
    predicted_hours: float | None = None,
    actor_id: int | None = None,
    allow_timeline_mismatch: bool = False,
) -> dict:
    """
    Create a project, its phases and the default dependency chain.

    Phases get sequential ``phase_order`` from 1 and back-to-back planned
    dates starting at ``start_date`` (``planned_weeks * 7`` days each).
    The first phase starts ``ready``; the rest ``not_started``.

    Raises:
        ValidationError: missing name/phases, bad weeks, or the phase weeks
            do not add up to ``planned_total_weeks``.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Project name is required", details={"name": "required"})
    specs = _validate_phase_specs(phases)
    predicted_hours = _optional_hours(predicted_hours, "predicted_hours")
    if planned_total_weeks is not None:
        planned_total_weeks = parse_number(planned_total_weeks, "planned_total_weeks", minimum=0)

    total_weeks = sum(s["planned_weeks"] for s in specs)
    if planned_total_weeks is None:
        planned_total_weeks = total_weeks
    elif not allow_timeline_mismatch and abs(planned_total_weeks - total_weeks) > TIMELINE_TOLERANCE_WEEKS:
        raise ValidationError(
            f"Timeline mismatch: Total phase weeks ({total_weeks:g}) does not match "
            f"planned total weeks ({planned_total_weeks:g})",
            details={"phase_weeks": total_weeks, "planned_total_weeks": planned_total_weeks},
        )

    if isinstance(start_date, str):
        try:
            start_date = date.fromisoformat(start_date)
        except ValueError:
            raise ValidationError("start_date must be YYYY-MM-DD", details={"start_date": start_date})

    project = Project(
        name=name,
        start_date=start_date,
        planned_total_weeks=planned_total_weeks,
        predicted_hours=predicted_hours,
        created_by=actor_id,
    )
    db.session.add(project)
    db.session.flush()

    cursor = start_date
    for order, spec in enumerate(specs, start=1):
        end = cursor + timedelta(days=spec["planned_weeks"] * DAYS_PER_WEEK) if cursor else None
        db.session.add(Phase(
            project_id=project.id,
            phase_order=order,
            phase_name=spec["phase_name"],
            is_custom=spec["is_custom"],
            planned_weeks=spec["planned_weeks"],
            predicted_hours=spec["predicted_hours"],
            planned_start_date=cursor,
            planned_end_date=end,
            status="ready" if order == 1 else "not_started",
        ))
        cursor = end
    db.session.flush()

    generate_default_edges(project.id, actor_id=actor_id, commit=False)
    write_audit(
        entity_type="project",
        entity_id=project.id,
        action="project.create",
        actor_id=actor_id,
        project_id=project.id,
        note=f"Project created with {len(specs)} phases",
    )
    db.session.commit()
    logger.info("Project created id=%s phases=%d", project.id, len(specs))
    return project.to_dict(include_phases=True)


def get_project(project_id: int) -> dict:
    project = db.session.get(Project, project_id)
    if not project:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project.to_dict(include_phases=True)


def list_phases(project_id: int) -> list[dict]:
    """Phases of a project in ``phase_order``."""
    if not db.session.get(Project, project_id):
        raise NotFoundError(resource="Project", resource_id=project_id)
    phases = db.session.execute(
        select(Phase).where(Phase.project_id == project_id).order_by(Phase.phase_order)
    ).scalars().all()
    return [p.to_dict() for p in phases]
