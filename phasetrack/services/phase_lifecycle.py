"""
Phase Lifecycle Service.

Sole writer of ``Phase.status`` and the lifecycle dates.  Manages:
  - Normal flow:   start → submit → approve (unlocks next phase) → complete
  - Early access:  grant / revoke, and start from ``accessible``
  - Risk flags:    warning flag, client/company delay with timeline shift
  - Audit trail:   one ``write_audit`` row per write, same transaction
  - Events:        PhaseEvent published after commit (best effort)

Every write is a compare-and-swap UPDATE on ``(id, status, version)``.
A writer that lost a race sees zero affected rows, the transaction is
rolled back and ``ConcurrencyConflictError`` is raised.  Callers may also
pass ``expected_version`` (the version they last read) to detect a stale
view before any guard runs.

Usage:
    from phasetrack.services.phase_lifecycle import approve_phase

    result = approve_phase(phase_id=3, actor_id=7, expected_version=4)
"""

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select, update

from phasetrack.core.exceptions import (
    ConcurrencyConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from phasetrack.models import db
from phasetrack.models.audit import write_audit
from phasetrack.models.phase import (
    EARLY_ACCESS_BLOCKED_STATUSES,
    PHASE_TRANSITIONS,
    Phase,
    WorkLog,
    transition_failure_message,
    validate_phase_transition,
)
from phasetrack.models.project import Project
from phasetrack.services.phase_events import PhaseEvent, publish
from phasetrack.utils.helpers import parse_number

logger = logging.getLogger(__name__)

DEFAULT_EARLY_ACCESS_NOTE = "Early access granted for trusted client"
DELAY_REASONS_ACCEPTED = ("client", "company")


# ── Internals ────────────────────────────────────────────────────────────────


def _now():
    return datetime.now(timezone.utc)


def _today():
    return _now().date()


def _get_phase(phase_id: int) -> Phase:
    phase = db.session.get(Phase, phase_id)
    if not phase:
        raise NotFoundError(resource="Phase", resource_id=phase_id)
    return phase


def _check_expected_version(phase: Phase, expected_version) -> None:
    """Reject a caller whose view of the phase is already stale."""
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(
            "expected_version must be an integer",
            details={"expected_version": str(expected_version)},
        )
    if expected != phase.version:
        logger.warning(
            "Stale phase version phase_id=%s expected=%s current=%s",
            phase.id, expected, phase.version,
        )
        raise ConcurrencyConflictError("Phase", phase.id, expected)


def _compare_and_swap(phase: Phase, expected_status: str, values: dict) -> None:
    """
    UPDATE the phase only if it is still at ``expected_status`` and the
    version we read.  On success the version is bumped and the instance is
    expired so the next attribute access reloads committed-in-tx state.
    """
    phase_id = phase.id
    read_version = phase.version
    result = db.session.execute(
        update(Phase)
        .where(
            Phase.id == phase_id,
            Phase.status == expected_status,
            Phase.version == read_version,
        )
        .values(version=Phase.version + 1, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        logger.warning(
            "Lost compare-and-swap on phase_id=%s status=%s version=%s",
            phase_id, expected_status, read_version,
        )
        raise ConcurrencyConflictError("Phase", phase_id, read_version)
    db.session.expire(phase)


def _publish(phase: Phase, action: str, actor_id) -> None:
    publish(PhaseEvent(
        project_id=phase.project_id,
        phase_id=phase.id,
        new_status=phase.status,
        actor_id=actor_id,
        action=action,
    ))


def _apply_transition(phase: Phase, action: str, extra_values: dict, *, actor_id, note) -> str:
    """Guard + CAS + audit for one normal-flow action. Returns the old status."""
    old_status = phase.status
    if not validate_phase_transition(old_status, action):
        logger.warning("Rejected %s on phase_id=%s status=%s", action, phase.id, old_status)
        raise InvalidTransitionError(action, old_status, transition_failure_message(action, old_status))

    new_status = PHASE_TRANSITIONS[action]["to"]
    _compare_and_swap(phase, old_status, {"status": new_status, **extra_values})
    write_audit(
        entity_type="phase",
        entity_id=phase.id,
        action=f"phase.{action}",
        actor_id=actor_id,
        project_id=phase.project_id,
        note=note or "",
        diff={"status": {"old": old_status, "new": new_status}},
    )
    return old_status


# ═════════════════════════════════════════════════════════════════════════════
# Normal flow
# ═════════════════════════════════════════════════════════════════════════════


def start_phase(phase_id: int, actor_id: int | None = None, note: str = "",
                expected_version=None) -> dict:
    """
    ready → in_progress, or accessible early-access phase → in_progress.

    ``actual_start_date`` is stamped only if not already set.
    """
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    old_status = phase.status
    early_access_open = phase.early_access_granted and phase.early_access_status == "accessible"
    if old_status != "ready" and not early_access_open:
        if phase.early_access_granted and phase.early_access_status == "in_progress":
            message = "Phase is already in progress via early access"
        else:
            message = transition_failure_message("start", old_status)
        logger.warning("Rejected start on phase_id=%s status=%s", phase.id, old_status)
        raise InvalidTransitionError("start", old_status, message)

    values = {"status": "in_progress"}
    if phase.actual_start_date is None:
        values["actual_start_date"] = _now()
    if early_access_open:
        values["early_access_status"] = "in_progress"

    _compare_and_swap(phase, old_status, values)
    via_early_access = early_access_open and old_status != "ready"
    write_audit(
        entity_type="phase",
        entity_id=phase.id,
        action="phase.start",
        actor_id=actor_id,
        project_id=phase.project_id,
        note=note or ("Started via early access" if via_early_access else ""),
        diff={"status": {"old": old_status, "new": "in_progress"}},
    )
    db.session.commit()
    logger.info("Phase started phase_id=%s early_access=%s", phase.id, via_early_access)

    _publish(phase, "start_early_access" if via_early_access else "start", actor_id)
    return phase.to_dict()


def submit_phase(phase_id: int, actor_id: int | None = None, note: str = "",
                 expected_version=None) -> dict:
    """in_progress → submitted; stamps ``submitted_date``."""
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    _apply_transition(phase, "submit", {"submitted_date": _today()}, actor_id=actor_id, note=note)
    db.session.commit()
    logger.info("Phase submitted phase_id=%s", phase.id)

    _publish(phase, "submit", actor_id)
    return phase.to_dict()


def approve_phase(phase_id: int, actor_id: int | None = None, note: str = "",
                  expected_version=None) -> dict:
    """
    submitted → approved, then unlock the next phase in order.

    The approval, the conditional ``not_started → ready`` unlock of the
    next phase and both audit rows commit together or not at all.
    """
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    _apply_transition(
        phase, "approve",
        {"actual_end_date": _now(), "approved_date": _today()},
        actor_id=actor_id, note=note,
    )

    next_phase = db.session.execute(
        select(Phase).where(
            Phase.project_id == phase.project_id,
            Phase.phase_order == phase.phase_order + 1,
        )
    ).scalar_one_or_none()

    unlocked = None
    if next_phase is not None:
        result = db.session.execute(
            update(Phase)
            .where(Phase.id == next_phase.id, Phase.status == "not_started")
            .values(status="ready", version=Phase.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            db.session.expire(next_phase)
            write_audit(
                entity_type="phase",
                entity_id=next_phase.id,
                action="phase.unlock",
                actor_id=actor_id,
                project_id=phase.project_id,
                note=f"Unlocked by approval of phase {phase.id}",
                diff={"status": {"old": "not_started", "new": "ready"}},
            )
            unlocked = next_phase

    db.session.commit()
    logger.info(
        "Phase approved phase_id=%s unlocked=%s",
        phase.id, unlocked.id if unlocked else None,
    )

    _publish(phase, "approve", actor_id)
    if unlocked is not None:
        _publish(unlocked, "unlock", actor_id)

    result = phase.to_dict()
    result["unlocked_phase_id"] = unlocked.id if unlocked else None
    return result


def complete_phase(phase_id: int, actor_id: int | None = None, note: str = "",
                   expected_version=None) -> dict:
    """approved → completed."""
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    _apply_transition(phase, "complete", {}, actor_id=actor_id, note=note)
    db.session.commit()
    logger.info("Phase completed phase_id=%s", phase.id)

    _publish(phase, "complete", actor_id)
    return phase.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Risk flags
# ═════════════════════════════════════════════════════════════════════════════


def mark_warning(phase_id: int, flag: bool, actor_id: int | None = None, note: str = "",
                 expected_version=None) -> dict:
    """Set or clear the warning flag. Legal in any status."""
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    flag = bool(flag)
    old_flag = phase.warning_flag
    _compare_and_swap(phase, phase.status, {"warning_flag": flag})
    write_audit(
        entity_type="phase",
        entity_id=phase.id,
        action="phase.warning_add" if flag else "phase.warning_remove",
        actor_id=actor_id,
        project_id=phase.project_id,
        note=note or f"Warning {'added' if flag else 'removed'}",
        diff={"warning_flag": {"old": old_flag, "new": flag}},
    )
    db.session.commit()
    logger.info("Phase warning phase_id=%s flag=%s", phase.id, flag)

    _publish(phase, "warning_add" if flag else "warning_remove", actor_id)
    return phase.to_dict()


def handle_delay(phase_id: int, reason: str, additional_weeks=None, new_end_date=None,
                 actor_id: int | None = None, note: str = "", expected_version=None) -> dict:
    """
    Record a delay and, for client delays, push the rest of the timeline.

    ``new_end_date`` wins over ``additional_weeks``; when only weeks are
    given the new end is the current planned end plus ``weeks * 7`` days.
    The phase's own planned end moves to the new date.  For a client
    delay that pushes the end later, every phase with a greater
    ``phase_order`` has its planned start and end shifted by the same
    number of days.
    """
    if reason not in DELAY_REASONS_ACCEPTED:
        raise ValidationError(
            'Delay reason must be either "client" or "company"',
            details={"delay_reason": reason},
        )

    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    original_end = phase.planned_end_date
    if isinstance(new_end_date, str):
        try:
            new_end_date = date.fromisoformat(new_end_date)
        except ValueError:
            raise ValidationError("new_end_date must be YYYY-MM-DD", details={"new_end_date": new_end_date})

    if additional_weeks is not None:
        additional_weeks = parse_number(additional_weeks, "additional_weeks", minimum=0)

    if additional_weeks is not None and new_end_date is None:
        if original_end is None:
            raise ValidationError("Phase has no planned end date to extend", details={"phase_id": phase.id})
        new_end_date = original_end + timedelta(days=int(round(additional_weeks * 7)))

    values = {"delay_reason": reason}
    if new_end_date is not None:
        values["planned_end_date"] = new_end_date

    project_id = phase.project_id
    phase_order = phase.phase_order
    _compare_and_swap(phase, phase.status, values)

    shift_days = 0
    if reason == "client" and new_end_date is not None and original_end is not None:
        shift_days = (new_end_date - original_end).days

    shifted = []
    if shift_days > 0:
        delta = timedelta(days=shift_days)
        later = db.session.execute(
            select(Phase)
            .where(Phase.project_id == project_id, Phase.phase_order > phase_order)
            .order_by(Phase.phase_order)
        ).scalars().all()
        for p in later:
            if p.planned_start_date:
                p.planned_start_date = p.planned_start_date + delta
            if p.planned_end_date:
                p.planned_end_date = p.planned_end_date + delta
            p.version = p.version + 1
            shifted.append(p.id)

    label = "Client" if reason == "client" else "Company"
    audit_note = f"{label} delay: {note or 'No additional details'}"
    if additional_weeks:
        audit_note += f" (+{additional_weeks:g} weeks)"
    write_audit(
        entity_type="phase",
        entity_id=phase_id,
        action=f"phase.delay_{reason}",
        actor_id=actor_id,
        project_id=project_id,
        note=audit_note,
        diff={
            "planned_end_date": {"old": original_end, "new": new_end_date},
            "shift_days": shift_days,
            "shifted_phase_ids": shifted,
        },
    )
    db.session.commit()
    logger.info(
        "Phase delay phase_id=%s reason=%s shift_days=%s shifted=%d",
        phase_id, reason, shift_days, len(shifted),
    )

    _publish(phase, "delay", actor_id)
    result = phase.to_dict()
    result["shift_days"] = shift_days
    result["shifted_phase_ids"] = shifted
    return result


# ═════════════════════════════════════════════════════════════════════════════
# Early access
# ═════════════════════════════════════════════════════════════════════════════


def grant_early_access(phase_id: int, actor_id: int | None = None, note: str | None = None,
                       expected_version=None) -> dict:
    """Open a not-yet-ready phase for early work."""
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    status = phase.status
    if status in EARLY_ACCESS_BLOCKED_STATUSES:
        raise InvalidTransitionError(
            "grant_early_access", status,
            f"Cannot grant early access to phase with status: {status}",
        )
    if phase.early_access_granted:
        raise InvalidTransitionError(
            "grant_early_access", status, "Early access already granted for this phase",
        )

    note = note or DEFAULT_EARLY_ACCESS_NOTE
    _compare_and_swap(phase, status, {
        "early_access_granted": True,
        "early_access_status": "accessible",
        "early_access_granted_by": actor_id,
        "early_access_granted_at": _now(),
        "early_access_note": note,
    })
    write_audit(
        entity_type="phase",
        entity_id=phase.id,
        action="phase.early_access_grant",
        actor_id=actor_id,
        project_id=phase.project_id,
        note=note,
        diff={"early_access_status": {"old": "not_accessible", "new": "accessible"}},
    )
    db.session.commit()
    logger.info("Early access granted phase_id=%s by=%s", phase.id, actor_id)

    _publish(phase, "early_access_grant", actor_id)
    return phase.to_dict()


def revoke_early_access(phase_id: int, actor_id: int | None = None, note: str = "",
                        expected_version=None) -> dict:
    """
    Withdraw early access.  Only possible before work begins: the phase
    must still be ``accessible`` and have no work logs.  On any failure
    nothing is cleared.
    """
    phase = _get_phase(phase_id)
    _check_expected_version(phase, expected_version)

    status = phase.status
    if not phase.early_access_granted:
        raise InvalidTransitionError(
            "revoke_early_access", status, "Early access not granted for this phase",
        )
    if phase.early_access_status == "in_progress":
        raise InvalidTransitionError(
            "revoke_early_access", status,
            "Cannot revoke early access - work has already started on this phase",
        )
    logged = db.session.execute(
        select(func.count(WorkLog.id)).where(WorkLog.phase_id == phase.id)
    ).scalar() or 0
    if logged:
        raise InvalidTransitionError(
            "revoke_early_access", status,
            "Cannot revoke early access - work logs exist for this phase",
        )

    old_ea_status = phase.early_access_status
    _compare_and_swap(phase, status, {
        "early_access_granted": False,
        "early_access_status": "not_accessible",
        "early_access_granted_by": None,
        "early_access_granted_at": None,
        "early_access_note": None,
    })
    write_audit(
        entity_type="phase",
        entity_id=phase.id,
        action="phase.early_access_revoke",
        actor_id=actor_id,
        project_id=phase.project_id,
        note=note or "Early access revoked",
        diff={"early_access_status": {"old": old_ea_status, "new": "not_accessible"}},
    )
    db.session.commit()
    logger.info("Early access revoked phase_id=%s by=%s", phase.id, actor_id)

    _publish(phase, "early_access_revoke", actor_id)
    return phase.to_dict()


def early_access_overview(project_id: int) -> dict:
    """Phases currently holding early access, with total and active counts."""
    if not db.session.get(Project, project_id):
        raise NotFoundError(resource="Project", resource_id=project_id)

    phases = db.session.execute(
        select(Phase)
        .where(Phase.project_id == project_id, Phase.early_access_granted.is_(True))
        .order_by(Phase.phase_order)
    ).scalars().all()
    active = [p for p in phases if p.early_access_status in ("accessible", "in_progress")]
    return {
        "project_id": project_id,
        "phases_with_early_access": [p.to_dict() for p in phases],
        "total_early_access_phases": len(phases),
        "active_early_access_phases": len(active),
    }
