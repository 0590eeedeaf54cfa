"""
Phase Tracking Platform
Phase domain models.

Models:
    - Phase:            one row per project phase (status machine + planned/actual dates)
    - PhaseDependency:  predecessor → successor edge between phases of one project
    - WorkLog:          hours logged by an engineer against a phase (read-only here)

Architecture:
    Project ──1:N──▶ Phase
    Phase   ──N:M──▶ Phase   (via PhaseDependency)
    Phase   ──1:N──▶ WorkLog

Lifecycle states:
    Phase:              not_started → ready → in_progress → submitted → approved → completed
    Early access:       not_accessible → accessible → in_progress
"""

from datetime import datetime, timezone

from phasetrack.models import db


# ── Constants ────────────────────────────────────────────────────────────────

PHASE_STATUSES = {
    "not_started", "ready", "in_progress",
    "submitted", "approved", "completed",
}

EARLY_ACCESS_STATUSES = {"not_accessible", "accessible", "in_progress"}

DELAY_REASONS = {"none", "client", "company"}

DEPENDENCY_TYPES = {
    "finish_to_start", "start_to_start",
    "finish_to_finish", "start_to_finish",
}

# Statuses that rule out granting early access
EARLY_ACCESS_BLOCKED_STATUSES = {
    "ready", "in_progress", "submitted", "approved", "completed",
}


# ── Lifecycle Transition Guards ──────────────────────────────────────────────

# action → {"from": legal source statuses, "to": target, "requirement": message fragment}
PHASE_TRANSITIONS = {
    "start": {
        "from": ["ready"],
        "to": "in_progress",
        "requirement": "be ready or have early access granted",
    },
    "submit": {
        "from": ["in_progress"],
        "to": "submitted",
        "requirement": "be in progress",
    },
    "approve": {
        "from": ["submitted"],
        "to": "approved",
        "requirement": "be submitted",
    },
    "complete": {
        "from": ["approved"],
        "to": "completed",
        "requirement": "be approved",
    },
}


def validate_phase_transition(old_status, action):
    """Return True if ``action`` is legal from ``old_status`` on the normal flow."""
    rule = PHASE_TRANSITIONS.get(action)
    return bool(rule) and old_status in rule["from"]


def transition_failure_message(action, current_status):
    """Human-readable reason for a rejected transition."""
    rule = PHASE_TRANSITIONS.get(action)
    if not rule:
        return f"Unknown phase action: {action}"
    return (
        f"Phase must {rule['requirement']} to {action}. "
        f"Current status: {current_status}"
    )


# ── Cycle Detection ──────────────────────────────────────────────────────────


def validate_no_cycle(session, successor_id, new_predecessor_id):
    """
    Check that adding new_predecessor_id → successor_id does not create a cycle.

    Uses iterative DFS from new_predecessor_id, walking backwards through
    existing predecessor chains.  Returns True if safe, False if cycle found.
    """
    if successor_id == new_predecessor_id:
        return False

    visited = set()
    stack = [new_predecessor_id]

    while stack:
        current = stack.pop()
        if current == successor_id:
            return False
        if current in visited:
            continue
        visited.add(current)

        preds = (
            session.query(PhaseDependency.predecessor_phase_id)
            .filter(PhaseDependency.successor_phase_id == current)
            .all()
        )
        for (pred_id,) in preds:
            stack.append(pred_id)

    return True


# ═════════════════════════════════════════════════════════════════════════════
# 1. Phase
# ═════════════════════════════════════════════════════════════════════════════


class Phase(db.Model):
    """
    A single delivery phase of a project (concept, schematic, permits, ...).

    ``status`` is written only by the lifecycle service.  ``version`` is the
    optimistic-concurrency counter checked by every lifecycle UPDATE.
    """

    __tablename__ = "phases"
    __table_args__ = (
        db.UniqueConstraint("project_id", "phase_order", name="uq_phases_project_order"),
        db.Index("ix_phases_project_status", "project_id", "status"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    phase_order = db.Column(db.Integer, nullable=False, comment="1-based position within the project")
    phase_name = db.Column(db.String(200), nullable=False)
    is_custom = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(
        db.String(20), nullable=False, default="not_started",
        comment="not_started | ready | in_progress | submitted | approved | completed",
    )

    # Effort
    planned_weeks = db.Column(db.Float, nullable=False, default=0)
    predicted_hours = db.Column(db.Float, nullable=True)
    actual_hours = db.Column(db.Float, nullable=False, default=0)

    # Timeline
    planned_start_date = db.Column(db.Date, nullable=True)
    planned_end_date = db.Column(db.Date, nullable=True)
    actual_start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_end_date = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_date = db.Column(db.Date, nullable=True)
    approved_date = db.Column(db.Date, nullable=True)

    # Risk flags
    warning_flag = db.Column(db.Boolean, nullable=False, default=False)
    delay_reason = db.Column(db.String(10), nullable=False, default="none", comment="none | client | company")

    # Early access (supervisor override)
    early_access_granted = db.Column(db.Boolean, nullable=False, default=False)
    early_access_status = db.Column(
        db.String(20), nullable=False, default="not_accessible",
        comment="not_accessible | accessible | in_progress",
    )
    early_access_granted_by = db.Column(db.Integer, nullable=True)
    early_access_granted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    early_access_note = db.Column(db.Text, nullable=True)

    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    work_logs = db.relationship("WorkLog", backref="phase", lazy="dynamic", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase_order": self.phase_order,
            "phase_name": self.phase_name,
            "is_custom": self.is_custom,
            "status": self.status,
            "planned_weeks": self.planned_weeks,
            "predicted_hours": self.predicted_hours,
            "actual_hours": self.actual_hours,
            "planned_start_date": self.planned_start_date.isoformat() if self.planned_start_date else None,
            "planned_end_date": self.planned_end_date.isoformat() if self.planned_end_date else None,
            "actual_start_date": self.actual_start_date.isoformat() if self.actual_start_date else None,
            "actual_end_date": self.actual_end_date.isoformat() if self.actual_end_date else None,
            "submitted_date": self.submitted_date.isoformat() if self.submitted_date else None,
            "approved_date": self.approved_date.isoformat() if self.approved_date else None,
            "warning_flag": self.warning_flag,
            "delay_reason": self.delay_reason,
            "early_access_granted": self.early_access_granted,
            "early_access_status": self.early_access_status,
            "early_access_granted_by": self.early_access_granted_by,
            "early_access_granted_at": (
                self.early_access_granted_at.isoformat() if self.early_access_granted_at else None
            ),
            "early_access_note": self.early_access_note,
            "version": self.version,
        }

    def __repr__(self):
        return f"<Phase {self.id}: #{self.phase_order} {self.phase_name} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. PhaseDependency
# ═════════════════════════════════════════════════════════════════════════════


class PhaseDependency(db.Model):
    """
    Directed edge: predecessor must satisfy ``dependency_type`` before successor.

    ``is_critical_path`` is recomputed wholesale by the critical-path service;
    nothing else updates an edge in place.
    """

    __tablename__ = "phase_dependencies"
    __table_args__ = (
        db.UniqueConstraint(
            "predecessor_phase_id", "successor_phase_id",
            name="uq_phase_dependency_pair",
        ),
        db.CheckConstraint(
            "predecessor_phase_id != successor_phase_id",
            name="ck_phase_dependency_no_self",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    predecessor_phase_id = db.Column(
        db.Integer, db.ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    successor_phase_id = db.Column(
        db.Integer, db.ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    dependency_type = db.Column(
        db.String(20), nullable=False, default="finish_to_start",
        comment="finish_to_start | start_to_start | finish_to_finish | start_to_finish",
    )
    lag_days = db.Column(db.Integer, nullable=False, default=0)
    weight_factor = db.Column(db.Float, nullable=False, default=1.0)
    is_critical_path = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    predecessor = db.relationship("Phase", foreign_keys=[predecessor_phase_id])
    successor = db.relationship("Phase", foreign_keys=[successor_phase_id])

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "predecessor_phase_id": self.predecessor_phase_id,
            "successor_phase_id": self.successor_phase_id,
            "predecessor_name": self.predecessor.phase_name if self.predecessor else None,
            "successor_name": self.successor.phase_name if self.successor else None,
            "dependency_type": self.dependency_type,
            "lag_days": self.lag_days,
            "weight_factor": self.weight_factor,
            "is_critical_path": self.is_critical_path,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return (
            f"<PhaseDependency {self.id}: {self.predecessor_phase_id} "
            f"→ {self.successor_phase_id} ({self.dependency_type})>"
        )


# ═════════════════════════════════════════════════════════════════════════════
# 3. WorkLog
# ═════════════════════════════════════════════════════════════════════════════


class WorkLog(db.Model):
    """Hours an engineer logged against a phase. Maintained by the time-tracking module."""

    __tablename__ = "work_logs"
    __table_args__ = (
        db.Index("ix_work_logs_phase_engineer", "phase_id", "engineer_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    phase_id = db.Column(
        db.Integer, db.ForeignKey("phases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    engineer_id = db.Column(db.Integer, nullable=False, index=True)
    hours = db.Column(db.Float, nullable=False, default=0)
    work_date = db.Column(db.Date, nullable=True)
    description = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "phase_id": self.phase_id,
            "engineer_id": self.engineer_id,
            "hours": self.hours,
            "work_date": self.work_date.isoformat() if self.work_date else None,
            "description": self.description,
        }

    def __repr__(self):
        return f"<WorkLog {self.id}: engineer={self.engineer_id} phase={self.phase_id} {self.hours}h>"
