"""
Append-only audit trail.

Every project setup, phase lifecycle write and dependency change adds one
``AuditLog`` row inside the same transaction as the change it records.
Rows are never updated; corrections are new rows.
"""

import json
import logging
from datetime import UTC, datetime

from phasetrack.models import db

logger = logging.getLogger(__name__)

AUDIT_ENTITY_TYPES = ("project", "phase", "phase_dependency")

AUDIT_ACTIONS = frozenset({
    "project.create",
    "phase.start",
    "phase.submit",
    "phase.approve",
    "phase.unlock",
    "phase.complete",
    "phase.warning_add",
    "phase.warning_remove",
    "phase.delay_client",
    "phase.delay_company",
    "phase.early_access_grant",
    "phase.early_access_revoke",
    "dependency.create",
    "dependency.delete",
})


class AuditLog(db.Model):
    """One row per recorded action; ``diff_json`` holds ``{field: {old, new}}``."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_project", "project_id"),
        db.Index("idx_audit_actor", "actor_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="SET NULL"))
    entity_type = db.Column(db.String(30), nullable=False, comment="project | phase | phase_dependency")
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(60), nullable=False, comment="phase.approve, dependency.create, ...")
    actor_id = db.Column(db.Integer, comment="null for system writes")
    note = db.Column(db.Text, default="")
    diff_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    @property
    def diff(self) -> dict:
        if not self.diff_json:
            return {}
        try:
            return json.loads(self.diff_json)
        except ValueError:
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "note": self.note,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}#{self.entity_id}>"


def _optional_id(value):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def write_audit(
    *,
    entity_type: str,
    entity_id,
    action: str,
    actor_id: int | None = None,
    project_id: int | None = None,
    note: str = "",
    diff: dict | None = None,
) -> AuditLog:
    """
    Add an audit row to the current session and flush it.

    The caller owns the transaction, so the row commits or rolls back
    together with the change it describes.
    """
    if action not in AUDIT_ACTIONS:
        logger.warning("Unregistered audit action %r on %s/%s", action, entity_type, entity_id)

    row = AuditLog(
        project_id=_optional_id(project_id),
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_id=_optional_id(actor_id),
        note=note or "",
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(row)
    db.session.flush()
    return row
