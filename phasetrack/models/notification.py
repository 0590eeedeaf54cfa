"""In-app notification rows written by the phase event subscriber."""

from datetime import datetime, timezone

from phasetrack.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class Notification(db.Model):
    """One row per event and recipient; ``recipient="all"`` is a project broadcast."""

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), index=True)
    recipient = db.Column(db.String(150), default="all", index=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system", comment="phase | early_access | system")
    severity = db.Column(db.String(20), default="info", comment="info | success | warning | error")

    # Source entity, usually a phase
    entity_type = db.Column(db.String(30), default="")
    entity_id = db.Column(db.Integer)

    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    _PLAIN_FIELDS = (
        "id", "project_id", "recipient", "title", "message",
        "category", "severity", "entity_type", "entity_id", "is_read",
    )

    def to_dict(self):
        data = {name: getattr(self, name) for name in self._PLAIN_FIELDS}
        data["read_at"] = self.read_at.isoformat() if self.read_at else None
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data

    def __repr__(self):
        return f"<Notification {self.id} {self.title[:40]!r}>"
