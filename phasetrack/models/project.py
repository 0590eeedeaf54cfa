"""Project domain model: owner of an ordered phase sequence."""

from datetime import datetime, timezone

from phasetrack.models import db


class Project(db.Model):
    """Architecture project tracked as an ordered set of phases."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    planned_total_weeks = db.Column(db.Float, nullable=True)
    predicted_hours = db.Column(db.Float, nullable=True)
    created_by = db.Column(
        db.Integer, nullable=True,
        comment="User id of the supervisor who created the project",
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    phases = db.relationship(
        "Phase", backref="project", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Phase.phase_order",
    )
    dependencies = db.relationship(
        "PhaseDependency", backref="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_phases=False):
        result = {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "planned_total_weeks": self.planned_total_weeks,
            "predicted_hours": self.predicted_hours,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_phases:
            result["phases"] = [p.to_dict() for p in self.phases]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.name}>"
