"""
In-app notifications for phase activity.

``notify_phase_event`` is subscribed to the phase event bus at app start,
so each committed lifecycle write leaves one broadcast notification for
the project team.  Recipients are user ids as strings, or ``"all"``.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from phasetrack.models import db
from phasetrack.models.notification import Notification

logger = logging.getLogger(__name__)

_DEFAULT_TEMPLATE = ("Phase {phase_id} updated", "phase", "info")

_PHASE_EVENT_TEMPLATES = {
    "start": ("Phase {phase_id} started", "phase", "info"),
    "start_early_access": ("Phase {phase_id} started via early access", "early_access", "info"),
    "submit": ("Phase {phase_id} submitted to client", "phase", "info"),
    "approve": ("Phase {phase_id} approved", "phase", "success"),
    "unlock": ("Phase {phase_id} is ready to start", "phase", "info"),
    "complete": ("Phase {phase_id} completed", "phase", "success"),
    "warning_add": ("Warning raised on phase {phase_id}", "phase", "warning"),
    "warning_remove": ("Warning cleared on phase {phase_id}", "phase", "info"),
    "delay": ("Delay recorded on phase {phase_id}", "phase", "warning"),
    "early_access_grant": ("Early access granted to phase {phase_id}", "early_access", "info"),
    "early_access_revoke": ("Early access revoked from phase {phase_id}", "early_access", "warning"),
}


class NotificationService:

    @staticmethod
    def create(*, title, message="", category="system", severity="info",
               recipient="all", project_id=None, entity_type="", entity_id=None):
        """Persist and commit one notification."""
        notif = Notification(
            title=title,
            message=message,
            category=category,
            severity=severity,
            recipient=recipient,
            project_id=project_id,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def notify_phase_event(event):
        """Event bus subscriber: one broadcast notification per committed change."""
        title, category, severity = _PHASE_EVENT_TEMPLATES.get(event.action, _DEFAULT_TEMPLATE)
        by = "system" if event.actor_id is None else f"user {event.actor_id}"
        try:
            return NotificationService.create(
                title=title.format(phase_id=event.phase_id),
                message=f"Status: {event.new_status} (by {by}).",
                category=category,
                severity=severity,
                project_id=event.project_id,
                entity_type="phase",
                entity_id=event.phase_id,
            )
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Notification for phase %s could not be stored", event.phase_id)
            raise
