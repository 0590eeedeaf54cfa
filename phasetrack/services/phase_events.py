"""
Outbound event bus for phase lifecycle changes.

The scheduling core publishes a ``PhaseEvent`` after every committed
lifecycle write; delivery (in-app notification, websocket push, e-mail)
belongs to whoever subscribes.  A failing subscriber is logged and
skipped; it never reaches the caller and never rolls anything back.

Usage:
    from phasetrack.services.phase_events import PhaseEvent, publish

    publish(PhaseEvent(project_id=1, phase_id=3, new_status="approved",
                       actor_id=7, action="approve"))
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "phase_events"


@dataclass(frozen=True)
class PhaseEvent:
    """Immutable payload describing one committed phase change."""

    project_id: int
    phase_id: int
    new_status: str
    actor_id: int | None
    action: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            "project_id": self.project_id,
            "phase_id": self.phase_id,
            "new_status": self.new_status,
            "actor_id": self.actor_id,
            "action": self.action,
            "occurred_at": self.occurred_at.isoformat(),
        }


class PhaseEventBus:
    """Fan-out of PhaseEvents to registered handlers (fire-and-forget)."""

    def __init__(self):
        self._handlers = []

    def subscribe(self, handler):
        """Register ``handler(event)``; returns the handler for decorator use."""
        if handler not in self._handlers:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def handlers(self):
        return tuple(self._handlers)

    def publish(self, event: PhaseEvent) -> int:
        """Deliver ``event`` to every handler. Returns the number that succeeded."""
        delivered = 0
        for handler in tuple(self._handlers):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.warning(
                    "Phase event handler %s failed for %s on phase=%s",
                    getattr(handler, "__name__", handler), event.action, event.phase_id,
                    exc_info=True,
                )
        return delivered


def init_phase_events(app, bus: PhaseEventBus | None = None) -> PhaseEventBus:
    """Attach a bus to ``app.extensions`` (one per app instance)."""
    bus = bus or PhaseEventBus()
    app.extensions[EXTENSION_KEY] = bus
    return bus


def get_event_bus() -> PhaseEventBus:
    """Return the bus bound to the current app, creating it lazily."""
    bus = current_app.extensions.get(EXTENSION_KEY)
    if bus is None:
        bus = init_phase_events(current_app)
    return bus


def publish(event: PhaseEvent) -> int:
    """Publish on the current app's bus."""
    return get_event_bus().publish(event)
