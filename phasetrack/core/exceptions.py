"""
Exception hierarchy for the scheduling core.

Services raise these; ``phasetrack.utils.errors`` maps each one to a
status code and error envelope, so no service builds an HTTP response.

    raise NotFoundError(resource="Phase", resource_id=42)
    raise InvalidTransitionError("approve", current_status="ready", message="...")
"""


class NotFoundError(Exception):
    """Missing record, or a record outside the caller's project scope (404)."""

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        where = "" if resource_id is None else f" id={resource_id}"
        super().__init__(f"{resource}{where} not found")


class ValidationError(Exception):
    """Malformed input or a broken business rule (422); ``details`` is per field."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """A unique value already taken (409)."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class InvalidTransitionError(Exception):
    """Raised when a lifecycle precondition is not met.

    The phase is left untouched; ``current_status`` lets the caller render
    a precise message.  Maps to HTTP 409.
    """

    def __init__(self, action: str, current_status: str, message: str) -> None:
        self.action = action
        self.current_status = current_status
        super().__init__(message)


class ConcurrencyConflictError(Exception):
    """Raised when an optimistic compare-and-swap write lost the race.

    Maps to HTTP 409.  The caller should re-read the phase and retry.
    """

    def __init__(self, resource: str, resource_id: int, expected_version: int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected_version
        msg = f"{resource} id={resource_id} was modified concurrently"
        if expected_version is not None:
            msg += f" (expected version {expected_version})"
        msg += "; reload and retry"
        super().__init__(msg)


class GraphError(Exception):
    """Raised when a dependency edge would make the phase graph cyclic or self-referencing.

    Maps to HTTP 422.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)
