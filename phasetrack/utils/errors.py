"""Error envelope for every JSON API response that is not a success.

Body shape::

    {"error": "<human message>", "code": "ERR_...", "details": {...}}

``details`` is omitted when empty.

Usage
-----
    from phasetrack.utils.errors import api_error, domain_error_response, E

    return api_error(E.VALIDATION_REQUIRED, "delay_days is required")
    return domain_error_response(exc)   # any phasetrack.core.exceptions type
"""

from __future__ import annotations

from flask import jsonify

from phasetrack.core.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    GraphError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)


class E:
    """Machine-readable error codes, ``ERR_`` prefixed."""

    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    NOT_FOUND = "ERR_NOT_FOUND"
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    CONFLICT_CONCURRENT = "ERR_CONFLICT_CONCURRENT"
    GRAPH_INVALID = "ERR_GRAPH_INVALID"
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


HTTP_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 422,
    E.VALIDATION_INVALID: 422,
    E.GRAPH_INVALID: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.CONFLICT_CONCURRENT: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

DOMAIN_ERRORS = (
    NotFoundError,
    ValidationError,
    ConflictError,
    InvalidTransitionError,
    ConcurrencyConflictError,
    GraphError,
)


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(jsonify(body), status)`` for ``code``; unknown codes answer 400."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or HTTP_STATUS.get(code, 400)


def _code_and_details(exc: Exception) -> tuple[str, dict | None]:
    if isinstance(exc, NotFoundError):
        return E.NOT_FOUND, None
    if isinstance(exc, ValidationError):
        return E.VALIDATION_INVALID, exc.details
    if isinstance(exc, ConflictError):
        return E.CONFLICT_DUPLICATE, {"field": exc.field, "value": exc.value}
    if isinstance(exc, InvalidTransitionError):
        return E.CONFLICT_STATE, {"action": exc.action, "current_status": exc.current_status}
    if isinstance(exc, ConcurrencyConflictError):
        return E.CONFLICT_CONCURRENT, {
            "resource_id": exc.resource_id,
            "expected_version": exc.expected_version,
        }
    if isinstance(exc, GraphError):
        return E.GRAPH_INVALID, exc.details
    return E.INTERNAL, None


def domain_error_response(exc: Exception):
    """Translate a ``phasetrack.core.exceptions`` error to the envelope."""
    code, details = _code_and_details(exc)
    return api_error(code, str(exc), details=details)
