"""Shared request-parsing helpers for the API blueprints.

actor_id:        acting user id from the X-User-Id header
json_body:       request JSON as a dict (empty dict when absent)
parse_date:      ISO / DD.MM.YYYY string to date, None on bad input
parse_date_input: parse_date that raises ValidationError on bad input
parse_number:    float that raises ValidationError on non-numbers, NaN and inf
"""
import logging
import math
from datetime import date, datetime

from flask import g, request

from phasetrack.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ACTOR_HEADER = "X-User-Id"


def actor_id():
    """Return the acting user's id from ``X-User-Id`` (None if absent or malformed).

    Authentication is handled upstream; the header is trusted as-is.
    """
    raw = request.headers.get(ACTOR_HEADER)
    if not raw:
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring malformed %s header: %r", ACTOR_HEADER, raw)
        return None
    g.actor_id = value
    return value


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY (European format)
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value, field):
    """Same as parse_date() but raises ValidationError on non-empty bad input."""
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid {field}. Use YYYY-MM-DD or DD.MM.YYYY.",
            details={field: value},
        )
    return parsed



def parse_number(value, field, *, minimum=None):
    """``float(value)``; raises ValidationError unless finite and >= ``minimum``."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = math.nan
    if not math.isfinite(number):
        # NaN and inf are not representable in the JSON error body
        shown = str(value) if isinstance(value, float) else value
        raise ValidationError(f"{field} must be a number", details={field: shown})
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum:g}", details={field: number})
    return number
