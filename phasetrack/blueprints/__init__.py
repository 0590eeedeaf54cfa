"""
API blueprints.

Services raise ``phasetrack.core.exceptions`` types and never build HTTP
responses.  Each blueprint is wrapped with ``register_error_handlers`` so
those exceptions, database failures and anything unexpected all leave
through the same JSON envelope (``phasetrack.utils.errors``).
"""

import logging

from flask import request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from phasetrack.models import db
from phasetrack.utils.errors import DOMAIN_ERRORS, E, api_error, domain_error_response

logger = logging.getLogger(__name__)


def register_error_handlers(bp):
    """Attach the shared exception handlers to ``bp`` and return it."""

    def _domain(error):
        logger.info("%s rejected on %s: %s", type(error).__name__, request.endpoint, error)
        return domain_error_response(error)

    for exc_type in DOMAIN_ERRORS:
        bp.register_error_handler(exc_type, _domain)

    @bp.errorhandler(SQLAlchemyError)
    def _database(error):
        db.session.rollback()
        logger.exception("Database error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.DATABASE, "Internal server error")

    @bp.errorhandler(Exception)
    def _unexpected(error):
        if isinstance(error, HTTPException):
            return error
        db.session.rollback()
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    return bp
