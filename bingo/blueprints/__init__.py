"""
Bingo Goal Engine
Blueprint registry and shared request helpers.
"""

import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from bingo.core.exceptions import (
    CircularReferenceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bingo.models import db
from bingo.utils.errors import E, api_error

logger = logging.getLogger(__name__)


class MalformedRequest(Exception):
    """Request body missing, not a JSON object, or lacking a required key."""


def json_body() -> dict:
    """Return the JSON object body or raise MalformedRequest."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise MalformedRequest("Request body must be a JSON object")
    return data


def require(data: dict, *keys: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        raise MalformedRequest(f"{', '.join(missing)} is required")


def query_int(name: str, default: int, *, minimum: int = 1, maximum: int = 500) -> int:
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    return max(minimum, min(value, maximum))


def register_error_handlers(bp) -> None:
    """Map service exceptions to JSON responses for every route of ``bp``."""

    @bp.errorhandler(MalformedRequest)
    def _handle_malformed(error: MalformedRequest):
        return api_error(E.VALIDATION_REQUIRED, str(error))

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(CircularReferenceError)
    def _handle_cycle(error: CircularReferenceError):
        return api_error(E.CONFLICT_CYCLE, str(error), details=error.details)

    @bp.errorhandler(InvalidStateError)
    def _handle_invalid_state(error: InvalidStateError):
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(HTTPException)
    def _handle_http(error: HTTPException):
        return jsonify({"error": error.description}), error.code

    @bp.errorhandler(SQLAlchemyError)
    def _handle_database(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.DATABASE, "Database error")

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
