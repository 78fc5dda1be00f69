"""Domain errors and their JSON rendering."""
from __future__ import annotations

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base class for failures that map onto a JSON error response."""

    status_code = 500
    error = "server_error"
    default_message = "Unexpected server error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "error": self.error, "message": self.message}


class Unauthenticated(ApiError):
    status_code = 401
    error = "unauthorized"
    default_message = "Not authorized to access this route"


class Forbidden(ApiError):
    status_code = 403
    error = "forbidden"
    default_message = "Not authorized to perform this action"


class NoOwnerAssigned(Forbidden):
    # Distinct from a plain 403 so clients can tell legacy shops apart.
    status_code = 400
    error = "no_owner"
    default_message = "This massage shop has no owner assigned."


class NotFound(ApiError):
    status_code = 404
    error = "not_found"
    default_message = "Resource not found"


class InvalidReference(ApiError):
    status_code = 400
    error = "invalid_reference"
    default_message = "Malformed identifier"


class ValidationFailed(ApiError):
    status_code = 400
    error = "invalid_payload"
    default_message = "Invalid payload"


class CapExceeded(ApiError):
    status_code = 400
    error = "cap_exceeded"
    default_message = "Appointment limit reached"


class InvalidToken(ApiError):
    status_code = 400
    error = "invalid_token"
    default_message = "Invalid token"


class UpstreamUnavailable(ApiError):
    status_code = 500
    error = "upstream_unavailable"
    default_message = "A required service is unavailable"


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        # Unknown routes, wrong methods and the like get the same body shape.
        error = (exc.name or "error").lower().replace(" ", "_")
        body = {"success": False, "error": error, "message": exc.description or exc.name}
        return jsonify(body), exc.code or 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error", exc_info=exc)
        return jsonify(ApiError().to_dict()), 500
