from flask import jsonify, request
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from services.errors import AuthError

logger = logging.getLogger(__name__)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status, "path": request.path}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Typed auth failures carry their own status and code
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        logger.warning("%s on %s: %s", err.error_code, request.path, err.message)
        return error_response(err.error_code, err.message, err.status_code)

    # Marshmallow validation errors: every failing field in one response
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        logger.warning("Validation error on %s: %s", request.path, err.messages)
        messages = err.messages if isinstance(err.messages, dict) else {"_schema": err.messages}
        return error_response("VALIDATION_ERROR", "Validation failed", 400, details=messages)

    # Unique constraint races that escaped the store
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        logger.warning("Integrity error on %s: %s", request.path, err.orig)
        return error_response("CONFLICT", "Unique constraint violated.", 409)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("ENDPOINT_NOT_FOUND", "Resource not found", 404)

    # 405 Method Not Allowed
    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response(
            "METHOD_NOT_ALLOWED", f"HTTP method '{request.method}' is not supported for this endpoint", 405
        )

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("BAD_REQUEST", err.description, err.code or 400)

    # 500 Internal Error (catch-all); never echo the exception text
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception on %s", request.path, exc_info=err)
        return error_response("INTERNAL_ERROR", "An unexpected error occurred. Please try again later.", 500)
