"""
Error taxonomy for the health tracker API.

Each error carries an HTTP status and an outward message. Handlers registered by
``register_error_handlers`` turn them into the usual ``{"success": False,
"message": ...}`` payload. Upstream and unexpected failures are logged in full
but only a generic message leaves the process.
"""
import logging

from flask import jsonify
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class HealthAppError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class Unauthenticated(HealthAppError):
    status_code = 401
    message = "Unauthorized"


class InvalidInput(HealthAppError):
    status_code = 400
    message = "Invalid input"


class NotFound(HealthAppError):
    status_code = 404
    message = "Record not found"


class UpstreamFailure(HealthAppError):
    status_code = 502
    message = "Upstream service unavailable"


def _error_response(status_code: int, message: str):
    return jsonify({"success": False, "message": message}), status_code


def register_error_handlers(app):
    @app.errorhandler(HealthAppError)
    def handle_app_error(err):
        if isinstance(err, UpstreamFailure):
            # detail stays in the logs
            return _error_response(err.status_code, UpstreamFailure.message)
        return _error_response(err.status_code, err.message)

    @app.errorhandler(PyMongoError)
    def handle_storage_error(err):
        logger.exception("Storage call failed")
        return _error_response(UpstreamFailure.status_code, UpstreamFailure.message)

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return _error_response(err.code or 500, err.name)

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        logger.exception("Unhandled error")
        return _error_response(500, HealthAppError.message)
