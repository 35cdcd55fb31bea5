from dataclasses import dataclass

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from .envelope import build_envelope

NO_TOKEN_MESSAGE = "Not authorized, no token"
TOKEN_FAILED_MESSAGE = "Not authorized, token failed"
NOT_ADMIN_MESSAGE = "Not authorized as an admin"


class ConfigurationError(Exception):
    """Raised at startup when the process cannot be configured to serve."""


@dataclass(frozen=True)
class Rejection:
    """A gate decision that halts the request before the route handler."""

    message: str
    status_code: int = 401

    def to_response(self):
        return jsonify(build_envelope(None, self.message)), self.status_code


class AuthenticationError(Rejection):
    pass


class AuthorizationError(Rejection):
    pass


def register_error_handlers(app: Flask, *, expose_details: bool = False) -> None:
    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code == 404:
            message = f"Not Found - {request.path}"
        else:
            message = exc.description or exc.name
        return jsonify(build_envelope(None, message)), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception(
            "Unhandled error on %s %s", request.method, request.path
        )
        message = str(exc) if expose_details and str(exc) else "Internal server error"
        return jsonify(build_envelope(None, message)), 500
