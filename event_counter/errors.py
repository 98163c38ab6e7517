"""
Error taxonomy shared by every route.

Each error knows the HTTP status it maps to, so handlers can translate any
failure into a short JSON body with ``err.to_response()``.
"""

from typing import Tuple

from flask import Response, jsonify


class ApiError(Exception):
    """Base class for errors that are reported to the caller."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_response(self) -> Tuple[Response, int]:
        return jsonify({"error": self.message}), self.status_code


class ValidationError(ApiError):
    """A required field is missing or malformed."""

    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(ApiError):
    """The caller could not be identified, or gave a wrong password."""

    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(ApiError):
    """The caller is identified but not allowed to perform the action."""

    status_code = 403
    default_message = "Permission denied"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class ConfigurationError(ApiError):
    """A server-side setting the operation depends on is missing."""

    status_code = 500
    default_message = "Server configuration error"


class InternalError(ApiError):
    status_code = 500
