"""
Error types for the authentication service.

Two families live here:

- Exceptions raised by leaf components (the token codec, the user store).
- `AuthFailure`, the closed set of reasons the auth gate can refuse a request.
  The gate returns these as values and converts them to HTTP responses in a
  single place, so every failure kind maps to exactly one status and message.
"""

import enum
from typing import Dict, Tuple

from flask import Response, jsonify


class TokenError(Exception):
    """Base class for token verification failures."""


class InvalidTokenError(TokenError):
    """Signature mismatch, malformed token or missing claims."""


class ExpiredTokenError(TokenError):
    """The token's own expiry has passed."""


class EmailTakenError(Exception):
    """A user with this email already exists."""

    def __init__(self, email: str):
        super().__init__(f"Email is already taken: {email}")
        self.email = email


class AuthFailure(enum.Enum):
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    EXPIRED_TOKEN = "expired_token"
    REVOKED_TOKEN = "revoked_token"
    USER_NOT_FOUND = "user_not_found"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_ROLE = "insufficient_role"
    OWNERSHIP_VIOLATION = "ownership_violation"

    @property
    def status_code(self) -> int:
        return _FAILURES[self][0]

    @property
    def message(self) -> str:
        return _FAILURES[self][1]


# Expired and invalid tokens share a message; they stay distinct kinds for logging.
_FAILURES: Dict[AuthFailure, Tuple[int, str]] = {
    AuthFailure.MISSING_TOKEN: (401, "Missing authentication token"),
    AuthFailure.INVALID_TOKEN: (401, "Invalid authentication token"),
    AuthFailure.EXPIRED_TOKEN: (401, "Invalid authentication token"),
    AuthFailure.REVOKED_TOKEN: (401, "Authentication token has been revoked"),
    AuthFailure.USER_NOT_FOUND: (401, "User not found"),
    AuthFailure.UNAVAILABLE: (401, "Authentication required"),
    AuthFailure.INSUFFICIENT_ROLE: (403, "Forbidden"),
    AuthFailure.OWNERSHIP_VIOLATION: (403, "Forbidden"),
}


def error_response(message: str, status_code: int) -> Tuple[Response, int]:
    """Uniform JSON error body used by every service: {"message": ...}."""
    return jsonify({"message": message}), status_code


def failure_response(failure: AuthFailure) -> Tuple[Response, int]:
    """
    Convert an auth failure into its HTTP response.

    401 responses carry a `WWW-Authenticate: Bearer` challenge.
    """
    response, status_code = error_response(failure.message, failure.status_code)
    if status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response, status_code
