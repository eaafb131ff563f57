"""
User account route handlers.

Provides routes for:
- User registration
- User login
- Logout (token revocation)
- A protected probe returning the caller's role
- Admin-only account creation with an explicit role

Token checks are done by `auth_service.gate`; account logic lives in
`auth_service.service`.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response, jsonify, request

from backend.auth_service.errors import AuthFailure, EmailTakenError, error_response
from backend.auth_service.gate import authenticate, extract_bearer_token
from backend.auth_service.models import AuthenticatedIdentity, Role, normalize_email
from backend.auth_service.policies import is_admin
from backend.auth_service.service import current_auth

logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__)

PASSWORD_MIN_LENGTH = 8
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def validate_credentials(email: str, password: Any) -> Optional[str]:
    """
    Check registration input.

    Returns:
        str: The first validation error, or None if the input is acceptable.
    """
    if not email:
        return "Email is required"
    if not EMAIL_PATTERN.match(email):
        return "Enter a valid email"
    if not password or not isinstance(password, str):
        return "Password is required"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    return None


# --- REQUEST LOGGING ---
@users_bp.before_request
def before_request() -> None:
    """
    Log every incoming request to the users service.
    The Authorization header is deliberately left out of the log line.
    """
    logger.info(f"[Auth] Incoming {request.method} {request.path}")


@users_bp.after_request
def after_request(response: Response) -> Response:
    logger.info(f"[Auth] Response {response.status}")
    return response


# --- REGISTER ---
@users_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a new attendee account.

    Expects a JSON body with:
    - email (str): Unique email address (case-insensitive).
    - password (str): Minimum 8 characters.

    Returns:
        201: JSON with id and email.
        400: Invalid input or email already taken.
        500: Server-side error (hashing or database).
    """
    data = _json_body()
    email = normalize_email(data.get("email"))
    password = data.get("password")

    error = validate_credentials(email, password)
    if error:
        return error_response(error, 400)

    try:
        user = current_auth().register(email, password)
    except EmailTakenError:
        return error_response("Email is already taken.", 400)
    except Exception:
        logger.exception("[Auth] Registration failed")
        return error_response("Failed to register account.", 500)

    return jsonify({"id": user.id, "email": user.email}), 201


# --- LOGIN ---
@users_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Returns:
        200: {"token": str}
        400: Missing credentials.
        401: Unknown email or wrong password (same message for both).
        500: Database error.
    """
    data = _json_body()
    email = normalize_email(data.get("email"))
    password = data.get("password")

    if not email or not password or not isinstance(password, str):
        return error_response("Email and password are required", 400)

    try:
        token = current_auth().login(email, password)
    except Exception:
        logger.exception("[Auth] Login failed")
        return error_response("Failed to login.", 500)

    if token is None:
        return error_response("Invalid credentials.", 401)

    return jsonify({"token": token}), 200


# --- PROTECTED PROBE ---
@users_bp.route("/protected", methods=["GET"])
@authenticate
def protected(identity: AuthenticatedIdentity) -> Tuple[Response, int]:
    """
    Return the role of the authenticated caller.

    Returns:
        200: {"role": str}
        401: Missing, invalid or revoked token.
    """
    return jsonify({"role": identity.role.value}), 200


# --- LOGOUT ---
@users_bp.route("/logout", methods=["POST"])
@authenticate
def logout(identity: AuthenticatedIdentity) -> Tuple[Response, int]:
    """
    Revoke the token used for this request.

    The token must still be valid and unrevoked; once revoked every later
    request presenting it is rejected until it would have expired anyway.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))

    try:
        current_auth().logout(token)
    except Exception:
        logger.exception("[Auth] Logout failed for user %s", identity.id)
        return error_response("Failed to logout.", 500)

    logger.info("[Auth] User %s logged out", identity.id)
    return jsonify({"message": "Successfully logged out"}), 200


# --- CREATE ACCOUNT (ADMIN ONLY) ---
@users_bp.route("/admin/create", methods=["POST"])
@authenticate
def create_user_as_admin(identity: AuthenticatedIdentity) -> Tuple[Response, int]:
    """
    Admin-only endpoint to create an account with any role.

    Expects JSON:
        { "email": str, "password": str, "role": "ATTENDEE" | "ORGANIZER" | "ADMIN" }

    Returns:
        201: JSON with id and email.
        400: Invalid input, invalid role or email already taken.
        403: Caller is not an admin.
        500: Database error.
    """
    if not is_admin(identity):
        return error_response(AuthFailure.INSUFFICIENT_ROLE.message, 403)

    data = _json_body()
    email = normalize_email(data.get("email"))
    password = data.get("password")

    error = validate_credentials(email, password)
    if error:
        return error_response(error, 400)

    try:
        role = Role.parse(data.get("role", Role.ATTENDEE.value))
    except ValueError:
        return error_response("role must be one of: ATTENDEE, ORGANIZER, ADMIN", 400)

    try:
        user = current_auth().register(email, password, role)
    except EmailTakenError:
        return error_response("Email is already taken.", 400)
    except Exception:
        logger.exception("[Auth] Admin account creation failed")
        return error_response("Failed to register account.", 500)

    logger.info("[Auth] Admin %s created user %s with role %s", identity.id, user.id, role.value)
    return jsonify({"id": user.id, "email": user.email}), 201
