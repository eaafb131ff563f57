"""
Auth gate: per-request authentication.

Two entry points share one verification core (`AuthGate.verify`):

- The global hook, installed on the app with `AuthGate.install`, runs before
  every request under the API prefix. Public routes pass untouched; anything
  else needs a live token (present, not revoked, correctly signed, not
  expired). The user record is not loaded here.
- The `@authenticate` decorator, for routes that act on behalf of a user,
  additionally loads the user and passes the verified identity to the view
  as the `identity` keyword argument.

Every check returns an `AuthResult` instead of raising; a failed result is
turned into a 401 JSON body by `failure_response`, and the view never runs.
"""

import logging
from dataclasses import dataclass
from functools import wraps
from typing import Callable, Optional, Protocol

from flask import Flask, current_app, g, request

from backend.auth_service.errors import (
    AuthFailure,
    ExpiredTokenError,
    InvalidTokenError,
    failure_response,
)
from backend.auth_service.models import AuthenticatedIdentity, TokenClaims, User
from backend.auth_service.public_routes import GATE_EXEMPT_PATHS, is_api_path, is_public_route
from backend.auth_service.revocation import RevocationRegistry
from backend.auth_service.tokens import TokenCodec

logger = logging.getLogger(__name__)

EXTENSION_KEY = "auth"
BEARER_PREFIX = "Bearer "


class UserStore(Protocol):
    def get_by_id(self, user_id: str) -> Optional[User]: ...


@dataclass(frozen=True)
class AuthResult:
    claims: Optional[TokenClaims] = None
    identity: Optional[AuthenticatedIdentity] = None
    failure: Optional[AuthFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def fail(cls, failure: AuthFailure) -> "AuthResult":
        return cls(failure=failure)


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Return the token from an `Authorization: Bearer <token>` header, or None."""
    if not header or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


class AuthGate:
    def __init__(self, codec: TokenCodec, registry: RevocationRegistry, users: UserStore):
        self._codec = codec
        self._registry = registry
        self._users = users

    # --- VERIFICATION CORE ---
    def verify(self, token: str, resolve_user: bool = True) -> AuthResult:
        """
        Check a raw token.

        Order: revocation, then signature and expiry, then (optionally) the
        user record. Store errors propagate to the caller.
        """
        if self._registry.is_revoked(token):
            return AuthResult.fail(AuthFailure.REVOKED_TOKEN)

        try:
            claims = self._codec.verify(token)
        except ExpiredTokenError:
            return AuthResult.fail(AuthFailure.EXPIRED_TOKEN)
        except InvalidTokenError:
            return AuthResult.fail(AuthFailure.INVALID_TOKEN)

        if not resolve_user:
            return AuthResult(claims=claims)
        return self._resolve(claims)

    def _resolve(self, claims: TokenClaims) -> AuthResult:
        user = self._users.get_by_id(claims.user_id)
        if user is None:
            return AuthResult.fail(AuthFailure.USER_NOT_FOUND)
        return AuthResult(claims=claims, identity=AuthenticatedIdentity.from_user(user))

    def authenticate_request(self, resolve_user: bool = True) -> AuthResult:
        """
        Authenticate the current Flask request.

        Claims verified earlier in the same request (by the global hook) are
        reused, so a guarded route costs one revocation lookup and one user
        lookup. Unexpected errors degrade to UNAVAILABLE.
        """
        token = extract_bearer_token(request.headers.get("Authorization"))
        if token is None:
            result = AuthResult.fail(AuthFailure.MISSING_TOKEN)
        else:
            try:
                verified = g.get("auth_verified")
                if verified is not None and verified[0] == token:
                    result = self._resolve(verified[1]) if resolve_user else AuthResult(claims=verified[1])
                else:
                    result = self.verify(token, resolve_user=resolve_user)
            except Exception:
                logger.exception(
                    "[Auth] Unexpected failure authenticating %s %s", request.method, request.path
                )
                return AuthResult.fail(AuthFailure.UNAVAILABLE)

        if result.ok:
            g.auth_verified = (token, result.claims)
        else:
            logger.info(
                "[Auth] Rejected %s %s: %s", request.method, request.path, result.failure.value
            )
        return result

    # --- GLOBAL HOOK ---
    def before_request(self):
        path = request.path
        if not is_api_path(path) or is_public_route(path, request.method):
            return None
        if path in GATE_EXEMPT_PATHS:
            return None

        result = self.authenticate_request(resolve_user=False)
        if not result.ok:
            return failure_response(result.failure)
        return None

    def install(self, app: Flask) -> None:
        app.before_request(self.before_request)


def current_gate() -> AuthGate:
    return current_app.extensions[EXTENSION_KEY].gate


def authenticate(view: Callable) -> Callable:
    """
    Route guard: resolve the caller or answer 401.

    Usage:
        @users_bp.route("/protected", methods=["GET"])
        @authenticate
        def protected(identity: AuthenticatedIdentity):
            ...
    """

    @wraps(view)
    def wrapper(*args, **kwargs):
        result = current_gate().authenticate_request()
        if not result.ok:
            return failure_response(result.failure)
        kwargs["identity"] = result.identity
        return view(*args, **kwargs)

    return wrapper


def optional_identity() -> Optional[AuthenticatedIdentity]:
    """Identity of the caller if a valid token was sent, otherwise None. Never fails the request."""
    if not request.headers.get("Authorization"):
        return None
    result = current_gate().authenticate_request()
    return result.identity if result.ok else None
