"""
Token codec: creation and verification of the JWTs issued at login.

Claims carried by every token:
- sub: user id
- email, role
- iat, exp: issue and expiry time
- jti: random id, so two tokens issued to the same user in the same second
  are still different strings (revocation is keyed by the exact string).
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

import jwt

from backend.auth_service.errors import ExpiredTokenError, InvalidTokenError
from backend.auth_service.models import Role, TokenClaims, User

ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "email", "role", "iat", "exp"]


# --- JWT CREATION ---
def sign_token(
    claims: Mapping[str, Any],
    secret: str,
    ttl: timedelta,
    now: Optional[datetime] = None,
) -> str:
    """
    Sign a new token.

    Args:
        claims (Mapping): Must contain user_id, email and role.
        secret (str): HMAC signing secret.
        ttl (timedelta): Lifetime of the token.
        now (datetime, optional): Issue time, defaults to the current UTC time.

    Returns:
        str: Encoded JWT string.
    """
    issued_at = now or datetime.now(timezone.utc)

    payload = {
        "sub": str(claims["user_id"]),
        "email": claims["email"],
        "role": Role.parse(claims["role"]).value,
        "iat": issued_at,
        "exp": issued_at + ttl,
        "jti": uuid.uuid4().hex,
    }

    return jwt.encode(payload, secret, algorithm=ALGORITHM)


# --- JWT VALIDATION ---
def verify_token(token: str, secret: str) -> TokenClaims:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        ExpiredTokenError: The token's exp is in the past.
        InvalidTokenError: Bad signature, malformed token, missing or
            unrecognised claims.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError("token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(str(e)) from e

    try:
        role = Role.parse(payload["role"])
    except ValueError as e:
        raise InvalidTokenError("unknown role claim") from e

    return TokenClaims(
        user_id=payload["sub"],
        email=payload["email"],
        role=role,
        issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        token_id=payload.get("jti"),
    )


class TokenCodec:
    """Binds the process-wide secret and token lifetime to sign/verify."""

    def __init__(self, secret: str, ttl: timedelta):
        if not secret:
            raise RuntimeError("JWT_SECRET is missing. Set it in .env")
        self._secret = secret
        self.ttl = ttl

    def issue(self, user: User) -> str:
        return sign_token(
            {"user_id": user.id, "email": user.email, "role": user.role},
            self._secret,
            self.ttl,
        )

    def verify(self, token: str) -> TokenClaims:
        return verify_token(token, self._secret)
