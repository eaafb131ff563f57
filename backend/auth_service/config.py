"""
Auth service configuration.

Settings are read from the environment (and a .env file) once, when the
gateway starts. A missing JWT_SECRET stops the process right there instead of
surfacing later as a request-time failure.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_TOKEN_EXPIRATION_MINUTES = 7 * 24 * 60  # 7 days
DEFAULT_SWEEP_INTERVAL_SECONDS = 3600
DEFAULT_CORS_ORIGINS = ("http://localhost:3000",)


@dataclass(frozen=True)
class AuthSettings:
    jwt_secret: str
    token_ttl: timedelta = timedelta(minutes=DEFAULT_TOKEN_EXPIRATION_MINUTES)
    # None means "same as token_ttl"
    revocation_window: Optional[timedelta] = None
    sweep_interval_seconds: int = DEFAULT_SWEEP_INTERVAL_SECONDS
    database_url: Optional[str] = None
    db_pool_min: int = 1
    db_pool_max: int = 10
    cors_origins: Tuple[str, ...] = field(default=DEFAULT_CORS_ORIGINS)

    def __post_init__(self) -> None:
        if not self.jwt_secret:
            raise RuntimeError("JWT_SECRET is missing. Set it in .env")
        if self.token_ttl <= timedelta(0):
            raise RuntimeError("TOKEN_EXPIRATION_MINUTES must be positive")
        if self.revocation_window is None:
            object.__setattr__(self, "revocation_window", self.token_ttl)
        # A revocation entry must outlive the longest-lived token it can shadow.
        if self.revocation_window < self.token_ttl:
            raise RuntimeError(
                "REVOCATION_WINDOW_MINUTES must be at least TOKEN_EXPIRATION_MINUTES"
            )
        if self.sweep_interval_seconds <= 0:
            raise RuntimeError("BLACKLIST_SWEEP_INTERVAL_SECONDS must be positive")


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> AuthSettings:
    """
    Build the process-wide settings.

    Args:
        env (Mapping, optional): Source of variables. Defaults to os.environ
            after loading .env.

    Returns:
        AuthSettings: Validated settings.

    Raises:
        RuntimeError: If JWT_SECRET is absent or a value is out of range.
    """
    if env is None:
        load_dotenv()
        env = os.environ

    token_minutes = _int_env(env, "TOKEN_EXPIRATION_MINUTES", DEFAULT_TOKEN_EXPIRATION_MINUTES)
    window_minutes = _int_env(env, "REVOCATION_WINDOW_MINUTES", token_minutes)
    origins = tuple(
        origin.strip()
        for origin in env.get("CORS_ORIGINS", ",".join(DEFAULT_CORS_ORIGINS)).split(",")
        if origin.strip()
    )

    return AuthSettings(
        jwt_secret=env.get("JWT_SECRET", ""),
        token_ttl=timedelta(minutes=token_minutes),
        revocation_window=timedelta(minutes=window_minutes),
        sweep_interval_seconds=_int_env(
            env, "BLACKLIST_SWEEP_INTERVAL_SECONDS", DEFAULT_SWEEP_INTERVAL_SECONDS
        ),
        database_url=env.get("DATABASE_URL") or None,
        db_pool_min=_int_env(env, "DB_POOL_MIN", 1),
        db_pool_max=_int_env(env, "DB_POOL_MAX", 10),
        cors_origins=origins,
    )
