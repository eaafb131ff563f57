"""
Data shapes used by the authentication service.

These are plain dataclasses, not ORM models: SQL lives in
`auth_service.repository`. A `User` is what the users table stores; an
`AuthenticatedIdentity` is what a route handler receives once the auth gate
has verified the caller.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional


class Role(str, enum.Enum):
    ATTENDEE = "ATTENDEE"
    ORGANIZER = "ORGANIZER"
    ADMIN = "ADMIN"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """
        Accept a Role or a case-insensitive role name.

        Raises:
            ValueError: If the value does not name a role.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid role: {value!r}")
        return cls(value.strip().upper())


def normalize_email(email: Any) -> str:
    """
    Emails are unique case-insensitively, so they are stored trimmed and lowercased.
    Anything that is not a string normalizes to "", which callers treat as missing.
    """
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


@dataclass(frozen=True)
class User:
    id: str
    email: str
    password_hash: str
    role: Role = Role.ATTENDEE

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(
            id=str(row["user_id"]),
            email=row["email"],
            password_hash=row["password_hash"],
            role=Role(row["role"]),
        )


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """The verified caller of the current request. Never persisted."""

    id: str
    email: str
    role: Role

    @classmethod
    def from_user(cls, user: User) -> "AuthenticatedIdentity":
        return cls(id=user.id, email=user.email, role=user.role)

    def to_dict(self) -> dict:
        return {"id": self.id, "email": self.email, "role": self.role.value}


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime
    token_id: Optional[str] = None


@dataclass(frozen=True)
class RevokedToken:
    token: str
    invalidated_at: datetime
    expires_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "RevokedToken":
        return cls(
            token=row["token"],
            invalidated_at=row["invalidated_at"],
            expires_at=row["expires_at"],
        )
