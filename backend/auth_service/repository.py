"""
SQL access for the auth service: the users table and the revoked-token table.

Both repositories borrow connections from a `Database` pool and return
dataclasses from `auth_service.models`.
"""

import uuid
from datetime import datetime
from typing import Optional

import psycopg2.errors

from backend.auth_service.errors import EmailTakenError
from backend.auth_service.models import RevokedToken, Role, User
from backend.database.db_connection import Database


class UserRepository:
    def __init__(self, db: Database):
        self._db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        sql = "SELECT user_id, email, password_hash, role FROM users WHERE user_id = %s;"
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                row = cur.fetchone()
        return User.from_row(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        sql = "SELECT user_id, email, password_hash, role FROM users WHERE email = %s;"
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                row = cur.fetchone()
        return User.from_row(row) if row else None

    def create(self, email: str, password_hash: str, role: Role = Role.ATTENDEE) -> User:
        """
        Insert a new user.

        Raises:
            EmailTakenError: The unique constraint on email was violated.
        """
        sql = """
            INSERT INTO users (user_id, email, password_hash, role)
            VALUES (%s, %s, %s, %s)
            RETURNING user_id, email, password_hash, role;
        """
        try:
            with self._db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (str(uuid.uuid4()), email, password_hash, role.value))
                    row = cur.fetchone()
        except psycopg2.errors.UniqueViolation:
            raise EmailTakenError(email) from None
        return User.from_row(row)


class RevokedTokenRepository:
    """Revocation entries keyed by the exact token string (primary key lookup)."""

    def __init__(self, db: Database):
        self._db = db

    def add(self, token: str, invalidated_at: datetime, expires_at: datetime) -> None:
        sql = """
            INSERT INTO revoked_tokens (token, invalidated_at, expires_at)
            VALUES (%s, %s, %s)
            ON CONFLICT (token) DO NOTHING;
        """
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (token, invalidated_at, expires_at))

    def get(self, token: str) -> Optional[RevokedToken]:
        sql = "SELECT token, invalidated_at, expires_at FROM revoked_tokens WHERE token = %s;"
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (token,))
                row = cur.fetchone()
        return RevokedToken.from_row(row) if row else None

    def delete_expired(self, now: datetime) -> int:
        sql = "DELETE FROM revoked_tokens WHERE expires_at < %s;"
        with self._db.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (now,))
                return cur.rowcount
