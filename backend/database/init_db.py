"""
Database bootstrap: creates the schema and seeds the first admin account.

Safe to run repeatedly; every statement is idempotent.

Usage:
    python -m backend.database.init_db

Reads DATABASE_URL, and optionally ADMIN_EMAIL / ADMIN_PASSWORD for the
seed account, from the environment or a .env file.
"""

import logging
import os
import sys
import uuid

import psycopg2
from dotenv import load_dotenv

from backend.auth_service.models import Role, normalize_email
from backend.auth_service.passwords import hash_password

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS users (
        user_id UUID PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'ATTENDEE'
            CHECK (role IN ('ATTENDEE', 'ORGANIZER', 'ADMIN')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS users_email_lower_idx ON users (LOWER(email));",
    """
    CREATE TABLE IF NOT EXISTS revoked_tokens (
        token TEXT PRIMARY KEY,
        invalidated_at TIMESTAMPTZ NOT NULL,
        expires_at TIMESTAMPTZ NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS revoked_tokens_expires_at_idx ON revoked_tokens (expires_at);",
    """
    CREATE TABLE IF NOT EXISTS events (
        event_id UUID PRIMARY KEY,
        title VARCHAR(200) NOT NULL,
        description TEXT,
        start_time TIMESTAMPTZ NOT NULL,
        end_time TIMESTAMPTZ NOT NULL,
        location TEXT NOT NULL,
        organizer_id UUID NOT NULL REFERENCES users (user_id) ON DELETE CASCADE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CHECK (start_time < end_time)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS event_attendees (
        event_id UUID NOT NULL REFERENCES events (event_id) ON DELETE CASCADE,
        user_id UUID NOT NULL REFERENCES users (user_id) ON DELETE CASCADE,
        signed_up_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        PRIMARY KEY (event_id, user_id)
    );
    """,
)


def create_schema(conn) -> None:
    with conn.cursor() as cur:
        for statement in SCHEMA_STATEMENTS:
            cur.execute(statement)


def seed_admin(conn, email: str, password: str) -> bool:
    """
    Create the admin account unless that email is already registered.

    Returns:
        bool: True if a row was inserted.
    """
    sql = """
        INSERT INTO users (user_id, email, password_hash, role)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT DO NOTHING;
    """
    with conn.cursor() as cur:
        cur.execute(sql, (str(uuid.uuid4()), normalize_email(email), hash_password(password), Role.ADMIN.value))
        return cur.rowcount > 0


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    load_dotenv()

    dsn = os.getenv("DATABASE_URL")
    if not dsn:
        logger.critical("DATABASE_URL is not set. Please set the environment variable.")
        sys.exit(1)

    conn = psycopg2.connect(dsn)
    try:
        with conn:
            create_schema(conn)
            logger.info("Schema is up to date.")

            admin_email = os.getenv("ADMIN_EMAIL")
            admin_password = os.getenv("ADMIN_PASSWORD")
            if admin_email and admin_password:
                if seed_admin(conn, admin_email, admin_password):
                    logger.info("Seeded admin account %s", normalize_email(admin_email))
                else:
                    logger.info("Admin account %s already exists", normalize_email(admin_email))
            else:
                logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping admin seed.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
