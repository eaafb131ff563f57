import uuid
from datetime import datetime, timezone
from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest

from backend.auth_service.config import AuthSettings
from backend.auth_service.errors import EmailTakenError
from backend.auth_service.models import RevokedToken, Role, User
from backend.auth_service.service import AuthService
from backend.gateway.server import create_app


class InMemoryUserRepository:
    """Stands in for UserRepository so auth flows run without PostgreSQL."""

    def __init__(self):
        self.rows: Dict[str, User] = {}

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self.rows.get(user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        for user in self.rows.values():
            if user.email == email:
                return user
        return None

    def create(self, email: str, password_hash: str, role: Role = Role.ATTENDEE) -> User:
        if self.get_by_email(email) is not None:
            raise EmailTakenError(email)
        user = User(id=str(uuid.uuid4()), email=email, password_hash=password_hash, role=role)
        self.rows[user.id] = user
        return user


class InMemoryRevokedTokenRepository:
    def __init__(self):
        self.rows: Dict[str, RevokedToken] = {}

    def add(self, token: str, invalidated_at: datetime, expires_at: datetime) -> None:
        self.rows.setdefault(token, RevokedToken(token, invalidated_at, expires_at))

    def get(self, token: str) -> Optional[RevokedToken]:
        return self.rows.get(token)

    def delete_expired(self, now: datetime) -> int:
        expired = [token for token, entry in self.rows.items() if entry.expires_at < now]
        for token in expired:
            del self.rows[token]
        return len(expired)


@pytest.fixture
def settings():
    return AuthSettings(jwt_secret="test_secret")


@pytest.fixture
def users():
    return InMemoryUserRepository()


@pytest.fixture
def revoked_tokens():
    return InMemoryRevokedTokenRepository()


@pytest.fixture
def scheduler():
    return MagicMock()


@pytest.fixture
def auth_service(settings, users, revoked_tokens, scheduler):
    return AuthService(settings, users, revoked_tokens, scheduler=scheduler)


@pytest.fixture
def app(settings, auth_service):
    app = create_app(settings, auth_service=auth_service, database=MagicMock(), start_sweeper=False)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def mock_db(mocker):
    """
    Mocks the database connection and cursor used by the events routes.
    """
    mock_conn = MagicMock()
    mock_cursor = MagicMock()

    # Setup the context managers for connection and cursor
    mock_conn.__enter__.return_value = mock_conn
    mock_conn.__exit__.return_value = None
    mock_cursor.__enter__.return_value = mock_cursor
    mock_cursor.__exit__.return_value = None

    mock_conn.cursor.return_value = mock_cursor

    mocker.patch("backend.events_service.routes.get_db", return_value=mock_conn)

    return mock_conn, mock_cursor


@pytest.fixture
def make_user(auth_service):
    """Returns a function that registers a user through the service."""

    def _make_user(email: str, password: str = "password123", role: Role = Role.ATTENDEE) -> User:
        return auth_service.register(email, password, role)

    return _make_user


@pytest.fixture
def auth_header(auth_service):
    """Returns a function that issues a token for a user and wraps it in a header."""

    def _auth_header(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {auth_service.codec.issue(user)}"}

    return _auth_header


@pytest.fixture
def event_row():
    """Returns a function building an events table row owned by the given user."""

    def _event_row(organizer_id: str, event_id: Optional[str] = None, **overrides) -> dict:
        row = {
            "event_id": event_id or str(uuid.uuid4()),
            "title": "Spring Mixer",
            "description": "Meet the new cohort",
            "start_time": datetime(2030, 4, 1, 18, 0, tzinfo=timezone.utc),
            "end_time": datetime(2030, 4, 1, 21, 0, tzinfo=timezone.utc),
            "location": "Student Union",
            "organizer_id": organizer_id,
            "created_at": datetime(2030, 1, 1, tzinfo=timezone.utc),
        }
        row.update(overrides)
        return row

    return _event_row
