"""
The auth service object.

One `AuthService` is built at startup from the settings and the record
stores, registered on the Flask app, and shut down with the process. It owns
the token codec (and with it the signing secret), the revocation registry,
its sweeper and the auth gate; routes reach it through `current_auth()`.
"""

import logging
from typing import Optional, Protocol

from apscheduler.schedulers.base import BaseScheduler
from flask import Flask, current_app

from backend.auth_service.config import AuthSettings
from backend.auth_service.errors import EmailTakenError
from backend.auth_service.gate import EXTENSION_KEY, AuthGate
from backend.auth_service.models import Role, User, normalize_email
from backend.auth_service.passwords import hash_password, verify_password
from backend.auth_service.revocation import RevocationRegistry, RevokedTokenStore
from backend.auth_service.sweeper import RevocationSweeper
from backend.auth_service.tokens import TokenCodec

logger = logging.getLogger(__name__)


class UserAccountStore(Protocol):
    def get_by_id(self, user_id: str) -> Optional[User]: ...

    def get_by_email(self, email: str) -> Optional[User]: ...

    def create(self, email: str, password_hash: str, role: Role = Role.ATTENDEE) -> User: ...


class AuthService:
    def __init__(
        self,
        settings: AuthSettings,
        users: UserAccountStore,
        revoked_tokens: RevokedTokenStore,
        scheduler: Optional[BaseScheduler] = None,
    ):
        self.settings = settings
        self.users = users
        self.codec = TokenCodec(settings.jwt_secret, settings.token_ttl)
        self.registry = RevocationRegistry(revoked_tokens, settings.revocation_window)
        self.gate = AuthGate(self.codec, self.registry, users)
        self.sweeper = RevocationSweeper(
            self.registry, settings.sweep_interval_seconds, scheduler=scheduler
        )

    def init_app(self, app: Flask, start_sweeper: bool = True) -> None:
        app.extensions[EXTENSION_KEY] = self
        self.gate.install(app)
        if start_sweeper:
            self.sweeper.start()

    def register(self, email: str, password: str, role: Role = Role.ATTENDEE) -> User:
        """
        Create an account.

        Raises:
            EmailTakenError: An account with this email already exists.
        """
        email = normalize_email(email)
        if self.users.get_by_email(email) is not None:
            raise EmailTakenError(email)
        user = self.users.create(email, hash_password(password), role)
        logger.info("[Auth] Registered user %s with role %s", user.id, user.role.value)
        return user

    def login(self, email: str, password: str) -> Optional[str]:
        """Return a fresh token for valid credentials, None otherwise."""
        user = self.users.get_by_email(normalize_email(email))
        if user is None or not verify_password(password, user.password_hash):
            return None
        return self.codec.issue(user)

    def logout(self, token: str) -> None:
        self.registry.revoke(token)

    def shutdown(self) -> None:
        self.sweeper.shutdown()


def current_auth() -> AuthService:
    return current_app.extensions[EXTENSION_KEY]
