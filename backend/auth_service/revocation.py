"""
Token revocation registry (the logout blacklist).

Tokens are stateless, so logging out means remembering the exact token string
until it could no longer be used anyway. Each entry is kept for a fixed
window after invalidation; the window is never shorter than the token
lifetime (enforced by AuthSettings), so an entry always outlives the token
it blocks.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from backend.auth_service.models import RevokedToken

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RevokedTokenStore(Protocol):
    def add(self, token: str, invalidated_at: datetime, expires_at: datetime) -> None: ...

    def get(self, token: str) -> Optional[RevokedToken]: ...

    def delete_expired(self, now: datetime) -> int: ...


class RevocationRegistry:
    def __init__(self, store: RevokedTokenStore, window: timedelta, clock: Clock = utcnow):
        self._store = store
        self._window = window
        self._clock = clock

    def revoke(self, token: str) -> None:
        """Record the token as revoked. Revoking the same token twice is a no-op."""
        now = self._clock()
        expires_at = now + self._window
        self._store.add(token, now, expires_at)
        logger.info("[Auth] Token added to blacklist, expires at %s", expires_at.isoformat())

    def is_revoked(self, token: str) -> bool:
        """
        True iff an entry exists for this exact token and has not expired.

        An expired entry counts as not revoked; it is left in place for the
        sweep to remove.
        """
        entry = self._store.get(token)
        if entry is None:
            return False
        return entry.expires_at >= self._clock()

    def sweep(self) -> int:
        """Delete every entry whose expires_at has passed. Returns the count removed."""
        removed = self._store.delete_expired(self._clock())
        if removed > 0:
            logger.info("[Auth] Cleaned up %d expired blacklisted tokens", removed)
        return removed
