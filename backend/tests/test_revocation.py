from datetime import datetime, timedelta, timezone

import pytest

from backend.auth_service.revocation import RevocationRegistry

T0 = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)
WINDOW = timedelta(days=7)


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def registry(revoked_tokens, clock):
    return RevocationRegistry(revoked_tokens, WINDOW, clock=clock)


def test_revoke_and_check(registry, revoked_tokens):
    registry.revoke("token-a")

    assert registry.is_revoked("token-a")
    assert not registry.is_revoked("token-b")
    assert revoked_tokens.rows["token-a"].invalidated_at == T0
    assert revoked_tokens.rows["token-a"].expires_at == T0 + WINDOW


def test_revoke_twice_keeps_first_entry(registry, revoked_tokens, clock):
    registry.revoke("token-a")

    clock.now = T0 + timedelta(days=1)
    registry.revoke("token-a")

    assert len(revoked_tokens.rows) == 1
    assert revoked_tokens.rows["token-a"].invalidated_at == T0


def test_entry_lapses_after_window(registry, revoked_tokens, clock):
    registry.revoke("token-a")

    clock.now = T0 + WINDOW
    assert registry.is_revoked("token-a")

    clock.now = T0 + WINDOW + timedelta(seconds=1)
    assert not registry.is_revoked("token-a")
    # Lapsed entries stay until the sweep runs
    assert "token-a" in revoked_tokens.rows


def test_sweep_removes_only_expired(registry, revoked_tokens, clock):
    registry.revoke("old")
    clock.now = T0 + timedelta(days=3)
    registry.revoke("recent")

    clock.now = T0 + WINDOW + timedelta(hours=1)
    removed = registry.sweep()

    assert removed == 1
    assert list(revoked_tokens.rows) == ["recent"]
    assert not registry.is_revoked("old")
    assert registry.is_revoked("recent")
    assert registry.sweep() == 0
