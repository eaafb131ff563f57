"""
Authorization rules applied by resource handlers after authentication.

All functions are pure. A False result is the handler's cue to answer 403
with a message naming the action (see authorization_error_message).
"""

from typing import Protocol

from backend.auth_service.models import AuthenticatedIdentity, Role


class OwnedResource(Protocol):
    @property
    def owner_id(self) -> str: ...


def is_admin(identity: AuthenticatedIdentity) -> bool:
    return identity.role == Role.ADMIN


def can_modify(identity: AuthenticatedIdentity, resource: OwnedResource) -> bool:
    """Admins may modify anything; everyone else only what they own."""
    return is_admin(identity) or resource.owner_id == identity.id


def can_create_events(identity: AuthenticatedIdentity) -> bool:
    return identity.role in (Role.ORGANIZER, Role.ADMIN)


def authorization_error_message(action: str) -> str:
    return f"Unauthorized to {action} the event"
