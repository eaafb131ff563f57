"""
Events service routes: create, read, update, delete events, and sign-ups.

Listing and reading are public. Creating requires an organizer or admin;
updating and deleting require the event's organizer or an admin. Signing up
and cancelling require any authenticated user.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from flask import Blueprint, Response, jsonify, request

from backend.auth_service.errors import error_response
from backend.auth_service.gate import authenticate, optional_identity
from backend.auth_service.models import AuthenticatedIdentity
from backend.auth_service.policies import (
    authorization_error_message,
    can_create_events,
    can_modify,
)
from backend.database.db_connection import get_db
from backend.events_service.models import Event

logger = logging.getLogger(__name__)

events_bp = Blueprint("events", __name__)

# --- CONSTANTS FOR VALIDATION ---
TITLE_MAX_LENGTH = 200
UPDATABLE_FIELDS = ("title", "description", "start_time", "end_time", "location")

EVENT_COLUMNS = "event_id, title, description, start_time, end_time, location, organizer_id, created_at"


def parse_dt(val: Optional[str]) -> Optional[datetime]:
    """
    Safely parse an ISO-8601 string to a datetime object.
    Naive values are taken to be UTC.

    Args:
        val (str): The date string to parse.

    Returns:
        datetime: The parsed datetime, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        # Handles 'YYYY-MM-DDTHH:MM' and '...Z' or '...+00:00'
        if val.endswith("Z"):
            val = val[:-1] + "+00:00"
        parsed = datetime.fromisoformat(val)
    except (ValueError, TypeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _fetch_event(cur, event_id: uuid.UUID) -> Optional[Event]:
    cur.execute(f"SELECT {EVENT_COLUMNS} FROM events WHERE event_id = %s;", (str(event_id),))
    row = cur.fetchone()
    return Event.from_row(row) if row else None


def _fetch_attendees(cur, event_id: uuid.UUID) -> List[Dict[str, Any]]:
    cur.execute(
        """
        SELECT u.user_id, u.email, a.signed_up_at
        FROM event_attendees a
        JOIN users u ON a.user_id = u.user_id
        WHERE a.event_id = %s
        ORDER BY a.signed_up_at;
        """,
        (str(event_id),),
    )
    attendees = []
    for row in cur.fetchall():
        signed_up_at = row.get("signed_up_at")
        attendees.append({
            "user_id": str(row["user_id"]),
            "email": row["email"],
            "signed_up_at": signed_up_at.isoformat() if signed_up_at else None,
        })
    return attendees


# --- REQUEST LOGGING ---
@events_bp.before_request
def before_request() -> None:
    logger.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logger.info(f"[Events] Response {response.status}")
    return response


@events_bp.route("", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return all events ordered by start time. Public; attendee lists are never included.
    """
    sql = f"SELECT {EVENT_COLUMNS} FROM events ORDER BY start_time;"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                events = [Event.from_row(row).to_dict() for row in cur.fetchall()]
    except Exception:
        logger.exception("[Events] Database error listing events")
        return error_response("Failed to retrieve events", 500)

    return jsonify(events), 200


@events_bp.route("/<uuid:event_id>", methods=["GET"])
def get_event(event_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Get a single event by ID.

    Anyone may read an event. The attendee list is included only when the
    caller presents a valid token belonging to the organizer or an admin.

    Returns:
        200: Event object.
        404: Event not found.
    """
    identity = optional_identity()

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                event = _fetch_event(cur, event_id)
                if event is None:
                    return error_response("Event not found", 404)

                body = event.to_dict()
                if identity is not None and can_modify(identity, event):
                    body["attendees"] = _fetch_attendees(cur, event_id)
    except Exception:
        logger.exception("[Events] Database error getting event %s", event_id)
        return error_response("Failed to retrieve event", 500)

    return jsonify(body), 200


@events_bp.route("", methods=["POST"])
@authenticate
def create_event(identity: AuthenticatedIdentity) -> Tuple[Response, int]:
    """
    Create an event owned by the caller.

    Expects JSON with title, start_time, end_time, location and an optional
    description.

    Returns:
        201: The created event.
        400: Missing or malformed fields.
        403: Caller is neither an organizer nor an admin.
        500: Server error.
    """
    if not can_create_events(identity):
        return error_response("Insufficient permissions", 403)

    data = _json_body()
    title = data.get("title")
    location = data.get("location")

    # --- START VALIDATION ---
    if not title or not data.get("start_time") or not data.get("end_time") or not location:
        return error_response("title, start_time, end_time and location are required", 400)

    if not isinstance(title, str) or not isinstance(location, str):
        return error_response("title and location must be strings", 400)

    if not isinstance(data.get("description"), (str, type(None))):
        return error_response("description must be a string", 400)

    if len(title) > TITLE_MAX_LENGTH:
        return error_response(f"Title must be {TITLE_MAX_LENGTH} characters or less.", 400)

    start_dt = parse_dt(data.get("start_time"))
    end_dt = parse_dt(data.get("end_time"))

    if not start_dt or not end_dt:
        return error_response("Invalid datetime format. Use ISO-8601.", 400)

    if start_dt >= end_dt:
        return error_response("start_time must be before end_time", 400)
    # --- END VALIDATION ---

    sql = f"""
        INSERT INTO events (event_id, title, description, start_time, end_time, location, organizer_id)
        VALUES (%s, %s, %s, %s, %s, %s, %s)
        RETURNING {EVENT_COLUMNS};
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (
                    str(uuid.uuid4()), title, data.get("description"),
                    start_dt, end_dt, location, identity.id,
                ))
                event = Event.from_row(cur.fetchone())
    except Exception:
        logger.exception("[Events] Database error creating event")
        return error_response("Failed to create event", 500)

    logger.info("[Events] User %s created event %s", identity.id, event.id)
    return jsonify(event.to_dict()), 201


@events_bp.route("/<uuid:event_id>", methods=["PUT"])
@authenticate
def update_event(identity: AuthenticatedIdentity, event_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Update an event.

    Permission: the event's organizer, or an admin.

    Returns:
        200: The updated event.
        400: Validation error.
        403: Caller may not modify this event.
        404: Event not found.
    """
    data = _json_body()
    fields = {key: data[key] for key in UPDATABLE_FIELDS if key in data}
    if not fields:
        return error_response("No valid fields to update", 400)

    if "title" in fields:
        if not fields["title"] or not isinstance(fields["title"], str):
            return error_response("Title cannot be empty", 400)
        if len(fields["title"]) > TITLE_MAX_LENGTH:
            return error_response(f"Title must be {TITLE_MAX_LENGTH} characters or less.", 400)

    if "location" in fields and (not fields["location"] or not isinstance(fields["location"], str)):
        return error_response("Location cannot be empty", 400)

    if "description" in fields and not isinstance(fields["description"], (str, type(None))):
        return error_response("description must be a string", 400)

    for key in ("start_time", "end_time"):
        if key in fields:
            parsed = parse_dt(fields[key])
            if parsed is None:
                return error_response(f"Invalid {key} format. Use ISO-8601.", 400)
            fields[key] = parsed

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                event = _fetch_event(cur, event_id)
                if event is None:
                    return error_response("Event not found", 404)

                if not can_modify(identity, event):
                    return error_response(authorization_error_message("update"), 403)

                final_start = fields.get("start_time", event.start_time)
                final_end = fields.get("end_time", event.end_time)
                if final_start >= final_end:
                    return error_response("start_time must be before end_time", 400)

                set_clause = ", ".join(f"{key} = %s" for key in fields)
                values = list(fields.values()) + [str(event_id)]
                cur.execute(
                    f"UPDATE events SET {set_clause} WHERE event_id = %s RETURNING {EVENT_COLUMNS};",
                    values,
                )
                updated = Event.from_row(cur.fetchone())
    except Exception:
        logger.exception("[Events] Database error updating event %s", event_id)
        return error_response("Failed to update event", 500)

    return jsonify(updated.to_dict()), 200


@events_bp.route("/<uuid:event_id>", methods=["DELETE"])
@authenticate
def delete_event(identity: AuthenticatedIdentity, event_id: uuid.UUID):
    """
    Delete an event if the caller is its organizer or an admin.
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                event = _fetch_event(cur, event_id)
                if event is None:
                    return error_response("Event not found", 404)

                if not can_modify(identity, event):
                    return error_response(authorization_error_message("delete"), 403)

                cur.execute("DELETE FROM events WHERE event_id = %s;", (str(event_id),))
    except Exception:
        logger.exception("[Events] Database error deleting event %s", event_id)
        return error_response("Failed to delete event", 500)

    logger.info("[Events] User %s deleted event %s", identity.id, event_id)
    return "", 204


@events_bp.route("/<uuid:event_id>/signup", methods=["POST"])
@authenticate
def signup(identity: AuthenticatedIdentity, event_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Sign the caller up for an event.

    Returns:
        200: Signed up.
        400: Already signed up.
        404: Event not found.
    """
    sql = """
        INSERT INTO event_attendees (event_id, user_id)
        VALUES (%s, %s)
        ON CONFLICT (event_id, user_id) DO NOTHING;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                if _fetch_event(cur, event_id) is None:
                    return error_response("Event not found", 404)

                cur.execute(sql, (str(event_id), identity.id))
                if cur.rowcount == 0:
                    return error_response("Already signed up for the event", 400)
    except Exception:
        logger.exception("[Events] Database error signing up for event %s", event_id)
        return error_response("Failed to sign up for the event", 500)

    return jsonify({"message": "Successfully signed up for the event"}), 200


@events_bp.route("/<uuid:event_id>/signup", methods=["DELETE"])
@authenticate
def cancel_signup(identity: AuthenticatedIdentity, event_id: uuid.UUID) -> Tuple[Response, int]:
    """
    Cancel the caller's sign-up.

    Returns:
        200: Sign-up removed.
        404: Event not found, or the caller was not signed up.
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                if _fetch_event(cur, event_id) is None:
                    return error_response("Event not found", 404)

                cur.execute(
                    "DELETE FROM event_attendees WHERE event_id = %s AND user_id = %s;",
                    (str(event_id), identity.id),
                )
                if cur.rowcount == 0:
                    return error_response("Not signed up for the event", 404)
    except Exception:
        logger.exception("[Events] Database error cancelling sign-up for event %s", event_id)
        return error_response("Failed to cancel sign-up", 500)

    return jsonify({"message": "Successfully cancelled sign-up for the event"}), 200
