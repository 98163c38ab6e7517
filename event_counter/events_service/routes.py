"""
Events service routes: list, create, read, update, delete events, and
increment their tally counters.

Authorization comes from the X-User-Id / X-Is-Admin headers set by the
identity middleware. Only one event may be spotlighted at a time; every
write that spotlights an event clears the others in the same transaction.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, jsonify, request
from sqlalchemy import select, update

from event_counter.auth_service.utils import (
    generate_id,
    get_request_identity,
    read_json,
    require_admin,
)
from event_counter.database.db_connection import get_db
from event_counter.database.models import COUNTER_FIELDS, Event, User, utcnow
from event_counter.errors import (
    ApiError,
    AuthenticationError,
    InternalError,
    NotFoundError,
    ValidationError,
)

events_bp = Blueprint("events", __name__)

# Fields only an admin may change through PATCH
ADMIN_FIELDS = ("isSpotlighted", "name", "description")


# --- REQUEST LOGGING ---
@events_bp.before_request
def before_request() -> None:
    logging.info(f"[Events] Incoming {request.method} {request.path}")


@events_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Events] Response {response.status}")
    return response


# --- HELPERS ---
def is_counter_value(value: Any) -> bool:
    # bool is a subclass of int, but True is not a tally
    return isinstance(value, int) and not isinstance(value, bool)


def validate_updates(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the type of every recognised PATCH field.

    Args:
        data (dict): The request body.

    Returns:
        dict: column attribute -> new value, for the fields present.

    Raises:
        ValidationError: A field has the wrong type.
    """
    updates: Dict[str, Any] = {}

    if "isSpotlighted" in data:
        if not isinstance(data["isSpotlighted"], bool):
            raise ValidationError("isSpotlighted must be a boolean")
        updates["is_spotlighted"] = data["isSpotlighted"]

    if "name" in data:
        name = data["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Event name cannot be empty")
        updates["name"] = name

    if "description" in data:
        description = data["description"]
        if description is not None and not isinstance(description, str):
            raise ValidationError("description must be a string")
        updates["description"] = description

    for field in COUNTER_FIELDS:
        if field in data:
            if not is_counter_value(data[field]):
                raise ValidationError(f"{field} must be an integer")
            updates[Event.FIELD_MAP[field]] = data[field]

    return updates


def clear_spotlight(db, keep_id: str) -> None:
    """Unspotlight every event except ``keep_id`` within the caller's transaction."""
    db.execute(
        update(Event)
        .where(Event.id != keep_id, Event.is_spotlighted.is_(True))
        .values(is_spotlighted=False, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )


# --- COLLECTION ---
@events_bp.route("", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    Return events visible to the caller.

    - Admins see every event.
    - Everyone else sees only the spotlighted event (if any).

    Returns:
        200: List of event objects, newest first.
        401: No user identifier.
        500: Database error.
    """
    try:
        user_id, is_admin = get_request_identity()
        if not user_id:
            raise AuthenticationError("Unauthorized")

        query = select(Event).order_by(Event.created_at.desc())
        if not is_admin:
            query = query.where(Event.is_spotlighted.is_(True))

        with get_db() as db:
            rows = [event.to_dict() for event in db.scalars(query)]

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception("[Events] Error fetching events")
        return InternalError("Failed to fetch events").to_response()

    return jsonify(rows), 200


@events_bp.route("", methods=["POST"])
def create_event() -> Tuple[Response, int]:
    """
    Create an event (admin only).

    Expects a JSON body with:
    - name (str): required.
    - description (str, optional)
    - isSpotlighted (bool, optional): spotlighting a new event clears the
      flag on every other event.

    The creator's user row is created on the fly when the identifier was
    never registered.

    Returns:
        201: The created event.
        400: Missing name or malformed field.
        401: No user identifier.
        403: Caller is not an admin.
        500: Database error.
    """
    try:
        user_id, is_admin = get_request_identity()
        require_admin(is_admin, "Only admins can create events")
        if not user_id:
            raise AuthenticationError("User ID is required")

        data = read_json()
        name = data.get("name")
        if not name or not isinstance(name, str) or not name.strip():
            raise ValidationError("Event name is required")

        description = data.get("description") or ""
        if not isinstance(description, str):
            raise ValidationError("description must be a string")

        spotlighted = data.get("isSpotlighted", False)
        if spotlighted is None:
            spotlighted = False
        if not isinstance(spotlighted, bool):
            raise ValidationError("isSpotlighted must be a boolean")

        with get_db() as db:
            if db.get(User, user_id) is None:
                db.add(User(
                    id=user_id,
                    email=f"{user_id}@example.com",
                    name="User",
                    is_admin=True,
                ))
                # The user row must exist before the event references it
                db.flush()
                logging.info(f"[Events] Provisioned user {user_id} for event creation")

            now = utcnow()
            event = Event(
                id=generate_id("event"),
                name=name,
                description=description,
                is_spotlighted=spotlighted,
                created_by=user_id,
                adults=0,
                kids=0,
                newsletter_signups=0,
                volunteers=0,
                created_at=now,
                updated_at=now,
            )

            if spotlighted:
                clear_spotlight(db, event.id)

            db.add(event)
            db.commit()

            logging.info(f"[Events] Created event {event.id}")
            return jsonify(event.to_dict()), 201

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception("[Events] Error creating event")
        return InternalError("Failed to create event").to_response()


# --- SINGLE EVENT ---
@events_bp.route("/<event_id>", methods=["GET"])
def get_event(event_id: str) -> Tuple[Response, int]:
    """
    Get a single event by ID.

    Returns:
        200: Event object.
        404: Event not found.
    """
    try:
        with get_db() as db:
            event = db.get(Event, event_id)
            if event is None:
                raise NotFoundError("Event not found")
            return jsonify(event.to_dict()), 200

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception(f"[Events] Error fetching event {event_id}")
        return InternalError("Failed to fetch event").to_response()


@events_bp.route("/<event_id>", methods=["PATCH"])
def update_event(event_id: str) -> Tuple[Response, int]:
    """
    Partially update an event.

    Permission split:
    - isSpotlighted, name, description: admins only. A request touching any
      of them is rejected as a whole for non-admins.
    - adults, kids, newsletterSignups, volunteers: any caller. The value sent
      is stored as-is (last write wins), it is not added to the current one.

    Returns:
        200: The updated event.
        400: Malformed field.
        403: Admin-only field without admin rights.
        404: Event not found.
        500: Database error.
    """
    try:
        _, is_admin = get_request_identity()
        data = read_json()

        with get_db() as db:
            event = db.get(Event, event_id)
            if event is None:
                raise NotFoundError("Event not found")

            if any(field in data for field in ADMIN_FIELDS):
                require_admin(is_admin, "Only admins can modify event details")

            updates = validate_updates(data)

            if updates.get("is_spotlighted") is True:
                clear_spotlight(db, event_id)

            for attr, value in updates.items():
                setattr(event, attr, value)
            event.updated_at = utcnow()

            db.commit()
            return jsonify(event.to_dict()), 200

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception(f"[Events] Error updating event {event_id}")
        return InternalError("Failed to update event").to_response()


@events_bp.route("/<event_id>", methods=["DELETE"])
def delete_event(event_id: str) -> Tuple[Response, int]:
    """
    Delete an event (admin only).

    Deleting an unknown id is not an error; the call is idempotent.
    """
    try:
        _, is_admin = get_request_identity()
        require_admin(is_admin, "Only admins can delete events")

        with get_db() as db:
            event = db.get(Event, event_id)
            if event is not None:
                db.delete(event)
                db.commit()
                logging.info(f"[Events] Deleted event {event_id}")
            else:
                logging.info(f"[Events] Delete of unknown event {event_id} ignored")

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception(f"[Events] Error deleting event {event_id}")
        return InternalError("Failed to delete event").to_response()

    return jsonify({"success": True}), 200


@events_bp.route("/<event_id>/increment", methods=["POST"])
def increment_counter(event_id: str) -> Tuple[Response, int]:
    """
    Atomically add to one tally counter.

    Expects a JSON body with:
    - field (str): adults, kids, newsletterSignups or volunteers.
    - amount (int, optional): positive step, defaults to 1.

    The addition runs inside a single UPDATE, so concurrent increments are
    never lost.

    Returns:
        200: The updated event.
        400: Unknown field or invalid amount.
        401: Missing user id.
        404: Event not found.
        500: Database error.
    """
    try:
        user_id, _ = get_request_identity()
        if not user_id:
            raise AuthenticationError("User ID is required")

        data = read_json()
        field = data.get("field")
        amount = data.get("amount", 1)

        if field not in COUNTER_FIELDS:
            raise ValidationError(f"field must be one of: {', '.join(COUNTER_FIELDS)}")
        if not is_counter_value(amount) or amount < 1:
            raise ValidationError("amount must be a positive integer")

        column = getattr(Event, Event.FIELD_MAP[field])

        with get_db() as db:
            result = db.execute(
                update(Event)
                .where(Event.id == event_id)
                .values({column: column + amount, Event.updated_at: utcnow()})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("Event not found")
            db.commit()

            event = db.get(Event, event_id, populate_existing=True)
            return jsonify(event.to_dict()), 200

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception(f"[Events] Error incrementing {event_id}")
        return InternalError("Failed to update event").to_response()
