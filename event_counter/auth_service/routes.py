"""
Authentication service route handlers.

Provides routes for:
- User registration (idempotent by client identifier)
- Admin password verification

Identity is not verified here: user ids are client-generated and the admin
flag is remembered by the client after a successful password check.
"""

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint, Response, jsonify, request
from sqlalchemy.exc import IntegrityError

from event_counter.auth_service.utils import (
    check_admin_password,
    create_token,
    get_jwt_secret,
    get_request_identity,
    read_json,
)
from event_counter.database.db_connection import get_db
from event_counter.database.models import User
from event_counter.errors import ApiError, InternalError, ValidationError

auth_bp = Blueprint("auth", __name__)

ADMIN_TOKEN_COOKIE = "adminToken"
COOKIE_MAX_AGE = 60 * 60 * 24 * 365  # 1 year




# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """Log every incoming request to the authentication service."""
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.

    Args:
        response (Response): The Flask response object.

    Returns:
        Response: The passed-through response object.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- REGISTER ---
@auth_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register a client identifier as a user.

    Expects a JSON body with:
    - userId (str): Client-generated identifier (required).
    - email (str, optional): Defaults to "<userId>@example.com".
    - name (str, optional): Defaults to "Anonymous User".
    - isAdmin (bool, optional): Stored only; never used for authorization.

    Returns:
        200: The existing user, unchanged.
        201: The newly created user.
        400: Missing userId, or email taken by another identifier.
        500: Database error.
    """
    try:
        data = read_json()
        user_id = data.get("userId")

        if not user_id:
            raise ValidationError("userId is required")

        with get_db() as db:
            existing = db.get(User, user_id)
            if existing:
                return jsonify(existing.to_dict()), 200

            user = User(
                id=user_id,
                email=data.get("email") or f"{user_id}@example.com",
                name=data.get("name") or "Anonymous User",
                is_admin=bool(data.get("isAdmin") or False),
            )
            db.add(user)

            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # Lost a race against a registration of the same id
                existing = db.get(User, user_id)
                if existing:
                    return jsonify(existing.to_dict()), 200
                raise ValidationError("Email already exists")

            logging.info(f"[Auth] Registered user {user_id}")
            return jsonify(user.to_dict()), 201

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception("[Auth] Error registering user")
        return InternalError("Failed to register user").to_response()


# --- VERIFY ADMIN PASSWORD ---
@auth_bp.route("/verify-password", methods=["POST"])
def verify_password() -> Tuple[Response, int]:
    """
    Validate the admin password server-side so it never reaches the client.

    Expects a JSON body with:
    - password (str)

    When JWT_SECRET is configured, a successful check also issues a signed
    admin credential for the calling identity (``token`` in the body and the
    ``adminToken`` cookie).

    Returns:
        200: {"success": true, "message": "Password verified"}
        400: Missing password.
        401: Invalid password.
        500: ADMIN_PASSWORD unset, or unexpected failure.
    """
    try:
        data = read_json()
        check_admin_password(data.get("password"))

        body: Dict[str, Any] = {"success": True, "message": "Password verified"}

        user_id, _ = get_request_identity()
        token = None
        if user_id and get_jwt_secret():
            token = create_token(user_id)
            body["token"] = token

        response = jsonify(body)
        if token:
            response.set_cookie(
                ADMIN_TOKEN_COOKIE,
                token,
                max_age=COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="Lax",
            )
        return response, 200

    except ApiError as err:
        return err.to_response()
    except Exception:
        logging.exception("[Auth] Password verification error")
        return InternalError("Failed to verify password").to_response()
