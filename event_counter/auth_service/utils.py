"""
Shared authentication helpers.
Provides identifier generation, request identity lookup, the admin
password check, and signed admin token creation/verification.
"""

import hmac
import logging
import os
import secrets
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt
from dotenv import load_dotenv
from flask import request

from event_counter.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    ValidationError,
)

# Load .env only once here
load_dotenv()

USER_ID_HEADER = "X-User-Id"
IS_ADMIN_HEADER = "X-Is-Admin"
ADMIN_ROLE = "admin"

_BASE36 = string.digits + string.ascii_lowercase


# --- IDENTIFIERS ---
def generate_id(prefix: str) -> str:
    """
    Build an opaque identifier such as ``event_1718000000000_k3j9x0a1b``.

    Args:
        prefix (str): "user" or "event".

    Returns:
        str: prefix, epoch milliseconds and nine random base36 characters.
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def parse_flag(value: Optional[str]) -> bool:
    """Only the literal string "true" counts as set."""
    return value == "true"


def read_json() -> Dict[str, Any]:
    """
    Parse the request body as a JSON object.

    Malformed JSON propagates as an unclassified failure (500); a valid
    document that is not an object is a ValidationError.
    """
    data = request.get_json()
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def get_request_identity() -> Tuple[Optional[str], bool]:
    """
    Read the caller identity forwarded by the identity middleware.

    Returns:
        tuple: (user_id or None, is_admin)
    """
    user_id = request.headers.get(USER_ID_HEADER) or None
    is_admin = parse_flag(request.headers.get(IS_ADMIN_HEADER))
    return user_id, is_admin


def require_admin(is_admin: bool, message: str) -> None:
    if not is_admin:
        raise AuthorizationError(message)


# --- ADMIN PASSWORD ---
def get_admin_password() -> str:
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        logging.error("[Auth] ADMIN_PASSWORD environment variable not set")
        raise ConfigurationError("Server configuration error")
    return password


def check_admin_password(password: Optional[str]) -> None:
    """
    Compare a submitted password with the server-held admin secret.

    Raises:
        ValidationError: No password submitted.
        ConfigurationError: ADMIN_PASSWORD is unset.
        AuthenticationError: Wrong password. The message is deliberately
            generic so callers cannot tell why it was rejected.
    """
    if not password:
        raise ValidationError("Password is required")

    expected = get_admin_password()

    if not isinstance(password, str) or not hmac.compare_digest(
        password.encode("utf-8"), expected.encode("utf-8")
    ):
        logging.warning("[Auth] Failed admin password attempt")
        raise AuthenticationError("Invalid password")


# --- SIGNED ADMIN TOKENS ---
def get_jwt_secret() -> Optional[str]:
    return os.getenv("JWT_SECRET") or None


def signed_admin_required() -> bool:
    return os.getenv("REQUIRE_SIGNED_ADMIN", "false").strip().lower() == "true"


def create_token(user_id: str, role: str = ADMIN_ROLE) -> str:
    """
    Generates a signed admin credential bound to a user identifier.

    Args:
        user_id (str): The identity the credential is issued to.
        role (str): Role claim, "admin" for every token this service issues.

    Returns:
        str: Encoded JWT string.

    Raises:
        ConfigurationError: JWT_SECRET is unset.
    """
    secret = get_jwt_secret()
    if not secret:
        raise ConfigurationError("Server configuration error")

    now = datetime.now(timezone.utc)
    minutes = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 1440))  # Default 24 hours

    payload = {
        "sub": user_id,
        "role": role,
        "exp": now + timedelta(minutes=minutes),
        "iat": now,
    }

    return jwt.encode(payload, secret, algorithm="HS256")


def verify_admin_token(token: Optional[str], user_id: Optional[str]) -> bool:
    """
    Check that a token is a valid admin credential for ``user_id``.

    Returns:
        bool: False for missing, expired, forged, or foreign tokens.
    """
    secret = get_jwt_secret()
    if not token or not user_id or not secret:
        return False

    try:
        payload = jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logging.info("[Auth] Expired admin token presented")
        return False
    except jwt.InvalidTokenError:
        return False

    return payload.get("sub") == user_id and payload.get("role") == ADMIN_ROLE
