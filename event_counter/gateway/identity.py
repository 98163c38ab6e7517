"""
Identity middleware.

Every non-asset request gets a persistent user identifier (``userId``
cookie, synthesized on first contact) and an admin flag (``isAdmin``
cookie). Both are forwarded to the blueprints as the X-User-Id and
X-Is-Admin request headers and re-set on the response to refresh their
one-year expiry.

With REQUIRE_SIGNED_ADMIN=true the admin flag is taken only from a signed
admin token bound to the user identifier.
"""

import logging

from flask import Flask, Response, g, request

from event_counter.auth_service.utils import (
    IS_ADMIN_HEADER,
    USER_ID_HEADER,
    generate_id,
    parse_flag,
    signed_admin_required,
    verify_admin_token,
)

USER_ID_COOKIE = "userId"
IS_ADMIN_COOKIE = "isAdmin"
ADMIN_TOKEN_COOKIE = "adminToken"
COOKIE_MAX_AGE = 60 * 60 * 24 * 365  # 1 year

ASSET_PREFIXES = ("/static/",)
ASSET_PATHS = ("/favicon.ico",)


def _environ_key(header: str) -> str:
    return "HTTP_" + header.upper().replace("-", "_")


def is_asset_request(path: str) -> bool:
    return path in ASSET_PATHS or path.startswith(ASSET_PREFIXES)


def _bearer_token() -> str:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    return request.cookies.get(ADMIN_TOKEN_COOKIE)


def assign_identity() -> None:
    """
    before_request hook: resolve the caller identity and expose it as
    request headers. Headers sent explicitly by the caller win over cookies,
    except for the admin flag in signed mode.
    """
    g.identity_applied = False
    if is_asset_request(request.path):
        return

    environ = request.environ
    user_id = environ.get(_environ_key(USER_ID_HEADER)) or request.cookies.get(USER_ID_COOKIE)
    if not user_id:
        user_id = generate_id("user")
        logging.info(f"[Identity] Assigned new identity {user_id}")

    if signed_admin_required():
        is_admin = verify_admin_token(_bearer_token(), user_id)
        environ[_environ_key(IS_ADMIN_HEADER)] = "true" if is_admin else "false"
    else:
        header_flag = environ.get(_environ_key(IS_ADMIN_HEADER))
        if header_flag is None:
            is_admin = parse_flag(request.cookies.get(IS_ADMIN_COOKIE))
            environ[_environ_key(IS_ADMIN_HEADER)] = "true" if is_admin else "false"
        else:
            is_admin = parse_flag(header_flag)

    # request.headers is a live view over the WSGI environ
    environ[_environ_key(USER_ID_HEADER)] = user_id

    g.user_id = user_id
    g.is_admin = is_admin
    g.identity_applied = True


def persist_identity(response: Response) -> Response:
    """after_request hook: refresh both identity cookies."""
    if not g.get("identity_applied"):
        return response

    cookie_options = {"max_age": COOKIE_MAX_AGE, "path": "/", "httponly": False}
    response.set_cookie(USER_ID_COOKIE, g.user_id, **cookie_options)
    response.set_cookie(IS_ADMIN_COOKIE, "true" if g.is_admin else "false", **cookie_options)
    return response


def init_identity(app: Flask) -> None:
    """Install the identity hooks on an application."""
    app.before_request(assign_identity)
    app.after_request(persist_identity)
