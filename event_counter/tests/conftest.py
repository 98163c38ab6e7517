import os

# Every test runs against a private in-memory database
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("JWT_SECRET", None)
os.environ.pop("REQUIRE_SIGNED_ADMIN", None)

from urllib.parse import urlsplit

import pytest
from flask import Flask
from requests.adapters import BaseAdapter
from requests.exceptions import ConnectionError

from event_counter.client.offline_cache import make_response
from event_counter.database import db_connection

ADMIN_PASSWORD = "open-sesame"


@pytest.fixture(autouse=True)
def fresh_db(monkeypatch):
    monkeypatch.setenv("ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("REQUIRE_SIGNED_ADMIN", raising=False)
    db_connection.configure_engine("sqlite://")
    db_connection.init_db()
    yield
    db_connection.engine.dispose()


@pytest.fixture
def app():
    """Blueprints only: identity headers are whatever the test sends."""
    from event_counter.auth_service.routes import auth_bp
    from event_counter.events_service.routes import events_bp

    app = Flask(__name__)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def gateway_app():
    """The full application, identity middleware included."""
    from event_counter.gateway.server import create_app

    return create_app({"TESTING": True})


@pytest.fixture
def gateway_client(gateway_app):
    return gateway_app.test_client()


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "user_admin", "X-Is-Admin": "true"}


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user_visitor", "X-Is-Admin": "false"}


@pytest.fixture
def make_event(client, admin_headers):
    """Create an event through the API as an admin and return its JSON."""
    def _make(name="Fall Fair", **fields):
        response = client.post("/api/events", json={"name": name, **fields}, headers=admin_headers)
        assert response.status_code == 201
        return response.get_json()
    return _make


class FlaskTestAdapter(BaseAdapter):
    """requests transport that answers from a Flask test client."""

    def __init__(self, app):
        super().__init__()
        self.client = app.test_client()
        self.online = True

    def send(self, request, **kwargs):
        if not self.online:
            raise ConnectionError("network down")

        url = urlsplit(request.url)
        path = url.path + (f"?{url.query}" if url.query else "")
        headers = {
            k: v for k, v in request.headers.items()
            if k.lower() not in ("content-length", "content-type")
        }
        resp = self.client.open(
            path,
            method=request.method,
            headers=headers,
            data=request.body,
            content_type=request.headers.get("Content-Type"),
        )
        return make_response(
            request,
            resp.status_code,
            resp.get_data(),
            headers=dict(resp.headers),
            reason=resp.status.split(" ", 1)[1] if " " in resp.status else "",
        )

    def close(self):
        pass


@pytest.fixture
def network(gateway_app):
    return FlaskTestAdapter(gateway_app)
