"""
API gateway: combines the auth and events blueprints behind the identity
middleware. This is the local entrypoint for development.
"""

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from event_counter.auth_service.routes import auth_bp
from event_counter.database.db_connection import configure_engine, init_db
from event_counter.events_service.routes import events_bp
from event_counter.gateway.identity import init_identity

load_dotenv()

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")


def _cors_origins():
    origins = os.getenv("CORS_ORIGINS", "*")
    if origins.strip() == "*":
        return "*"
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def create_app(config: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        config (dict, optional): Flask config overrides. ``DATABASE_URL``
            rebinds the database engine before tables are created.

    Returns:
        Flask: The configured Flask application.
    """
    app = Flask(__name__)
    app.config.update(config or {})

    if app.config.get("DATABASE_URL"):
        configure_engine(app.config["DATABASE_URL"])
    init_db()

    CORS(app, resources={
        r"/api/*": {
            "origins": _cors_origins(),
            "methods": ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-User-Id", "X-Is-Admin"],
            "supports_credentials": True,
        }
    })

    init_identity(app)

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    logging.info("All blueprints registered successfully.")

    # --- JSON ERRORS FOR ANYTHING THE ROUTES DID NOT HANDLE ---
    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        return jsonify({"error": error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error: Exception):
        logging.exception("[Gateway] Unhandled error")
        return jsonify({"error": "Internal Server Error"}), 500

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping():
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "gateway_ok"}), 200

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"}), 200

    return app


def main() -> None:
    app = create_app()
    port = int(os.getenv("GATEWAY_PORT", 5050))
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_DEBUG") == "1")


if __name__ == "__main__":
    main()
