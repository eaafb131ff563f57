"""
API gateway: builds the Flask app and wires the services together.
This is the local entrypoint for development.

Startup order:
1. Load settings (a missing JWT_SECRET aborts here).
2. Create the connection pool and the auth service; the service installs
   the global auth hook and starts the blacklist sweeper.
3. Register the users and events blueprints under /api.

SIGINT/SIGTERM stop the sweeper and close the pool before exiting.
"""

import logging
import os
import signal
import sys
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from backend.auth_service.config import AuthSettings, load_settings
from backend.auth_service.errors import error_response
from backend.auth_service.gate import EXTENSION_KEY as AUTH_EXTENSION_KEY
from backend.auth_service.public_routes import API_PREFIX
from backend.auth_service.repository import RevokedTokenRepository, UserRepository
from backend.auth_service.routes import users_bp
from backend.auth_service.service import AuthService
from backend.database.db_connection import EXTENSION_KEY as DATABASE_EXTENSION_KEY
from backend.database.db_connection import Database
from backend.events_service.routes import events_bp

# Basic console logging during API requests
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="[%(levelname)s] %(asctime)s - %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


def register_error_handlers(app: Flask) -> None:
    """Every error leaves the app as {"message": ...}; internals stay in the log."""

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return error_response(error.name, error.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception("[Gateway] Unhandled error: %s", error)
        return error_response("Internal Server Error", 500)


def create_app(
    settings: Optional[AuthSettings] = None,
    auth_service: Optional[AuthService] = None,
    database: Optional[Database] = None,
    start_sweeper: bool = True,
) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        settings (AuthSettings, optional): Defaults to `load_settings()`.
        auth_service (AuthService, optional): Prebuilt service (tests inject
            one backed by other stores).
        database (Database, optional): Prebuilt connection pool.
        start_sweeper (bool): Start the blacklist sweeper thread.

    Returns:
        Flask: The configured Flask application.

    Raises:
        RuntimeError: If JWT_SECRET is missing.
    """
    settings = settings or load_settings()

    app = Flask(__name__)
    CORS(app, resources={
        r"/api/*": {
            "origins": list(settings.cors_origins),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "expose_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True,
        }
    })

    if database is None:
        database = Database(settings.database_url, settings.db_pool_min, settings.db_pool_max)
    app.extensions[DATABASE_EXTENSION_KEY] = database

    if auth_service is None:
        auth_service = AuthService(
            settings, UserRepository(database), RevokedTokenRepository(database)
        )
    auth_service.init_app(app, start_sweeper=start_sweeper)

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(users_bp, url_prefix=f"{API_PREFIX}/users")
    app.register_blueprint(events_bp, url_prefix=f"{API_PREFIX}/events")
    logger.info("[Gateway] All blueprints registered successfully.")

    register_error_handlers(app)

    # --- BASIC HEALTH CHECKPOINT ---
    @app.route("/health")
    def health():
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    return app


def shutdown(app: Flask) -> None:
    """Stop background work and release the pool. Safe to call more than once."""
    auth_service = app.extensions.get(AUTH_EXTENSION_KEY)
    if auth_service is not None:
        auth_service.shutdown()
    database = app.extensions.get(DATABASE_EXTENSION_KEY)
    if database is not None:
        database.close()


def install_signal_handlers(app: Flask) -> None:
    def handle_signal(signum, frame):
        logger.info("[Gateway] Received %s, shutting down", signal.Signals(signum).name)
        shutdown(app)
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def main() -> None:
    try:
        app = create_app()
    except RuntimeError as e:
        logger.critical(f"[Gateway] Startup aborted: {e}")
        sys.exit(1)

    install_signal_handlers(app)
    port = int(os.getenv("GATEWAY_PORT", 5050))
    # The reloader would fork a second process with its own sweeper.
    app.run(host="0.0.0.0", port=port, debug=os.getenv("FLASK_DEBUG") == "1", use_reloader=False)


if __name__ == "__main__":
    main()
