import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
socketio = SocketIO()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    # We want the leftmost (original client) IP
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


limiter = Limiter(key_func=get_real_ip)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Configure WebSocket CORS based on environment
    allowed_origins = app.config.get("SOCKETIO_CORS_ORIGINS", "*")
    if allowed_origins != "*":
        allowed_origins = allowed_origins.split(",")

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE", "threading"),
        logger=False,
        engineio_logger=False,
    )

    # Import and register blueprints
    from predictor.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    from predictor.routes.admin import bp as admin_bp

    app.register_blueprint(admin_bp, url_prefix="/admin")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from predictor.utils.logging_config import setup_logging

    setup_logging(app)

    # Show configuration warnings
    show_config_warnings(app, config_name)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from predictor.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    # Register SocketIO handlers
    from predictor import socketio_handlers  # noqa: F401 - imported for side effects

    return app


def show_config_warnings(app, config_name):
    """Log configuration warnings and status"""
    if app.config.get("TESTING"):
        return

    logger.info(f"Weekly predictor starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not app.config.get("ADMIN_SECRET"):
        logger.warning("ADMIN_SECRET not set: manual admin endpoints will reject every call")

    if not app.config.get("FOOTBALL_DATA_KEY"):
        logger.warning("FOOTBALL_DATA_KEY not set: automatic result lookup will fail")

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    db_kind = db_url.split("://")[0] if "://" in db_url else "Unknown"
    logger.info(f"Using database: {db_kind}")


def register_error_handlers(app):
    """Register global error handlers"""
    from predictor.errors import PredictorError

    @app.after_request
    def after_request(response):
        # Add security headers to all responses
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        # Add Strict-Transport-Security in production
        if not app.config.get("DEBUG") and not app.config.get("TESTING"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    @app.errorhandler(PredictorError)
    def handle_predictor_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.code}: {error} - Path: {request.path}")
            db.session.rollback()
        else:
            app.logger.info(f"{error.code}: {error} - Path: {request.path}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "Too many requests"}), 429


from predictor import models  # noqa: F401, E402 - imported for model registration
