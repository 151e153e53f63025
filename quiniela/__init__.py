import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
cache = Cache()
migrate = Migrate()
csrf = CSRFProtect()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


# Use Redis in production for shared rate limiting across multiple workers
limiter_storage_uri = "memory://"
redis_url = os.environ.get("REDIS_URL") or os.environ.get("CACHE_REDIS_URL")
if redis_url:
    try:
        import redis

        redis_client = redis.Redis.from_url(redis_url)
        redis_client.ping()
        limiter_storage_uri = redis_url
        logger.info(f"Rate limiter using Redis storage at {redis_url}")
    except (ImportError, redis.exceptions.ConnectionError) as e:
        logger.warning(f"Redis not available for rate limiter, using memory storage: {e}")

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
    storage_uri=limiter_storage_uri,
)


def create_app(config_name=None, config_overrides=None):
    app = Flask(__name__)

    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())
    if config_overrides:
        app.config.update(config_overrides)

    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SECURE"] = (
        False
        if app.config.get("DEBUG")
        else app.config.get("FLASK_ENV") == "production"
    )
    app.config["PERMANENT_SESSION_LIFETIME"] = 86400  # 24 hours
    app.config["WTF_CSRF_TIME_LIMIT"] = None

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    # Pool storage backend, shared by every request through PoolService
    from quiniela.services.pool_repository import build_pool_repository

    app.extensions["pool_repository"] = build_pool_repository(app)

    from quiniela.routes.auth import bp as auth_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")

    from quiniela.routes.main import bp as main_bp

    app.register_blueprint(main_bp)

    from quiniela.routes.quinielas import bp as quinielas_bp

    app.register_blueprint(quinielas_bp, url_prefix="/api/quinielas")

    from quiniela.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)

    from quiniela.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app, config_name)

    with app.app_context():
        db.create_all()

    return app


def show_config_warnings(app, config_name):
    """Log configuration warnings and status"""
    logger.info(f"Quiniela starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        logger.warning("DEBUG mode is enabled in production!")

    if not os.environ.get("SECRET_KEY") and not app.config.get("TESTING"):
        logger.warning(
            "Using auto-generated SECRET_KEY (sessions will reset on restart). "
            "Run: python3 generate_secrets.py > .env"
        )

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    scheme = db_url.split("://")[0] if "://" in db_url else "unknown"
    logger.info(f"Using database: {scheme}")

    storage = app.config.get("POOL_STORAGE", "database")
    if storage == "file":
        logger.info(f"Quinielas stored in {app.config.get('POOL_DATA_FILE')}")
    else:
        logger.info("Quinielas stored in the database")


def register_error_handlers(app):
    """Register global error handlers"""
    from flask_wtf.csrf import CSRFError

    from quiniela.services.exceptions import QuinielaServiceError

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    @app.errorhandler(QuinielaServiceError)
    def handle_service_error(error):
        if error.status_code >= 409:
            app.logger.warning(f"{error.message} - Path: {request.path}")
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        app.logger.warning(
            f"CSRF Error: {error.description} - Path: {request.path} - User-Agent: {request.user_agent}"
        )
        return jsonify({"error": "Security token expired or invalid"}), 400

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(401)
    def unauthorized_error(error):
        return jsonify({"error": "Authentication required"}), 401

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({"error": "Access forbidden"}), 403

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


from quiniela import models  # noqa: F401, E402 - imported for model registration
