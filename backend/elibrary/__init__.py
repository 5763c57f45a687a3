# backend/elibrary/__init__.py
from flask import Flask, request, jsonify

from .config import Config
from .extensions import db, migrate
from .validation import ServiceError, error_response


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.books import books_bp
    from .routes.print_jobs import print_bp
    from .routes.payments import payments_bp
    from .routes.admin import admin_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(books_bp)
    app.register_blueprint(print_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(admin_bp)

    @app.errorhandler(ServiceError)
    def handle_service_error(exc):
        return error_response(exc)

    @app.errorhandler(404)
    def handle_not_found(_exc):
        return jsonify({"error": "Not found", "kind": "NOT_FOUND"}), 404

    @app.errorhandler(413)
    def handle_too_large(_exc):
        return jsonify({"error": "File too large", "kind": "BAD_REQUEST"}), 413

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ORIGINS") or [])
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
