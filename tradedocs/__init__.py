"""
tradedocs/__init__.py

Flask application factory for the trade documents service (quotations and
purchase orders with master data).

Architecture:
- JSON API only; every blueprint lives under /api.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev/tests.
- Clients are never trusted; access control is enforced server-side.

Error contract:
- Every TradeDocsError and HTTPException is answered as JSON
  {"message": ..., "code": ...} with the matching status code.
- The session is rolled back before the error response, so a failed save
  leaves no partial rows (and no consumed document number) behind.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .errors import TradeDocsError
from .extensions import csrf, db, login_manager, migrate
from .models import User

logger = logging.getLogger(__name__)


def _configure_logging(app: Flask) -> None:
    """Attach a stream handler to the package logger at LOG_LEVEL."""
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    package_logger = logging.getLogger(__name__)
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(TradeDocsError)
    def handle_tradedocs_error(exc: TradeDocsError):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("request_failed", extra={"code": exc.code, "error": exc.message})
        else:
            logger.info("request_rejected", extra={"code": exc.code, "status": exc.status_code})
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        db.session.rollback()
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"message": exc.description, "code": code}), exc.code


def create_app(config_object: str = "config.Config", **overrides) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login. Deactivated accounts lose their session."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    _register_error_handlers(app)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.masters import masters_bp
    from .blueprints.purchase_orders import purchase_orders_bp
    from .blueprints.quotations import quotations_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(masters_bp)
    app.register_blueprint(quotations_bp)
    app.register_blueprint(purchase_orders_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (development; use `flask db upgrade` in production)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-companies")
    def seed_companies_command():
        """Seed the preset letterhead companies."""
        from .seed import seed_companies

        companies = seed_companies()
        click.echo(f"{len(companies)} companies ready.")

    @app.route("/")
    def index():
        return jsonify({"message": f"{app.config.get('APP_NAME', 'Trade Documents')} API is running"})

    return app
