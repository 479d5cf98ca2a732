"""
Meeting Items Platform
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from app.auth import init_auth
from app.config import config
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db
from app.services.blob_storage import init_blob_storage
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)
    init_blob_storage(app)

    # ── Request timing (sets g.request_id for audit rows) ────────────────
    init_request_timing(app)

    # ── Authentication & CSRF middleware ──────────────────────────────────
    init_auth(app)

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Request guards (input length) ────────────────────────────────────
    @app.before_request
    def _guard_request():
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import audit as _audit_models                # noqa: F401
    from app.models import decision_board as _board_models       # noqa: F401
    from app.models import document as _document_models          # noqa: F401
    from app.models import meeting_item as _meeting_item_models  # noqa: F401
    from app.models import template as _template_models          # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.decision_board_bp import decision_board_bp
    from app.blueprints.document_bp import document_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.meeting_item_bp import meeting_item_bp
    from app.blueprints.template_bp import template_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(meeting_item_bp)
    # Route casing used by the SPA's API client
    app.register_blueprint(
        meeting_item_bp, url_prefix="/api/MeetingItems", name="meeting_items_legacy",
    )
    app.register_blueprint(document_bp)
    app.register_blueprint(decision_board_bp)
    app.register_blueprint(template_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo-data")
    def seed_demo_data_cmd():
        """Create a demo decision board with a default template."""
        from app.services.seed_service import seed_demo_data
        board = seed_demo_data()
        if board is None:
            click.echo("Demo data already present.")
        else:
            click.echo(f"Seeded decision board {board['name']} ({board['id']}).")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, f"Not found: {request.path}")

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.VALIDATION_INVALID, f"Too many requests: {e.description}", status=429)

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
