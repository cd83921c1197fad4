"""
Shipyard Work Order Console.

    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import RequestEntityTooLarge

from shipyard.config import config
from shipyard.core.exceptions import (
    ConflictError, FetchError, FetchTimeoutError, NotFoundError, ValidationError,
)
from shipyard.middleware.identity import init_identity
from shipyard.middleware.logging_config import configure_logging
from shipyard.middleware.rate_limiter import init_rate_limits
from shipyard.middleware.timing import init_request_timing
from shipyard.models import db
from shipyard.services.blob_store import UnsupportedFileType
from shipyard.services.snapshot_store import init_snapshot_store
from shipyard.utils.errors import E, api_error

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit; applied per blueprint
)


def _register_error_handlers(app):
    @app.errorhandler(NotFoundError)
    def _not_found(exc):
        return api_error(E.NOT_FOUND, str(exc))

    @app.errorhandler(UnsupportedFileType)
    def _unsupported_file(exc):
        db.session.rollback()
        return api_error(E.UPLOAD_TYPE, str(exc), details=exc.details)

    @app.errorhandler(ValidationError)
    def _validation(exc):
        db.session.rollback()
        return api_error(E.BUSINESS_RULE, str(exc), details=exc.details)

    @app.errorhandler(ConflictError)
    def _conflict(exc):
        db.session.rollback()
        return api_error(E.CONFLICT_DUPLICATE, str(exc))

    @app.errorhandler(FetchError)
    def _fetch_failed(exc):
        db.session.rollback()
        code = E.FETCH_TIMEOUT if isinstance(exc, FetchTimeoutError) else E.FETCH_FAILED
        return api_error(code, str(exc), retry=True, snapshot=exc.snapshot)

    @app.errorhandler(SQLAlchemyError)
    def _database(exc):
        db.session.rollback()
        logger.exception("Unhandled database error on %s %s", request.method, request.path)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(exc):
        return api_error(E.UPLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(404)
    def _route_not_found(exc):
        return api_error(E.NOT_FOUND, "Not found", path=request.path)

    @app.errorhandler(405)
    def _method_not_allowed(exc):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(429)
    def _rate_limited(exc):
        return {"error": "Too many requests", "retry_after": exc.description}, 429

    @app.errorhandler(500)
    def _server_error(exc):
        logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


def create_app(config_name=None):
    config_name = config_name or os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # before any extension logs
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_snapshot_store(app)

    init_identity(app)

    init_request_timing(app)

    _register_error_handlers(app)

    # registered on the metadata for create_all and Alembic autogenerate
    from shipyard.models import activity_log as _activity_log_models  # noqa: F401
    from shipyard.models import bastp as _bastp_models                # noqa: F401
    from shipyard.models import invoice as _invoice_models            # noqa: F401
    from shipyard.models import material as _material_models          # noqa: F401
    from shipyard.models import vessel as _vessel_models              # noqa: F401
    from shipyard.models import work_order as _work_order_models      # noqa: F401

    with app.app_context():
        try:
            db.create_all()
            logger.debug("Schema ensured")
        except SQLAlchemyError as exc:
            logger.warning("Could not create tables, run flask db upgrade: %s", exc)

    from shipyard.blueprints.activity_log_bp import activity_log_bp
    from shipyard.blueprints.bastp_bp import bastp_bp
    from shipyard.blueprints.dashboard_bp import dashboard_bp
    from shipyard.blueprints.export_bp import export_bp
    from shipyard.blueprints.files_bp import files_bp
    from shipyard.blueprints.health_bp import health_bp
    from shipyard.blueprints.invoice_bp import invoice_bp
    from shipyard.blueprints.material_bp import material_bp
    from shipyard.blueprints.verification_bp import verification_bp
    from shipyard.blueprints.vessel_bp import vessel_bp
    from shipyard.blueprints.work_order_bp import work_order_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(vessel_bp)
    app.register_blueprint(work_order_bp)
    app.register_blueprint(bastp_bp)
    app.register_blueprint(verification_bp)
    app.register_blueprint(invoice_bp)
    app.register_blueprint(material_bp)
    app.register_blueprint(export_bp)
    app.register_blueprint(files_bp)
    app.register_blueprint(activity_log_bp)

    # needs the registered blueprints
    init_rate_limits(app, limiter)

    return app
