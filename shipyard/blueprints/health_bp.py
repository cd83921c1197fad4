"""
Probes for the load balancer and the on-call dashboard.

    GET /api/v1/health        liveness of the process
    GET /api/v1/health/ready  200 once the app is serving
    GET /api/v1/health/live   database round trip, upload folder, snapshot buffers
"""

import logging
import os
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from shipyard.models import db
from shipyard.services.snapshot_store import get_snapshot_store

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "Shipyard Work Order Console"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


def _check_database():
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Liveness probe could not reach the database: %s", exc)
        return {"status": "error", "detail": str(exc)}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


def _check_uploads():
    folder = current_app.config.get("UPLOAD_FOLDER") or ""
    if not os.path.isdir(folder):
        return {"status": "skipped", "detail": "upload folder not created yet"}
    return {"status": "ok" if os.access(folder, os.W_OK) else "read_only"}


@health_bp.route("/live", methods=["GET"])
def live():
    """Per-dependency status; 503 when the database is unreachable."""
    checks = {
        "database": _check_database(),
        "uploads": _check_uploads(),
        "snapshots": {"status": "ok", **get_snapshot_store().stats()},
        "app": {"debug": current_app.debug, "testing": current_app.testing},
    }
    healthy = checks["database"]["status"] == "ok"
    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
