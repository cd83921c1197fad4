"""
Activity log blueprint — read-only trail of API writes.

    GET /api/v1/activity-log?table=&record_id=&limit=&offset=
"""

from flask import Blueprint, jsonify, request

from shipyard.blueprints import paginate_query
from shipyard.services.activity_log_service import activity_query

activity_log_bp = Blueprint("activity_log", __name__, url_prefix="/api/v1")


@activity_log_bp.route("/activity-log", methods=["GET"])
def list_activity():
    q = activity_query(
        table_name=request.args.get("table"),
        record_id=request.args.get("record_id", type=int),
    )
    entries, total = paginate_query(q, default_limit=50, max_limit=500)
    return jsonify({"items": [e.to_dict() for e in entries], "total": total})
