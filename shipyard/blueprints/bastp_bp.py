"""
BASTP blueprint — acceptance documents.

Endpoints:
    GET    /api/v1/bastps                        list (vessel_id, status, limit, offset)
    POST   /api/v1/bastps                        create (JSON or multipart with ``file``)
    GET    /api/v1/bastps/<id>                   detail with covered work details
    DELETE /api/v1/bastps/<id>                   soft delete, releases work details
    POST   /api/v1/bastps/<id>/work-details      attach completed work details
"""

import logging

from flask import Blueprint, jsonify, request

from shipyard.blueprints import paginate_query, request_data
from shipyard.models.bastp import BASTP
from shipyard.services import bastp_service as svc
from shipyard.utils.errors import E, api_error
from shipyard.utils.helpers import db_commit_or_error, get_active_or_404, text_input

logger = logging.getLogger(__name__)

bastp_bp = Blueprint("bastp", __name__, url_prefix="/api/v1")


@bastp_bp.route("/bastps", methods=["GET"])
def list_bastps():
    q = svc.bastp_query(
        vessel_id=request.args.get("vessel_id", type=int),
        status=request.args.get("status"),
    )
    bastps, total = paginate_query(q)
    return jsonify({"items": [b.to_dict() for b in bastps], "total": total})


@bastp_bp.route("/bastps", methods=["POST"])
def create_bastp():
    data = request_data()
    if not text_input(data.get("number"), "number"):
        return api_error(E.VALIDATION_REQUIRED, "number is required")

    bastp = svc.create_bastp(data, request.files.get("file"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(bastp.to_dict()), 201


@bastp_bp.route("/bastps/<int:bastp_id>", methods=["GET"])
def get_bastp(bastp_id):
    bastp = get_active_or_404(BASTP, bastp_id)
    return jsonify(svc.bastp_detail(bastp))


@bastp_bp.route("/bastps/<int:bastp_id>", methods=["DELETE"])
def delete_bastp(bastp_id):
    bastp = get_active_or_404(BASTP, bastp_id)
    svc.delete_bastp(bastp)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "BASTP deleted"}), 200


@bastp_bp.route("/bastps/<int:bastp_id>/work-details", methods=["POST"])
def attach_work_details(bastp_id):
    bastp = get_active_or_404(BASTP, bastp_id)
    data = request.get_json(silent=True) or {}
    ids = data.get("work_details_ids")
    if not ids or not isinstance(ids, list):
        return api_error(E.VALIDATION_REQUIRED, "work_details_ids must be a non-empty list")
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
        return api_error(E.VALIDATION_INVALID, "work_details_ids must contain integers")

    attached = svc.attach_work_details(bastp, ids)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({
        "bastp_id": bastp.id,
        "work_details": [d.to_dict() for d in attached],
    }), 200
