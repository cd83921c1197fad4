"""
Verification blueprint — completed work awaiting or past inspection.

Endpoints:
    GET    /api/v1/verification                          pipeline (search, vessel_id)
    POST   /api/v1/work-details/<id>/verification        verify a 100% work detail
    DELETE /api/v1/verifications/<id>                    withdraw (soft delete)
"""

from flask import Blueprint, jsonify, request

from shipyard.blueprints import request_data
from shipyard.models.bastp import WorkVerification
from shipyard.services import bastp_service
from shipyard.services import verification_service as svc
from shipyard.services.work_order_service import get_work_details_or_404
from shipyard.utils.helpers import db_commit_or_error, get_active_or_404

verification_bp = Blueprint("verification", __name__, url_prefix="/api/v1")


@verification_bp.route("/verification", methods=["GET"])
def pipeline():
    return jsonify(svc.get_verification_pipeline(
        search=request.args.get("search", ""),
        vessel_id=request.args.get("vessel_id", 0, type=int),
    )), 200


@verification_bp.route("/work-details/<int:details_id>/verification", methods=["POST"])
def verify(details_id):
    details = get_work_details_or_404(details_id)
    verification = bastp_service.verify_work_details(details, request_data())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(verification.to_dict()), 201


@verification_bp.route("/verifications/<int:verification_id>", methods=["DELETE"])
def withdraw(verification_id):
    verification = get_active_or_404(WorkVerification, verification_id, "WorkVerification")
    bastp_service.delete_verification(verification)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Verification deleted"}), 200
