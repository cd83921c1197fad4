"""
Shipyard Work Order Console
Work order blueprint — work orders, work details, progress reports and permits.

Endpoints summary:
    WORK ORDER   /api/v1/work-orders                         POST
                 /api/v1/work-orders/<id>                    GET, PUT, DELETE (cascades to details)

    DETAILS      /api/v1/work-orders/<id>/work-details       POST
                 /api/v1/work-details/<id>                   PUT, DELETE

    PROGRESS     /api/v1/work-details/<id>/progress          GET (history + resolved state), POST
                 /api/v1/work-orders/<id>/progress           POST (work-order level report)
                 /api/v1/progress/<id>                       DELETE

    PERMIT       /api/v1/work-orders/<id>/permits            POST (multipart ``file``)
                 /api/v1/permits/<id>                        DELETE
"""

import logging

from flask import Blueprint, jsonify, request

from shipyard.blueprints import request_data
from shipyard.models.work_order import PermitToWork, WorkOrder, WorkProgress
from shipyard.services import work_order_service as svc
from shipyard.utils.errors import E, api_error
from shipyard.utils.helpers import db_commit_or_error, get_active_or_404, text_input

logger = logging.getLogger(__name__)

work_order_bp = Blueprint("work_order", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════════════════
#  WORK ORDER
# ═══════════════════════════════════════════════════════════════════════════

@work_order_bp.route("/work-orders", methods=["POST"])
def create_work_order():
    data = request_data()
    if not data.get("vessel_id"):
        return api_error(E.VALIDATION_REQUIRED, "vessel_id is required")

    wo = svc.create_work_order(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(wo.to_dict()), 201


@work_order_bp.route("/work-orders/<int:wo_id>", methods=["GET"])
def get_work_order(wo_id):
    wo = get_active_or_404(WorkOrder, wo_id)
    return jsonify(svc.work_order_detail(wo))


@work_order_bp.route("/work-orders/<int:wo_id>", methods=["PUT"])
def update_work_order(wo_id):
    wo = get_active_or_404(WorkOrder, wo_id)
    svc.update_work_order(wo, request_data())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(wo.to_dict())


@work_order_bp.route("/work-orders/<int:wo_id>", methods=["DELETE"])
def delete_work_order(wo_id):
    wo = get_active_or_404(WorkOrder, wo_id)
    svc.delete_work_order(wo)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Work order deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  WORK DETAILS
# ═══════════════════════════════════════════════════════════════════════════

@work_order_bp.route("/work-orders/<int:wo_id>/work-details", methods=["POST"])
def create_work_details(wo_id):
    wo = get_active_or_404(WorkOrder, wo_id)
    data = request_data()
    if not text_input(data.get("description"), "description"):
        return api_error(E.VALIDATION_REQUIRED, "description is required")

    details = svc.create_work_details(wo, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(details.to_dict()), 201


@work_order_bp.route("/work-details/<int:details_id>", methods=["PUT"])
def update_work_details(details_id):
    details = svc.get_work_details_or_404(details_id)
    svc.update_work_details(details, request_data())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(details.to_dict())


@work_order_bp.route("/work-details/<int:details_id>", methods=["DELETE"])
def delete_work_details(details_id):
    details = svc.get_work_details_or_404(details_id)
    svc.delete_work_details(details)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Work details deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  PROGRESS
# ═══════════════════════════════════════════════════════════════════════════

@work_order_bp.route("/work-details/<int:details_id>/progress", methods=["GET"])
def details_progress(details_id):
    details = svc.get_work_details_or_404(details_id)
    return jsonify(svc.progress_history(details))


@work_order_bp.route("/work-details/<int:details_id>/progress", methods=["POST"])
def add_details_progress(details_id):
    details = svc.get_work_details_or_404(details_id)
    progress = svc.add_details_progress(details, request_data(), request.files.get("evidence"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(progress.to_dict()), 201


@work_order_bp.route("/work-orders/<int:wo_id>/progress", methods=["POST"])
def add_work_order_progress(wo_id):
    wo = get_active_or_404(WorkOrder, wo_id)
    progress = svc.add_work_order_progress(wo, request_data(), request.files.get("evidence"))
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(progress.to_dict()), 201


@work_order_bp.route("/progress/<int:progress_id>", methods=["DELETE"])
def delete_progress(progress_id):
    progress = get_active_or_404(WorkProgress, progress_id, "WorkProgress")
    svc.delete_progress(progress)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Progress report deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  PERMIT TO WORK
# ═══════════════════════════════════════════════════════════════════════════

@work_order_bp.route("/work-orders/<int:wo_id>/permits", methods=["POST"])
def upload_permit(wo_id):
    wo = get_active_or_404(WorkOrder, wo_id)
    if "file" not in request.files:
        return api_error(E.VALIDATION_REQUIRED, "file is required")

    permit = svc.upload_permit(wo, request.files["file"])
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(permit.to_dict()), 201


@work_order_bp.route("/permits/<int:permit_id>", methods=["DELETE"])
def delete_permit(permit_id):
    permit = get_active_or_404(PermitToWork, permit_id, "PermitToWork")
    svc.delete_permit(permit)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Permit deleted"}), 200
