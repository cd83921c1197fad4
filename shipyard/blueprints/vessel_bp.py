"""
Vessel blueprint — vessel master data.

Endpoints:
    GET    /api/v1/vessels          list (search, limit, offset)
    POST   /api/v1/vessels          create
    PUT    /api/v1/vessels/<id>     update
    DELETE /api/v1/vessels/<id>     soft delete
"""

import logging

from flask import Blueprint, jsonify, request

from shipyard.blueprints import paginate_query, request_data
from shipyard.models.vessel import Vessel
from shipyard.services import work_order_service as svc
from shipyard.utils.errors import E, api_error
from shipyard.utils.helpers import db_commit_or_error, get_active_or_404, text_input

logger = logging.getLogger(__name__)

vessel_bp = Blueprint("vessel", __name__, url_prefix="/api/v1")


@vessel_bp.route("/vessels", methods=["GET"])
def list_vessels():
    vessels, total = paginate_query(svc.vessel_query(request.args.get("search")))
    return jsonify({"items": [v.to_dict() for v in vessels], "total": total})


@vessel_bp.route("/vessels", methods=["POST"])
def create_vessel():
    data = request_data()
    if not text_input(data.get("name"), "name"):
        return api_error(E.VALIDATION_REQUIRED, "name is required")

    vessel = svc.create_vessel(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(vessel.to_dict()), 201


@vessel_bp.route("/vessels/<int:vessel_id>", methods=["PUT"])
def update_vessel(vessel_id):
    vessel = get_active_or_404(Vessel, vessel_id)
    svc.update_vessel(vessel, request_data())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(vessel.to_dict())


@vessel_bp.route("/vessels/<int:vessel_id>", methods=["DELETE"])
def delete_vessel(vessel_id):
    vessel = get_active_or_404(Vessel, vessel_id)
    svc.delete_vessel(vessel)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Vessel deleted"}), 200
