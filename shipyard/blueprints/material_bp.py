"""
Material blueprint — material catalogue and BASTP material control.

Endpoints:
    GET    /api/v1/materials                     catalogue (category, search)
    POST   /api/v1/materials                     add a material
    DELETE /api/v1/materials/<id>                soft delete (refused while in use)
    GET    /api/v1/bastps/<id>/materials         material controls of a BASTP
    POST   /api/v1/bastps/<id>/materials         record material used on the BASTP
    PUT    /api/v1/material-controls/<id>        update amount / size / uom / links
    DELETE /api/v1/material-controls/<id>        soft delete
"""

from flask import Blueprint, jsonify, request

from shipyard.blueprints import paginate_query
from shipyard.models.bastp import BASTP
from shipyard.models.material import MaterialControl, MaterialList
from shipyard.services import material_service as svc
from shipyard.utils.errors import E, api_error
from shipyard.utils.helpers import db_commit_or_error, get_active_or_404, text_input

material_bp = Blueprint("material", __name__, url_prefix="/api/v1")


@material_bp.route("/materials", methods=["GET"])
def list_materials():
    q = svc.material_query(
        category=request.args.get("category"),
        search=request.args.get("search"),
    )
    materials, total = paginate_query(q)
    return jsonify({"items": [m.to_dict() for m in materials], "total": total})


@material_bp.route("/materials", methods=["POST"])
def create_material():
    data = request.get_json(silent=True) or {}
    if not text_input(data.get("material"), "material"):
        return api_error(E.VALIDATION_REQUIRED, "material is required")
    material = svc.create_material(data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(material.to_dict()), 201


@material_bp.route("/materials/<int:material_id>", methods=["DELETE"])
def delete_material(material_id):
    material = get_active_or_404(MaterialList, material_id, "MaterialList")
    svc.delete_material(material)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Material deleted"}), 200


@material_bp.route("/bastps/<int:bastp_id>/materials", methods=["GET"])
def list_material_controls(bastp_id):
    bastp = get_active_or_404(BASTP, bastp_id)
    controls = svc.controls_for(bastp)
    return jsonify({"bastp_id": bastp.id, "items": [c.to_dict() for c in controls]})


@material_bp.route("/bastps/<int:bastp_id>/materials", methods=["POST"])
def add_material_control(bastp_id):
    bastp = get_active_or_404(BASTP, bastp_id)
    data = request.get_json(silent=True) or {}
    if data.get("material_id") in (None, ""):
        return api_error(E.VALIDATION_REQUIRED, "material_id is required")
    control = svc.add_material_control(bastp, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(control.to_dict()), 201


@material_bp.route("/material-controls/<int:control_id>", methods=["PUT"])
def update_material_control(control_id):
    control = get_active_or_404(MaterialControl, control_id, "MaterialControl")
    svc.update_material_control(control, request.get_json(silent=True) or {})
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(control.to_dict())


@material_bp.route("/material-controls/<int:control_id>", methods=["DELETE"])
def delete_material_control(control_id):
    control = get_active_or_404(MaterialControl, control_id, "MaterialControl")
    svc.delete_material_control(control)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Material control deleted"}), 200
