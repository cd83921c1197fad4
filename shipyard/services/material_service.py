"""Material catalogue and BASTP material control.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for committing.
"""
import logging

from shipyard.core.exceptions import ValidationError
from shipyard.middleware.identity import get_current_user
from shipyard.models import db
from shipyard.models.bastp import BASTP
from shipyard.models.material import MaterialControl, MaterialList
from shipyard.models.work_order import WorkDetails
from shipyard.services.activity_log_service import log_activity
from shipyard.utils.helpers import get_active_or_404, text_input

logger = logging.getLogger(__name__)

CONTROL_TEXT_FIELDS = ("size", "uom")


def _parse_amount(value):
    if value in (None, "") or isinstance(value, bool):
        raise ValidationError("amount is required", details={"amount": value})
    try:
        amount = float(str(value).replace(",", "."))
    except ValueError:
        raise ValidationError("amount must be a number", details={"amount": value}) from None
    if amount <= 0:
        raise ValidationError("amount must be greater than 0", details={"amount": value})
    return amount


def _resolve_id(value, field):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: value}) from None


# ── Catalogue ────────────────────────────────────────────────────────────


def material_query(category=None, search=None):
    q = MaterialList.query_active()
    if category:
        q = q.filter(MaterialList.category == category)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(db.or_(MaterialList.material.ilike(term), MaterialList.specification.ilike(term)))
    return q.order_by(MaterialList.category, MaterialList.material)


def create_material(data):
    material = MaterialList(
        material=text_input(data.get("material"), "material"),
        specification=text_input(data.get("specification"), "specification"),
        category=text_input(data.get("category"), "category"),
    )
    if not material.material:
        raise ValidationError("material is required", details={"material": data.get("material")})
    db.session.add(material)
    db.session.flush()
    log_activity("create", "material_list", material.id, new_data=material.to_dict())
    return material


def delete_material(material):
    """Soft delete; refused while live material controls use it."""
    in_use = (
        MaterialControl.query_active()
        .filter(MaterialControl.material_id == material.id)
        .count()
    )
    if in_use:
        raise ValidationError(
            "Material is used by material controls",
            details={"material_id": material.id, "controls": in_use},
        )
    material.soft_delete()
    db.session.flush()
    log_activity("delete", "material_list", material.id, old_data=material.to_dict())
    return material


# ── Material control ─────────────────────────────────────────────────────


def controls_for(bastp):
    return (
        MaterialControl.query_active()
        .filter(MaterialControl.bastp_id == bastp.id)
        .order_by(MaterialControl.id)
        .all()
    )


def _check_work_details(bastp, details_id):
    if details_id is None:
        return None
    details = get_active_or_404(WorkDetails, details_id, "WorkDetails")
    if details.bastp_id != bastp.id:
        raise ValidationError(
            "Work details are not covered by this BASTP",
            details={"work_details_id": details_id, "bastp_id": bastp.id},
        )
    return details_id


def add_material_control(bastp, data):
    material_id = _resolve_id(data.get("material_id"), "material_id")
    if material_id is None:
        raise ValidationError("material_id is required")
    material = get_active_or_404(MaterialList, material_id, "MaterialList")

    control = MaterialControl(
        material=material,
        bastp_id=bastp.id,
        work_details_id=_check_work_details(bastp, _resolve_id(data.get("work_details_id"), "work_details_id")),
        amount=_parse_amount(data.get("amount")),
        size=text_input(data.get("size"), "size"),
        uom=text_input(data.get("uom"), "uom"),
        user_id=get_current_user().user_id,
    )
    db.session.add(control)
    db.session.flush()
    log_activity("create", "material_control", control.id, new_data=control.to_dict(),
                 description=f"Material recorded on BASTP {bastp.number}")
    return control


def update_material_control(control, data):
    old = control.to_dict()
    if "material_id" in data:
        material_id = _resolve_id(data["material_id"], "material_id")
        if material_id is None:
            raise ValidationError("material_id cannot be empty")
        control.material = get_active_or_404(MaterialList, material_id, "MaterialList")
    if "work_details_id" in data:
        bastp = control_bastp(control)
        control.work_details_id = _check_work_details(
            bastp, _resolve_id(data["work_details_id"], "work_details_id"),
        )
    if "amount" in data:
        control.amount = _parse_amount(data["amount"])
    for field in CONTROL_TEXT_FIELDS:
        if field in data:
            setattr(control, field, text_input(data[field], field))
    db.session.flush()
    log_activity("update", "material_control", control.id, old_data=old, new_data=control.to_dict())
    return control


def control_bastp(control):
    return get_active_or_404(BASTP, control.bastp_id, "BASTP")


def delete_material_control(control):
    control.soft_delete()
    db.session.flush()
    log_activity("delete", "material_control", control.id, old_data=control.to_dict())
    return control
