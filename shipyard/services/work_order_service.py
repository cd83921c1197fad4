"""Work order service layer — vessels, work orders, work details, progress and permits.

Transaction policy: functions use flush() for ID generation, never commit().
Caller (route handler) is responsible for committing via db_commit_or_error().

Operations:
- Vessel CRUD
- Work order CRUD with derived document status; delete cascades to details
- Work details CRUD
- Progress reports on a work detail or directly on a work order
- Permit-to-work uploads
Every write appends an activity log row.
"""
import logging
from datetime import date

from shipyard.core.exceptions import ValidationError
from shipyard.middleware.identity import get_current_user
from shipyard.models import db
from shipyard.models.base import utcnow
from shipyard.models.vessel import Vessel
from shipyard.models.work_order import (
    PROGRESS_MAX, PROGRESS_MIN, PermitToWork, WorkDetails, WorkOrder, WorkProgress,
)
from shipyard.services import rollup_engine as engine
from shipyard.services.activity_log_service import log_activity
from shipyard.services.blob_store import get_blob_store
from shipyard.services.invoice_service import annotate_invoice_status
from shipyard.services.records import ProgressRecord
from shipyard.utils.helpers import get_active_or_404, parse_date_input, text_input

logger = logging.getLogger(__name__)

WORK_ORDER_TEXT_FIELDS = ("customer_wo_number", "shipyard_wo_number")
WORK_ORDER_DATE_FIELDS = (
    "customer_wo_date", "shipyard_wo_date", "wo_document_delivery_date",
    "planned_start_date", "target_close_date", "actual_start_date", "actual_close_date",
)
DETAILS_TEXT_FIELDS = ("description", "location", "uom", "pic", "period_close_target")
DETAILS_DATE_FIELDS = ("planned_start_date", "target_close_date", "actual_start_date", "actual_close_date")
VESSEL_FIELDS = ("name", "type", "company")


def _apply_fields(obj, data, text_fields=(), date_fields=()):
    for field in text_fields:
        if field in data:
            value = data[field]
            setattr(obj, field, None if value is None else text_input(value, field))
    for field in date_fields:
        if field in data:
            setattr(obj, field, parse_date_input(data[field], field))


def parse_quantity(value):
    if value in (None, ""):
        return None
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        raise ValidationError("quantity must be a number", details={"quantity": value}) from None


def parse_progress_percentage(value):
    """Accepts numbers or numeric strings (decimal comma allowed) within 0-100."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError("progress_percentage is required", details={"progress_percentage": value})
    try:
        number = float(str(value).replace(",", "."))
    except ValueError:
        raise ValidationError(
            "progress_percentage must be a number", details={"progress_percentage": value},
        ) from None
    if not PROGRESS_MIN <= number <= PROGRESS_MAX:
        raise ValidationError(
            f"progress_percentage must be between {PROGRESS_MIN} and {PROGRESS_MAX}",
            details={"progress_percentage": value},
        )
    return number


# ── Vessel ───────────────────────────────────────────────────────────────


def vessel_query(search=None):
    q = Vessel.query_active()
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(db.or_(Vessel.name.ilike(term), Vessel.company.ilike(term), Vessel.type.ilike(term)))
    return q.order_by(Vessel.name)


def create_vessel(data):
    """Returns the flushed Vessel."""
    vessel = Vessel(
        name=text_input(data.get("name"), "name"),
        type=text_input(data.get("type"), "type"),
        company=text_input(data.get("company"), "company"),
    )
    db.session.add(vessel)
    db.session.flush()
    log_activity("create", "vessels", vessel.id, new_data=vessel.to_summary(),
                 description=f"Vessel {vessel.name} created")
    return vessel


def update_vessel(vessel, data):
    old = vessel.to_summary()
    _apply_fields(vessel, data, text_fields=VESSEL_FIELDS)
    if not vessel.name:
        raise ValidationError("name cannot be empty", details={"name": data.get("name")})
    db.session.flush()
    log_activity("update", "vessels", vessel.id, old_data=old, new_data=vessel.to_summary())
    return vessel


def delete_vessel(vessel):
    """Soft delete; the vessel's work orders stay but no longer roll up under it."""
    vessel.soft_delete()
    db.session.flush()
    log_activity("delete", "vessels", vessel.id, old_data=vessel.to_summary(),
                 description=f"Vessel {vessel.name} deleted")
    return vessel


# ── Work order ───────────────────────────────────────────────────────────


def resolve_vessel_id(value):
    if value in (None, ""):
        return None
    try:
        vessel_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError("vessel_id must be an integer", details={"vessel_id": value}) from None
    vessel = db.session.get(Vessel, vessel_id)
    if vessel is None or vessel.is_deleted:
        raise ValidationError("Vessel does not exist", details={"vessel_id": vessel_id})
    return vessel_id


def create_work_order(data):
    """Create a work order; wo_document_status is derived, never taken from input.

    Returns:
        WorkOrder instance (already flushed).
    """
    wo = WorkOrder(
        vessel_id=resolve_vessel_id(data.get("vessel_id")),
        user_id=get_current_user().user_id,
    )
    _apply_fields(wo, data, WORK_ORDER_TEXT_FIELDS, WORK_ORDER_DATE_FIELDS)
    wo.refresh_document_status()
    db.session.add(wo)
    db.session.flush()
    log_activity("create", "work_orders", wo.id, new_data=wo.to_dict(),
                 description=f"Work order {wo.shipyard_wo_number or wo.id} created")
    return wo


def update_work_order(wo, data):
    old = wo.to_dict()
    if "vessel_id" in data:
        wo.vessel_id = resolve_vessel_id(data["vessel_id"])
    _apply_fields(wo, data, WORK_ORDER_TEXT_FIELDS, WORK_ORDER_DATE_FIELDS)
    wo.refresh_document_status()
    db.session.flush()
    log_activity("update", "work_orders", wo.id, old_data=old, new_data=wo.to_dict())
    return wo


def delete_work_order(wo):
    """Soft-delete the work order together with its live work details."""
    at = utcnow()
    details = wo.work_details.filter(WorkDetails.active_criterion()).all()
    for d in details:
        d.soft_delete(at)
    wo.soft_delete(at)
    db.session.flush()
    log_activity("delete", "work_orders", wo.id, old_data=wo.to_dict(),
                 description=f"Work order {wo.shipyard_wo_number or wo.id} deleted "
                             f"with {len(details)} work details")
    return wo


def work_order_detail(wo):
    """Work order payload with its live details and permits."""
    data = wo.to_dict()
    data["work_details"] = annotate_invoice_status([
        d.to_dict() for d in wo.work_details.filter(WorkDetails.active_criterion()).order_by(WorkDetails.id)
    ])
    data["permits"] = [
        p.to_dict() for p in wo.permits.filter(PermitToWork.active_criterion()).order_by(PermitToWork.id)
    ]
    return data


# ── Work details ─────────────────────────────────────────────────────────


def create_work_details(wo, data):
    details = WorkDetails(
        work_order_id=wo.id,
        quantity=parse_quantity(data.get("quantity")),
        user_id=get_current_user().user_id,
    )
    _apply_fields(details, data, DETAILS_TEXT_FIELDS, DETAILS_DATE_FIELDS)
    db.session.add(details)
    db.session.flush()
    log_activity("create", "work_details", details.id, new_data=details.to_dict())
    return details


def update_work_details(details, data):
    old = details.to_dict()
    _apply_fields(details, data, DETAILS_TEXT_FIELDS, DETAILS_DATE_FIELDS)
    if "quantity" in data:
        details.quantity = parse_quantity(data["quantity"])
    db.session.flush()
    log_activity("update", "work_details", details.id, old_data=old, new_data=details.to_dict())
    return details


def delete_work_details(details):
    details.soft_delete()
    db.session.flush()
    log_activity("delete", "work_details", details.id, old_data=details.to_dict())
    return details


# ── Progress ─────────────────────────────────────────────────────────────


def _create_progress(data, evidence=None, **parent):
    progress = WorkProgress(
        progress_percentage=parse_progress_percentage(data.get("progress_percentage")),
        report_date=parse_date_input(data.get("report_date"), "report_date") or date.today(),
        notes=text_input(data.get("notes"), "notes"),
        user_id=get_current_user().user_id,
        **parent,
    )
    if evidence is not None and evidence.filename:
        blob = get_blob_store().save(evidence, prefix="progress")
        progress.evidence_url = blob.url
        progress.storage_path = blob.storage_path
    db.session.add(progress)
    db.session.flush()
    log_activity("create", "work_progress", progress.id, new_data=progress.to_dict())
    return progress


def add_details_progress(details, data, evidence=None):
    """Report progress on one work detail."""
    return _create_progress(data, evidence, work_details_id=details.id)


def add_work_order_progress(wo, data, evidence=None):
    """Report progress on the work order as a whole."""
    return _create_progress(data, evidence, work_order_id=wo.id)


def delete_progress(progress):
    progress.soft_delete()
    db.session.flush()
    log_activity("delete", "work_progress", progress.id, old_data=progress.to_dict())
    return progress


def details_progress_state(details):
    """Resolved progress for one work detail from its live reports."""
    rows = (
        details.progress_reports
        .filter(WorkProgress.active_criterion())
        .order_by(WorkProgress.report_date.desc(), WorkProgress.created_at.desc(), WorkProgress.id.desc())
        .all()
    )
    state = engine.resolve_latest_progress(ProgressRecord.from_dict(r.to_dict()) for r in rows)
    return rows, state


def progress_history(details):
    rows, state = details_progress_state(details)
    return {
        "work_details": details.to_dict(),
        "progress": [r.to_dict() for r in rows],
        **state.to_dict(),
    }


# ── Permits ──────────────────────────────────────────────────────────────


def upload_permit(wo, file_storage):
    blob = get_blob_store().save(file_storage, prefix="permits")
    permit = PermitToWork(
        work_order_id=wo.id,
        is_uploaded=True,
        document_url=blob.url,
        storage_path=blob.storage_path,
        user_id=get_current_user().user_id,
    )
    db.session.add(permit)
    db.session.flush()
    log_activity("create", "permits_to_work", permit.id, new_data=permit.to_dict(),
                 description=f"Permit uploaded for work order {wo.id}")
    return permit


def delete_permit(permit):
    permit.soft_delete()
    db.session.flush()
    log_activity("delete", "permits_to_work", permit.id, old_data=permit.to_dict())
    return permit


def get_work_details_or_404(details_id):
    """Live work detail whose work order is live too."""
    details = get_active_or_404(WorkDetails, details_id, "WorkDetails")
    get_active_or_404(WorkOrder, details.work_order_id, "WorkOrder")
    return details
