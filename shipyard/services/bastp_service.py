"""BASTP and work verification service layer.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for committing.

Operations:
- BASTP create / read / soft delete (delete detaches its work details)
- Attach completed work details to a BASTP
- Record and withdraw work verifications
"""
import logging
from datetime import date

from shipyard.core.exceptions import ConflictError, ValidationError
from shipyard.middleware.identity import get_current_user
from shipyard.models import db
from shipyard.models.bastp import BASTP, BASTP_STATUSES, WorkVerification
from shipyard.models.work_order import WorkDetails
from shipyard.services.activity_log_service import log_activity
from shipyard.services.blob_store import get_blob_store
from shipyard.services.invoice_service import annotate_invoice_status, live_invoice_for
from shipyard.services.rollup_engine import COMPLETE
from shipyard.services.work_order_service import (
    details_progress_state, get_work_details_or_404, resolve_vessel_id,
)
from shipyard.utils.helpers import parse_date_input, text_input

logger = logging.getLogger(__name__)


def bastp_query(vessel_id=None, status=None):
    q = BASTP.query_active()
    if vessel_id:
        q = q.filter(BASTP.vessel_id == vessel_id)
    if status:
        q = q.filter(BASTP.status == status)
    return q.order_by(BASTP.date.desc(), BASTP.id.desc())


def _validate_status(status):
    status = (status or "DRAFT").upper()
    if status not in BASTP_STATUSES:
        raise ValidationError(
            f"Invalid BASTP status: {status}", details={"allowed": sorted(BASTP_STATUSES)},
        )
    return status


def create_bastp(data, document=None):
    """Create a BASTP, optionally storing its signed document.

    Returns:
        BASTP instance (already flushed).
    """
    bastp = BASTP(
        number=text_input(data.get("number"), "number"),
        date=parse_date_input(data.get("date"), "date"),
        delivery_date=parse_date_input(data.get("delivery_date"), "delivery_date"),
        status=_validate_status(data.get("status")),
        vessel_id=resolve_vessel_id(data.get("vessel_id")),
        user_id=get_current_user().user_id,
    )
    if document is not None and document.filename:
        blob = get_blob_store().save(document, prefix="bastp")
        bastp.document_url = blob.url
        bastp.storage_path = blob.storage_path

    db.session.add(bastp)
    db.session.flush()
    log_activity("create", "bastps", bastp.id, new_data=bastp.to_dict(),
                 description=f"BASTP {bastp.number} created")
    return bastp


def bastp_detail(bastp):
    data = bastp.to_dict()
    data["work_details"] = annotate_invoice_status([
        d.to_dict() for d in
        bastp.work_details.filter(WorkDetails.active_criterion()).order_by(WorkDetails.id)
    ])
    invoice = live_invoice_for(bastp.id)
    data["invoice_details_id"] = invoice.id if invoice is not None else None
    return data


def attach_work_details(bastp, work_details_ids):
    """Mark completed work details as covered by ``bastp``.

    Raises:
        ValidationError: detail not 100% complete or on another vessel.
        ConflictError: detail already belongs to a different BASTP.
    """
    attached = []
    for details_id in work_details_ids:
        details = get_work_details_or_404(details_id)
        if details.bastp_id is not None and details.bastp_id != bastp.id:
            raise ConflictError("WorkDetails", "bastp_id", details.bastp_id)

        vessel_id = details.work_order.vessel_id
        if bastp.vessel_id is not None and vessel_id != bastp.vessel_id:
            raise ValidationError(
                "Work details belong to a different vessel",
                details={"work_details_id": details.id, "vessel_id": vessel_id},
            )

        _, state = details_progress_state(details)
        if state.current_progress != COMPLETE:
            raise ValidationError(
                "Only completed work details can be added to a BASTP",
                details={"work_details_id": details.id, "current_progress": state.current_progress},
            )

        details.is_bastp = True
        details.bastp_id = bastp.id
        attached.append(details)

    db.session.flush()
    log_activity("update", "bastps", bastp.id,
                 new_data={"work_details_ids": [d.id for d in attached]},
                 description=f"{len(attached)} work details added to BASTP {bastp.number}")
    return attached


def delete_bastp(bastp):
    """Soft delete; covered work details go back to the no-BASTP pool."""
    if bastp.is_invoiced:
        raise ValidationError(
            "Delete the BASTP's invoice first", details={"bastp_id": bastp.id},
        )
    details = bastp.work_details.filter(WorkDetails.active_criterion()).all()
    for d in details:
        d.is_bastp = False
        d.bastp_id = None
    bastp.soft_delete()
    db.session.flush()
    log_activity("delete", "bastps", bastp.id, old_data=bastp.to_dict(),
                 description=f"BASTP {bastp.number} deleted, {len(details)} work details released")
    return bastp


# ── Verification ─────────────────────────────────────────────────────────


def active_verification(details_id):
    return (
        WorkVerification.query_active()
        .filter(WorkVerification.work_details_id == details_id)
        .first()
    )


def verify_work_details(details, data):
    """Record inspection of a 100%-complete work detail.

    Raises:
        ValidationError: current progress is below 100.
        ConflictError: the detail already has a live verification.
    """
    _, state = details_progress_state(details)
    if state.current_progress != COMPLETE:
        raise ValidationError(
            "Only work details at 100% progress can be verified",
            details={"work_details_id": details.id, "current_progress": state.current_progress},
        )
    if active_verification(details.id) is not None:
        raise ConflictError("WorkVerification", "work_details_id", details.id)

    user = get_current_user()
    verification = WorkVerification(
        work_details_id=details.id,
        verification_date=parse_date_input(data.get("verification_date"), "verification_date") or date.today(),
        verified_by=user.user_id,
        verified_by_email=user.email,
        notes=text_input(data.get("notes"), "notes"),
    )
    db.session.add(verification)
    db.session.flush()
    log_activity("create", "work_verifications", verification.id, new_data=verification.to_dict(),
                 description=f"Work details {details.id} verified")
    return verification


def delete_verification(verification):
    verification.soft_delete()
    db.session.flush()
    log_activity("delete", "work_verifications", verification.id, old_data=verification.to_dict())
    return verification
