"""Invoice service layer.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for committing.

Operations:
- Invoice create / update / soft delete against a READY_FOR_INVOICE BASTP
- Priced lines for the BASTP's work details (payment price = unit price x quantity)
- Invoice status of work details (``is_invoiced`` / ``invoice_details_id``)
"""
import logging
from datetime import date

from shipyard.core.exceptions import ConflictError, ValidationError
from shipyard.middleware.identity import get_current_user
from shipyard.models import db
from shipyard.models.base import utcnow
from shipyard.models.bastp import BASTP
from shipyard.models.invoice import InvoiceDetails, InvoiceWorkDetails
from shipyard.models.work_order import WorkDetails
from shipyard.services.activity_log_service import log_activity
from shipyard.utils.helpers import get_active_or_404, parse_date_input, text_input

logger = logging.getLogger(__name__)

READY_FOR_INVOICE = "READY_FOR_INVOICE"
INVOICED = "INVOICED"

INVOICE_TEXT_FIELDS = ("invoice_number", "faktur_number", "company", "receiver_name", "remarks")
INVOICE_DATE_FIELDS = (
    "bastp_collection_date", "delivery_date", "collection_date", "due_date", "payment_date",
)

_TRUE = {"true", "1", "yes", "y"}
_FALSE = {"false", "0", "no", "n", ""}


def parse_flag(value, field):
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValidationError(f"{field} must be true or false", details={field: value})


def parse_price(value, field="unit_price"):
    """Non-negative number; numeric strings with a decimal comma are accepted."""
    if value in (None, ""):
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: value})
    try:
        number = float(str(value).replace(",", "."))
    except ValueError:
        raise ValidationError(f"{field} must be a number", details={field: value}) from None
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: value})
    return number


# ── Invoice status of work details ───────────────────────────────────────


def invoice_status_by_details(details_ids):
    """``{work_details_id: invoice_details_id}`` for details on a live invoice."""
    ids = list(details_ids)
    if not ids:
        return {}
    rows = (
        db.session.query(InvoiceWorkDetails.work_details_id, InvoiceWorkDetails.invoice_details_id)
        .join(InvoiceDetails, InvoiceWorkDetails.invoice_details_id == InvoiceDetails.id)
        .filter(
            InvoiceWorkDetails.work_details_id.in_(ids),
            InvoiceWorkDetails.active_criterion(),
            InvoiceDetails.active_criterion(),
        )
        .all()
    )
    return {details_id: invoice_id for details_id, invoice_id in rows}


def annotate_invoice_status(details_dicts):
    """Add ``is_invoiced`` and ``invoice_details_id`` to serialised work details."""
    invoiced = invoice_status_by_details(d["id"] for d in details_dicts)
    for d in details_dicts:
        d["invoice_details_id"] = invoiced.get(d["id"])
        d["is_invoiced"] = d["invoice_details_id"] is not None
    return details_dicts


# ── Invoices ─────────────────────────────────────────────────────────────


def invoice_query(bastp_id=None, payment_status=None, search=None):
    q = InvoiceDetails.query_active()
    if bastp_id:
        q = q.filter(InvoiceDetails.bastp_id == bastp_id)
    if payment_status is not None:
        q = q.filter(InvoiceDetails.payment_status == payment_status)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(db.or_(
            InvoiceDetails.invoice_number.ilike(term),
            InvoiceDetails.faktur_number.ilike(term),
            InvoiceDetails.company.ilike(term),
        ))
    return q.order_by(InvoiceDetails.created_at.desc(), InvoiceDetails.id.desc())


def live_invoice_for(bastp_id):
    return (
        InvoiceDetails.query_active()
        .filter(InvoiceDetails.bastp_id == bastp_id)
        .first()
    )


def _apply_header(invoice, data):
    for field in INVOICE_TEXT_FIELDS:
        if field in data:
            setattr(invoice, field, text_input(data[field], field) or None)
    for field in INVOICE_DATE_FIELDS:
        if field in data:
            setattr(invoice, field, parse_date_input(data[field], field))
    if "payment_status" in data:
        invoice.payment_status = parse_flag(data["payment_status"], "payment_status")
    if invoice.payment_status and invoice.payment_date is None:
        invoice.payment_date = date.today()


def _build_lines(invoice, bastp, lines_data):
    """Price the BASTP's work details; lines without a positive price are dropped.

    Raises:
        ValidationError: malformed lines, a detail outside the BASTP, or no priced line.
    """
    if not isinstance(lines_data, list):
        raise ValidationError("lines must be a list", details={"lines": lines_data})

    priced = []
    seen = set()
    for item in lines_data:
        if not isinstance(item, dict):
            raise ValidationError("each line must be an object", details={"line": item})
        details_id = item.get("work_details_id")
        if not isinstance(details_id, int) or isinstance(details_id, bool):
            raise ValidationError("work_details_id must be an integer",
                                  details={"work_details_id": details_id})
        if details_id in seen:
            raise ValidationError("work details listed twice", details={"work_details_id": details_id})
        seen.add(details_id)

        details = get_active_or_404(WorkDetails, details_id, "WorkDetails")
        if details.bastp_id != bastp.id:
            raise ValidationError(
                "Work details are not covered by this BASTP",
                details={"work_details_id": details_id, "bastp_id": bastp.id},
            )
        unit_price = parse_price(item.get("unit_price"))
        if unit_price > 0:
            priced.append((details, unit_price))

    if not priced:
        raise ValidationError("Set a unit price on at least one work detail")

    lines = []
    for details, unit_price in priced:
        quantity = details.quantity if details.quantity else 1
        line = InvoiceWorkDetails(
            invoice_details_id=invoice.id,
            work_details_id=details.id,
            unit_price=unit_price,
            payment_price=unit_price * quantity,
        )
        db.session.add(line)
        lines.append(line)
    return lines


def create_invoice(data):
    """Invoice a READY_FOR_INVOICE BASTP; the BASTP becomes INVOICED.

    Raises:
        ValidationError: BASTP not ready for invoicing, or bad lines.
        ConflictError: the BASTP already has a live invoice.
    """
    bastp_id = data.get("bastp_id")
    if not isinstance(bastp_id, int) or isinstance(bastp_id, bool):
        raise ValidationError("bastp_id must be an integer", details={"bastp_id": bastp_id})
    bastp = get_active_or_404(BASTP, bastp_id, "BASTP")
    if bastp.is_invoiced or live_invoice_for(bastp.id) is not None:
        raise ConflictError("InvoiceDetails", "bastp_id", bastp.id)
    if bastp.status != READY_FOR_INVOICE:
        raise ValidationError(
            "This BASTP is not ready for invoicing",
            details={"bastp_id": bastp.id, "status": bastp.status},
        )

    invoice = InvoiceDetails(bastp_id=bastp.id, user_id=get_current_user().user_id)
    _apply_header(invoice, data)
    db.session.add(invoice)
    db.session.flush()
    _build_lines(invoice, bastp, data.get("lines") or [])

    bastp.status = INVOICED
    bastp.is_invoiced = True
    bastp.invoiced_date = utcnow()
    db.session.flush()
    log_activity("create", "invoice_details", invoice.id, new_data=invoice.to_dict(),
                 description=f"Invoice {invoice.invoice_number or invoice.id} "
                             f"created for BASTP {bastp.number}")
    return invoice


def update_invoice(invoice, data):
    """Update the header; a ``lines`` key replaces every priced line."""
    old = invoice.to_dict(include_lines=True)
    _apply_header(invoice, data)
    if "lines" in data:
        bastp = get_active_or_404(BASTP, invoice.bastp_id, "BASTP")
        at = utcnow()
        for line in invoice.live_lines():
            line.soft_delete(at)
        _build_lines(invoice, bastp, data["lines"])
    db.session.flush()
    log_activity("update", "invoice_details", invoice.id, old_data=old,
                 new_data=invoice.to_dict(include_lines=True))
    return invoice


def delete_invoice(invoice):
    """Soft delete with its lines; the BASTP goes back to READY_FOR_INVOICE."""
    at = utcnow()
    for line in invoice.live_lines():
        line.soft_delete(at)
    invoice.soft_delete(at)

    bastp = invoice.bastp
    if bastp is not None and not bastp.is_deleted:
        bastp.status = READY_FOR_INVOICE
        bastp.is_invoiced = False
        bastp.invoiced_date = None
    db.session.flush()
    log_activity("delete", "invoice_details", invoice.id, old_data=invoice.to_dict(),
                 description=f"Invoice {invoice.invoice_number or invoice.id} deleted")
    return invoice
