"""
Data export — CSV and styled Excel downloads of console records.

Entities: vessels, work_orders, work_details, work_progress, permits,
invoices, and ``vessel_data`` (one vessel's work orders, work details and
progress together). Every export skips soft-deleted rows and can be limited
to one vessel. Content is built in memory; nothing touches disk.
"""

import csv
import io
import logging
from datetime import datetime, timezone

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from shipyard.core.exceptions import ValidationError
from shipyard.models import db
from shipyard.models.bastp import BASTP
from shipyard.models.invoice import InvoiceDetails
from shipyard.models.vessel import Vessel
from shipyard.models.work_order import PermitToWork, WorkDetails, WorkOrder, WorkProgress
from shipyard.services.invoice_service import annotate_invoice_status
from shipyard.services.work_order_service import details_progress_state

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# (header, row key) per entity; headers double as import column names
COLUMNS = {
    "vessels": [
        ("id", "id"), ("name", "name"), ("type", "type"), ("company", "company"),
    ],
    "work_orders": [
        ("id", "id"), ("vessel_id", "vessel_id"), ("vessel_name", "vessel_name"),
        ("customer_wo_number", "customer_wo_number"), ("customer_wo_date", "customer_wo_date"),
        ("shipyard_wo_number", "shipyard_wo_number"), ("shipyard_wo_date", "shipyard_wo_date"),
        ("wo_document_delivery_date", "wo_document_delivery_date"),
        ("wo_document_status", "wo_document_status"),
        ("planned_start_date", "planned_start_date"), ("target_close_date", "target_close_date"),
        ("actual_start_date", "actual_start_date"), ("actual_close_date", "actual_close_date"),
    ],
    "work_details": [
        ("id", "id"), ("work_order_id", "work_order_id"), ("shipyard_wo_number", "shipyard_wo_number"),
        ("description", "description"), ("location", "location"), ("quantity", "quantity"),
        ("uom", "uom"), ("pic", "pic"),
        ("planned_start_date", "planned_start_date"), ("target_close_date", "target_close_date"),
        ("period_close_target", "period_close_target"),
        ("actual_start_date", "actual_start_date"), ("actual_close_date", "actual_close_date"),
        ("current_progress", "current_progress"),
        ("bastp_id", "bastp_id"), ("is_invoiced", "is_invoiced"),
    ],
    "work_progress": [
        ("id", "id"), ("work_details_id", "work_details_id"), ("work_order_id", "work_order_id"),
        ("progress_percentage", "progress_percentage"), ("report_date", "report_date"),
        ("notes", "notes"),
    ],
    "permits": [
        ("id", "id"), ("work_order_id", "work_order_id"), ("is_uploaded", "is_uploaded"),
        ("document_url", "document_url"), ("created_at", "created_at"),
    ],
    "invoices": [
        ("id", "id"), ("bastp_id", "bastp_id"), ("bastp_number", "bastp_number"),
        ("invoice_number", "invoice_number"), ("faktur_number", "faktur_number"),
        ("company", "company"), ("receiver_name", "receiver_name"),
        ("due_date", "due_date"), ("payment_status", "payment_status"),
        ("payment_date", "payment_date"), ("total_amount", "total_amount"),
    ],
}

VESSEL_DATA_SHEETS = (
    ("Vessels", "vessels"),
    ("Work Orders", "work_orders"),
    ("Work Details", "work_details"),
    ("Progress", "work_progress"),
)

# flat CSV form of vessel_data: one row per work detail
VESSEL_DATA_COLUMNS = [
    ("vessel_id", "vessel_id"), ("vessel_name", "vessel_name"),
    ("customer_wo_number", "customer_wo_number"),
] + COLUMNS["work_details"]

ENTITIES = tuple(COLUMNS) + ("vessel_data",)


# ── Row builders ─────────────────────────────────────────────────────────────

def _live_work_orders(vessel_id=None):
    q = WorkOrder.query_active()
    if vessel_id:
        q = q.filter(WorkOrder.vessel_id == vessel_id)
    return q.order_by(WorkOrder.id).all()


def _live_details(vessel_id=None):
    q = (
        WorkDetails.query_active()
        .join(WorkOrder, WorkDetails.work_order_id == WorkOrder.id)
        .filter(WorkOrder.active_criterion())
    )
    if vessel_id:
        q = q.filter(WorkOrder.vessel_id == vessel_id)
    return q.order_by(WorkDetails.id).all()


def _vessel_rows(vessel_id=None):
    q = Vessel.query_active()
    if vessel_id:
        q = q.filter(Vessel.id == vessel_id)
    return [v.to_summary() for v in q.order_by(Vessel.id).all()]


def _work_order_rows(vessel_id=None):
    rows = []
    for wo in _live_work_orders(vessel_id):
        data = wo.to_dict()
        vessel = data.pop("vessel")
        data["vessel_name"] = vessel["name"] if vessel else ""
        rows.append(data)
    return rows


def _work_details_rows(vessel_id=None):
    details = _live_details(vessel_id)
    rows = annotate_invoice_status([d.to_dict() for d in details])
    for row, d in zip(rows, details):
        _, state = details_progress_state(d)
        wo = d.work_order
        row["current_progress"] = state.current_progress
        row["shipyard_wo_number"] = wo.shipyard_wo_number
        row["customer_wo_number"] = wo.customer_wo_number
        row["vessel_id"] = wo.vessel_id
        row["vessel_name"] = wo.vessel.name if wo.vessel is not None else ""
    return rows


def _work_progress_rows(vessel_id=None):
    details_ids = [d.id for d in _live_details(vessel_id)]
    wo_ids = [wo.id for wo in _live_work_orders(vessel_id)]
    if not details_ids and not wo_ids:
        return []
    q = WorkProgress.query_active().filter(db.or_(
        WorkProgress.work_details_id.in_(details_ids),
        db.and_(WorkProgress.work_details_id.is_(None), WorkProgress.work_order_id.in_(wo_ids)),
    ))
    return [p.to_dict() for p in q.order_by(WorkProgress.report_date, WorkProgress.id).all()]


def _permit_rows(vessel_id=None):
    wo_ids = [wo.id for wo in _live_work_orders(vessel_id)]
    if not wo_ids:
        return []
    q = PermitToWork.query_active().filter(PermitToWork.work_order_id.in_(wo_ids))
    return [p.to_dict() for p in q.order_by(PermitToWork.id).all()]


def _invoice_rows(vessel_id=None):
    q = InvoiceDetails.query_active()
    if vessel_id:
        q = q.join(BASTP, InvoiceDetails.bastp_id == BASTP.id).filter(BASTP.vessel_id == vessel_id)
    return [i.to_dict(include_lines=True) for i in q.order_by(InvoiceDetails.id).all()]


ROW_BUILDERS = {
    "vessels": _vessel_rows,
    "work_orders": _work_order_rows,
    "work_details": _work_details_rows,
    "work_progress": _work_progress_rows,
    "permits": _permit_rows,
    "invoices": _invoice_rows,
}


def _check_entity(entity):
    if entity not in ENTITIES:
        raise ValidationError(
            f"Unknown export entity: {entity}", details={"allowed": list(ENTITIES)},
        )


def _cell(value):
    if isinstance(value, bool):
        return "yes" if value else "no"
    return "" if value is None else value


# ── Generators ───────────────────────────────────────────────────────────────

def export_filename(entity, vessel_id=None, extension="csv"):
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
    prefix = entity
    if vessel_id:
        vessel = Vessel.query_active().filter(Vessel.id == vessel_id).first()
        if vessel is not None:
            slug = "".join(ch if ch.isalnum() else "_" for ch in vessel.name).strip("_")
            prefix = f"{slug or 'vessel'}_{entity}"
    return f"{prefix}_{stamp}.{extension}"


def generate_csv(entity, vessel_id=None) -> str:
    """CSV text for one entity; ``vessel_data`` is flattened to one row per work detail."""
    _check_entity(entity)
    if entity == "vessel_data":
        columns, rows = VESSEL_DATA_COLUMNS, _work_details_rows(vessel_id)
    else:
        columns, rows = COLUMNS[entity], ROW_BUILDERS[entity](vessel_id)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([header for header, _ in columns])
    for row in rows:
        writer.writerow([_cell(row.get(key)) for _, key in columns])
    logger.info("CSV export %s: %d rows (vessel_id=%s)", entity, len(rows), vessel_id)
    return output.getvalue()


def _apply_header_style(ws, row: int, col_count: int) -> None:
    """Apply dark-header styling to an Excel row (1-indexed)."""
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


def _fill_sheet(ws, columns, rows):
    for col, (header, _) in enumerate(columns, start=1):
        ws.cell(row=1, column=col).value = header
    _apply_header_style(ws, 1, len(columns))
    for row_i, row in enumerate(rows, start=2):
        for col, (_, key) in enumerate(columns, start=1):
            ws.cell(row=row_i, column=col).value = _cell(row.get(key))
    ws.freeze_panes = "A2"
    _auto_width(ws)


def generate_excel(entity, vessel_id=None) -> io.BytesIO:
    """Styled workbook; ``vessel_data`` gets one sheet per record type."""
    _check_entity(entity)
    wb = Workbook()
    ws = wb.active

    if entity == "vessel_data":
        ws.title = VESSEL_DATA_SHEETS[0][0]
        for index, (title, part) in enumerate(VESSEL_DATA_SHEETS):
            sheet = ws if index == 0 else wb.create_sheet(title)
            _fill_sheet(sheet, COLUMNS[part], ROW_BUILDERS[part](vessel_id))
    else:
        ws.title = entity.replace("_", " ").title()
        _fill_sheet(ws, COLUMNS[entity], ROW_BUILDERS[entity](vessel_id))

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    logger.info("Excel export %s (vessel_id=%s)", entity, vessel_id)
    return buf
