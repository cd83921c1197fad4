"""
CSV data import — vessels, work orders, work details and progress.

Pipeline: parse → validate every row → import the valid rows.

Rows use the column names of the matching export, so an exported CSV
can be edited and fed straight back. An ``id`` column is optional:

  - without ``id`` (or with an unknown one) the row creates a new record
  - ``overwrite`` updates the live record with that id instead
  - ``skip_duplicates`` leaves it alone and counts the row as skipped
  - otherwise a known id is reported as a row error

``validate_only`` stops after validation and writes nothing.
"""

import csv
import io
import logging

from shipyard.core.exceptions import ValidationError
from shipyard.models import db
from shipyard.models.vessel import Vessel
from shipyard.models.work_order import WorkDetails, WorkOrder, WorkProgress
from shipyard.services import work_order_service as wo_svc
from shipyard.utils.helpers import parse_date_input, text_input

logger = logging.getLogger(__name__)

IMPORT_MODELS = {
    "vessels": Vessel,
    "work_orders": WorkOrder,
    "work_details": WorkDetails,
    "work_progress": WorkProgress,
}
IMPORT_ENTITIES = tuple(IMPORT_MODELS)

REQUIRED_COLUMNS = {
    "vessels": ("name",),
    "work_orders": (),
    "work_details": ("work_order_id",),
    "work_progress": ("work_details_id", "progress_percentage"),
}

TEMPLATE_COLUMNS = {
    "vessels": ["id", "name", "type", "company"],
    "work_orders": ["id", "vessel_id"] + list(wo_svc.WORK_ORDER_TEXT_FIELDS)
                   + list(wo_svc.WORK_ORDER_DATE_FIELDS),
    "work_details": ["id", "work_order_id", "quantity"] + list(wo_svc.DETAILS_TEXT_FIELDS)
                    + list(wo_svc.DETAILS_DATE_FIELDS),
    "work_progress": ["id", "work_details_id", "progress_percentage", "report_date", "notes"],
}


def generate_csv_template(entity) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(TEMPLATE_COLUMNS[entity])
    return output.getvalue()


# ═══════════════════════════════════════════════════════════════
# CSV Parsing
# ═══════════════════════════════════════════════════════════════

def parse_csv(entity, file_content: str | bytes) -> list[dict]:
    """Rows as dicts with stripped, lower-case keys and a ``row_num`` (header is row 1).

    Raises:
        ValidationError: not text, or a required column is missing.
    """
    if isinstance(file_content, bytes):
        try:
            file_content = file_content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationError("CSV must be UTF-8 text") from None
    if not isinstance(file_content, str):
        raise ValidationError("csv_content must be text")

    reader = csv.DictReader(io.StringIO(file_content))
    fieldnames = reader.fieldnames or []
    normalized = [f.strip().lower() for f in fieldnames]
    missing = [c for c in REQUIRED_COLUMNS[entity] if c not in normalized]
    if missing:
        raise ValidationError(
            f"CSV is missing required columns: {', '.join(missing)}",
            details={"found": fieldnames, "required": list(REQUIRED_COLUMNS[entity])},
        )

    rows = []
    for i, row in enumerate(reader, start=2):
        normalized_row = {"row_num": i}
        for k, v in row.items():
            if k is None:
                continue
            normalized_row[k.strip().lower()] = (v or "").strip()
        rows.append(normalized_row)
    return rows


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════

def _live(model, value, field):
    if value in (None, ""):
        return None
    try:
        pk = int(value)
    except ValueError:
        raise ValidationError(f"{field} must be an integer") from None
    obj = db.session.get(model, pk)
    if obj is None or obj.is_deleted:
        return None
    return obj


def _check_vessel(row):
    if not text_input(row.get("name"), "name"):
        raise ValidationError("name is required")


def _check_work_order(row):
    wo_svc.resolve_vessel_id(row.get("vessel_id"))
    for field in wo_svc.WORK_ORDER_DATE_FIELDS:
        parse_date_input(row.get(field), field)


def _check_work_details(row):
    if _live(WorkOrder, row.get("work_order_id"), "work_order_id") is None:
        raise ValidationError(f"work order {row.get('work_order_id') or '-'} does not exist")
    wo_svc.parse_quantity(row.get("quantity"))
    for field in wo_svc.DETAILS_DATE_FIELDS:
        parse_date_input(row.get(field), field)


def _check_work_progress(row):
    details = _live(WorkDetails, row.get("work_details_id"), "work_details_id")
    if details is None or details.work_order.is_deleted:
        raise ValidationError(f"work details {row.get('work_details_id') or '-'} do not exist")
    wo_svc.parse_progress_percentage(row.get("progress_percentage"))
    parse_date_input(row.get("report_date"), "report_date")


ROW_CHECKS = {
    "vessels": _check_vessel,
    "work_orders": _check_work_order,
    "work_details": _check_work_details,
    "work_progress": _check_work_progress,
}


def validate_import_rows(entity, rows, *, overwrite=False, skip_duplicates=False) -> dict:
    """
    Sort rows into create / update / skip, or an error entry.
    Returns {"create": [...], "update": [...], "skipped": [...], "errors": [...]}
    """
    model = IMPORT_MODELS[entity]
    result = {"create": [], "update": [], "skipped": [], "errors": []}

    for row in rows:
        try:
            existing = _live(model, row.get("id"), "id")
            if existing is not None and not overwrite:
                if skip_duplicates:
                    result["skipped"].append(row)
                    continue
                raise ValidationError(f"id {existing.id} already exists")
            if existing is not None and entity == "work_progress":
                raise ValidationError("progress reports cannot be overwritten")
            ROW_CHECKS[entity](row)
        except ValidationError as exc:
            result["errors"].append({"row_num": row["row_num"], "errors": [str(exc)]})
            continue
        if existing is not None:
            result["update"].append((existing, row))
        else:
            result["create"].append(row)
    return result


# ═══════════════════════════════════════════════════════════════
# Import
# ═══════════════════════════════════════════════════════════════

def _create(entity, row):
    if entity == "vessels":
        return wo_svc.create_vessel(row)
    if entity == "work_orders":
        return wo_svc.create_work_order(row)
    if entity == "work_details":
        wo = db.session.get(WorkOrder, int(row["work_order_id"]))
        return wo_svc.create_work_details(wo, row)
    details = db.session.get(WorkDetails, int(row["work_details_id"]))
    return wo_svc.add_details_progress(details, row)


def _update(entity, obj, row):
    if entity == "vessels":
        return wo_svc.update_vessel(obj, row)
    if entity == "work_orders":
        return wo_svc.update_work_order(obj, row)
    return wo_svc.update_work_details(obj, row)


def import_csv(entity, file_content, *, overwrite=False, skip_duplicates=False, validate_only=False) -> dict:
    """
    Full pipeline: parse → validate → import.
    Nothing is committed here; the caller commits when ``imported_count`` > 0.
    """
    rows = parse_csv(entity, file_content)
    if not rows:
        raise ValidationError("CSV file is empty or has no data rows")

    validation = validate_import_rows(entity, rows, overwrite=overwrite, skip_duplicates=skip_duplicates)
    errors = validation["errors"]

    imported = 0
    if not validate_only:
        for row in validation["create"]:
            _create(entity, row)
            imported += 1
        for obj, row in validation["update"]:
            _update(entity, obj, row)
            imported += 1

    if validate_only:
        status = "validated"
        message = (
            f"{len(validation['create']) + len(validation['update'])} rows valid"
            + (f", {len(errors)} rows had errors" if errors else "")
        )
    else:
        status = "completed" if not errors else "partial"
        message = (
            f"Imported {imported} {entity}"
            + (f", {len(errors)} rows had errors" if errors else "")
        )
    logger.info("Import %s: %s (%d skipped)", entity, message, len(validation["skipped"]))

    return {
        "status": status,
        "success": not errors,
        "message": message,
        "total_rows": len(rows),
        "imported_count": imported,
        "created_count": len(validation["create"]) if not validate_only else 0,
        "updated_count": len(validation["update"]) if not validate_only else 0,
        "skipped_count": len(validation["skipped"]),
        "error_count": len(errors),
        "errors": errors,
    }
