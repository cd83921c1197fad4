"""
Data export and import endpoints.

    GET  /api/v1/export/<entity>
        format: excel | csv (default: csv)
        vessel_id: int (optional) — restrict to one vessel
    GET  /api/v1/import/<entity>/template      empty CSV with the import columns
    POST /api/v1/import/<entity>
        CSV as multipart ``file``, JSON ``csv_content`` or raw body
        overwrite / skip_duplicates / validate_only: 1 | 0 (default: 0)

Export entities: vessels, work_orders, work_details, work_progress, permits,
invoices, vessel_data. Import entities: vessels, work_orders, work_details,
work_progress. An import answers 200 when every row went in and 207 when
some rows were rejected.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from shipyard.services import export_service, import_service
from shipyard.utils.errors import E, api_error
from shipyard.utils.helpers import db_commit_or_error

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1")


def _flag_arg(name):
    return request.args.get(name, "0").strip().lower() in ("1", "true", "yes")


@export_bp.route("/export/<entity>", methods=["GET"])
def export_entity(entity):
    fmt = request.args.get("format", "csv").lower()
    if fmt not in ("excel", "csv"):
        return api_error(E.VALIDATION_INVALID, "Unsupported format. Supported values: excel, csv.")
    if entity not in export_service.ENTITIES:
        return api_error(E.VALIDATION_INVALID, f"Unknown export entity: {entity}",
                         details={"allowed": list(export_service.ENTITIES)})
    vessel_id = request.args.get("vessel_id", type=int)

    if fmt == "excel":
        content = export_service.generate_excel(entity, vessel_id)
        filename = export_service.export_filename(entity, vessel_id, "xlsx")
        return Response(
            content,
            mimetype=export_service.XLSX_MIMETYPE,
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    content = export_service.generate_csv(entity, vessel_id)
    filename = export_service.export_filename(entity, vessel_id, "csv")
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@export_bp.route("/import/<entity>/template", methods=["GET"])
def import_template(entity):
    if entity not in import_service.IMPORT_ENTITIES:
        return api_error(E.VALIDATION_INVALID, f"Unknown import entity: {entity}",
                         details={"allowed": list(import_service.IMPORT_ENTITIES)})
    return Response(
        import_service.generate_csv_template(entity),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={entity}_import_template.csv"},
    )


@export_bp.route("/import/<entity>", methods=["POST"])
def import_entity(entity):
    if entity not in import_service.IMPORT_ENTITIES:
        return api_error(E.VALIDATION_INVALID, f"Unknown import entity: {entity}",
                         details={"allowed": list(import_service.IMPORT_ENTITIES)})
    content = _extract_file_content()
    if not content:
        return api_error(E.VALIDATION_REQUIRED, "CSV file is required (file upload or raw body)")

    result = import_service.import_csv(
        entity,
        content,
        overwrite=_flag_arg("overwrite"),
        skip_duplicates=_flag_arg("skip_duplicates"),
        validate_only=_flag_arg("validate_only"),
    )
    if result["imported_count"]:
        err = db_commit_or_error()
        if err:
            return err
    status_code = 200 if result["status"] in ("completed", "validated") else 207
    return jsonify(result), status_code


def _extract_file_content() -> str | bytes | None:
    """CSV content from a multipart upload, a JSON ``csv_content`` field or the raw body."""
    if request.files:
        file = request.files.get("file")
        if file:
            return file.read()

    data = request.get_json(silent=True)
    if isinstance(data, dict) and "csv_content" in data:
        return data["csv_content"]

    if request.data:
        return request.data

    return None
