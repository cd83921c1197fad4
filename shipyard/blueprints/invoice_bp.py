"""
Invoice blueprint — invoices raised against BASTPs.

Endpoints:
    GET    /api/v1/invoices              list (bastp_id, payment_status, search, limit, offset)
    POST   /api/v1/invoices              create for a READY_FOR_INVOICE BASTP
    GET    /api/v1/invoices/<id>         detail with priced lines and total
    PUT    /api/v1/invoices/<id>         update header; ``lines`` replaces all lines
    DELETE /api/v1/invoices/<id>         soft delete, BASTP back to READY_FOR_INVOICE
"""

import logging

from flask import Blueprint, jsonify, request

from shipyard.blueprints import paginate_query
from shipyard.models.invoice import InvoiceDetails
from shipyard.services import invoice_service as svc
from shipyard.utils.errors import E, api_error
from shipyard.utils.helpers import db_commit_or_error, get_active_or_404

logger = logging.getLogger(__name__)

invoice_bp = Blueprint("invoice", __name__, url_prefix="/api/v1")


@invoice_bp.route("/invoices", methods=["GET"])
def list_invoices():
    paid = request.args.get("payment_status")
    q = svc.invoice_query(
        bastp_id=request.args.get("bastp_id", type=int),
        payment_status=None if paid in (None, "") else svc.parse_flag(paid, "payment_status"),
        search=request.args.get("search"),
    )
    invoices, total = paginate_query(q)
    return jsonify({"items": [i.to_dict() for i in invoices], "total": total})


@invoice_bp.route("/invoices", methods=["POST"])
def create_invoice():
    data = request.get_json(silent=True) or {}
    if data.get("bastp_id") in (None, ""):
        return api_error(E.VALIDATION_REQUIRED, "bastp_id is required")
    if not data.get("lines"):
        return api_error(E.VALIDATION_REQUIRED, "lines must be a non-empty list")

    invoice = svc.create_invoice(data)
    err = db_commit_or_error()
    if err:
        return err
    logger.info("Invoice %s created for BASTP %s", invoice.id, invoice.bastp_id)
    return jsonify(invoice.to_dict(include_lines=True)), 201


@invoice_bp.route("/invoices/<int:invoice_id>", methods=["GET"])
def get_invoice(invoice_id):
    invoice = get_active_or_404(InvoiceDetails, invoice_id, "InvoiceDetails")
    return jsonify(invoice.to_dict(include_lines=True))


@invoice_bp.route("/invoices/<int:invoice_id>", methods=["PUT"])
def update_invoice(invoice_id):
    invoice = get_active_or_404(InvoiceDetails, invoice_id, "InvoiceDetails")
    data = request.get_json(silent=True) or {}
    if "bastp_id" in data and data["bastp_id"] != invoice.bastp_id:
        return api_error(E.VALIDATION_INVALID, "An invoice cannot move to another BASTP")

    svc.update_invoice(invoice, data)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(invoice.to_dict(include_lines=True))


@invoice_bp.route("/invoices/<int:invoice_id>", methods=["DELETE"])
def delete_invoice(invoice_id):
    invoice = get_active_or_404(InvoiceDetails, invoice_id, "InvoiceDetails")
    svc.delete_invoice(invoice)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": "Invoice deleted"}), 200
