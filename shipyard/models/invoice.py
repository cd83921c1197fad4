"""
Shipyard Work Order Console
Invoice models.

Models:
    - InvoiceDetails: invoice header raised against one BASTP
    - InvoiceWorkDetails: priced line linking an invoice to a work detail

Architecture chain: BASTP → InvoiceDetails → InvoiceWorkDetails → WorkDetails
"""

from shipyard.models import db
from shipyard.models.base import TimestampMixin, iso
from shipyard.models.soft_delete import SoftDeleteMixin


class InvoiceDetails(SoftDeleteMixin, TimestampMixin, db.Model):
    """
    Invoice for the work covered by a BASTP.

    A BASTP has at most one live invoice; while it exists the BASTP is
    ``INVOICED`` and its priced work details count as invoiced.
    """

    __tablename__ = "invoice_details"

    id = db.Column(db.Integer, primary_key=True)
    bastp_id = db.Column(
        db.Integer, db.ForeignKey("bastps.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    invoice_number = db.Column(db.String(100), nullable=True, index=True)
    faktur_number = db.Column(db.String(100), nullable=True, comment="Tax invoice number")
    company = db.Column(db.String(200), nullable=True)
    receiver_name = db.Column(db.String(200), nullable=True)

    bastp_collection_date = db.Column(db.Date, nullable=True)
    delivery_date = db.Column(db.Date, nullable=True)
    collection_date = db.Column(db.Date, nullable=True)
    due_date = db.Column(db.Date, nullable=True)

    payment_status = db.Column(db.Boolean, nullable=False, default=False)
    payment_date = db.Column(db.Date, nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.String(64), nullable=True)

    bastp = db.relationship("BASTP")
    lines = db.relationship("InvoiceWorkDetails", back_populates="invoice", lazy="dynamic")

    def live_lines(self):
        return (
            self.lines.filter(InvoiceWorkDetails.active_criterion())
            .order_by(InvoiceWorkDetails.id)
            .all()
        )

    def to_dict(self, include_lines=False):
        data = {
            "id": self.id,
            "bastp_id": self.bastp_id,
            "bastp_number": self.bastp.number if self.bastp is not None else None,
            "invoice_number": self.invoice_number,
            "faktur_number": self.faktur_number,
            "company": self.company,
            "receiver_name": self.receiver_name,
            "bastp_collection_date": iso(self.bastp_collection_date),
            "delivery_date": iso(self.delivery_date),
            "collection_date": iso(self.collection_date),
            "due_date": iso(self.due_date),
            "payment_status": bool(self.payment_status),
            "payment_date": iso(self.payment_date),
            "remarks": self.remarks,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "deleted_at": iso(self.deleted_at),
        }
        if include_lines:
            lines = self.live_lines()
            data["lines"] = [line.to_dict() for line in lines]
            data["total_amount"] = sum(line.payment_price or 0 for line in lines)
        return data

    def __repr__(self):
        return f"<InvoiceDetails {self.id}: {self.invoice_number or '-'} bastp={self.bastp_id}>"


class InvoiceWorkDetails(SoftDeleteMixin, TimestampMixin, db.Model):
    """Priced work detail on an invoice; ``payment_price`` = unit price × quantity."""

    __tablename__ = "invoice_work_details"

    id = db.Column(db.Integer, primary_key=True)
    invoice_details_id = db.Column(
        db.Integer, db.ForeignKey("invoice_details.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    work_details_id = db.Column(
        db.Integer, db.ForeignKey("work_details.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    unit_price = db.Column(db.Float, nullable=False, default=0)
    payment_price = db.Column(db.Float, nullable=False, default=0)

    invoice = db.relationship("InvoiceDetails", back_populates="lines")
    work_details = db.relationship("WorkDetails")

    def to_dict(self):
        details = self.work_details
        return {
            "id": self.id,
            "invoice_details_id": self.invoice_details_id,
            "work_details_id": self.work_details_id,
            "description": details.description if details is not None else None,
            "quantity": details.quantity if details is not None else None,
            "uom": details.uom if details is not None else None,
            "unit_price": self.unit_price,
            "payment_price": self.payment_price,
        }

    def __repr__(self):
        return f"<InvoiceWorkDetails invoice={self.invoice_details_id} details={self.work_details_id}>"
