"""
Shipyard Work Order Console
BASTP (acceptance document) and work verification models.

Models:
    - BASTP: acceptance document grouping work details for one vessel
    - WorkVerification: inspection record for a 100%-complete work detail
"""

from datetime import date

from shipyard.models import db
from shipyard.models.base import TimestampMixin, iso
from shipyard.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

BASTP_STATUSES = {"DRAFT", "VERIFIED", "READY_FOR_INVOICE", "INVOICED"}


class BASTP(SoftDeleteMixin, TimestampMixin, db.Model):
    """An acceptance/completion document for a vessel's work details."""

    __tablename__ = "bastps"

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(100), nullable=False, index=True)
    date = db.Column(db.Date, nullable=True)
    delivery_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(30), nullable=False, default="DRAFT")
    vessel_id = db.Column(
        db.Integer, db.ForeignKey("vessels.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    document_url = db.Column(db.String(500), nullable=True)
    storage_path = db.Column(db.String(500), nullable=True)
    is_invoiced = db.Column(db.Boolean, nullable=False, default=False)
    invoiced_date = db.Column(db.DateTime(timezone=True), nullable=True)
    user_id = db.Column(db.String(64), nullable=True)

    vessel = db.relationship("Vessel")
    work_details = db.relationship("WorkDetails", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "number": self.number,
            "date": iso(self.date),
            "delivery_date": iso(self.delivery_date),
            "status": self.status,
            "vessel_id": self.vessel_id,
            "vessel": self.vessel.to_summary() if self.vessel is not None else None,
            "document_url": self.document_url,
            "storage_path": self.storage_path,
            "is_invoiced": bool(self.is_invoiced),
            "invoiced_date": iso(self.invoiced_date),
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<BASTP {self.number} ({self.status})>"


class WorkVerification(SoftDeleteMixin, TimestampMixin, db.Model):
    """
    Confirms inspection/acceptance of one work detail.

    A non-deleted row is what makes its work detail "verified".
    """

    __tablename__ = "work_verifications"

    id = db.Column(db.Integer, primary_key=True)
    work_details_id = db.Column(
        db.Integer, db.ForeignKey("work_details.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    verification_date = db.Column(db.Date, nullable=False, default=date.today)
    verified_by = db.Column(db.String(64), nullable=True)
    verified_by_email = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, default="")

    work_details = db.relationship("WorkDetails")

    def to_dict(self):
        return {
            "id": self.id,
            "work_details_id": self.work_details_id,
            "verification_date": iso(self.verification_date),
            "verified_by": self.verified_by,
            "verified_by_email": self.verified_by_email,
            "notes": self.notes,
            "created_at": iso(self.created_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<WorkVerification {self.id} details={self.work_details_id}>"
