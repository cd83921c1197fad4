"""
Shipyard Work Order Console
Work order domain models.

Models:
    - WorkOrder: contracted shipyard work for one vessel
    - WorkDetails: line item under a work order (task, location, PIC)
    - WorkProgress: dated percentage-complete report
    - PermitToWork: permit document attached to a work order

Architecture chain: Vessel → WorkOrder → WorkDetails → WorkProgress
                                       → PermitToWork
"""

from shipyard.models import db
from shipyard.models.base import TimestampMixin, iso
from shipyard.models.soft_delete import SoftDeleteMixin


# ── Constants ────────────────────────────────────────────────────────────────

PROGRESS_MIN = 0
PROGRESS_MAX = 100

WO_DOCUMENT_FIELDS = (
    "customer_wo_number",
    "customer_wo_date",
    "shipyard_wo_number",
    "shipyard_wo_date",
)


def derive_wo_document_status(values: dict) -> bool:
    """True when every customer/shipyard document field is filled in."""
    return all(values.get(name) for name in WO_DOCUMENT_FIELDS)


# ═══════════════════════════════════════════════════════════════════════════
#  WORK ORDER
# ═══════════════════════════════════════════════════════════════════════════

class WorkOrder(SoftDeleteMixin, TimestampMixin, db.Model):
    """
    A top-level unit of contracted work for one vessel.

    ``wo_document_status`` is derived on every write from the four
    customer/shipyard document fields.
    """

    __tablename__ = "work_orders"

    id = db.Column(db.Integer, primary_key=True)
    vessel_id = db.Column(
        db.Integer, db.ForeignKey("vessels.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    customer_wo_number = db.Column(db.String(100), nullable=True)
    customer_wo_date = db.Column(db.Date, nullable=True)
    shipyard_wo_number = db.Column(db.String(100), nullable=True, index=True)
    shipyard_wo_date = db.Column(db.Date, nullable=True)
    wo_document_delivery_date = db.Column(db.Date, nullable=True)
    wo_document_status = db.Column(db.Boolean, nullable=False, default=False)

    planned_start_date = db.Column(db.Date, nullable=True)
    target_close_date = db.Column(db.Date, nullable=True)
    actual_start_date = db.Column(db.Date, nullable=True)
    actual_close_date = db.Column(db.Date, nullable=True)

    user_id = db.Column(db.String(64), nullable=True, comment="Identity provider subject")

    vessel = db.relationship("Vessel", back_populates="work_orders")
    work_details = db.relationship("WorkDetails", back_populates="work_order", lazy="dynamic")
    permits = db.relationship("PermitToWork", back_populates="work_order", lazy="dynamic")

    def refresh_document_status(self):
        self.wo_document_status = derive_wo_document_status(
            {name: getattr(self, name) for name in WO_DOCUMENT_FIELDS}
        )

    def to_dict(self):
        return {
            "id": self.id,
            "vessel_id": self.vessel_id,
            "vessel": self.vessel.to_summary() if self.vessel is not None else None,
            "customer_wo_number": self.customer_wo_number,
            "customer_wo_date": iso(self.customer_wo_date),
            "shipyard_wo_number": self.shipyard_wo_number,
            "shipyard_wo_date": iso(self.shipyard_wo_date),
            "wo_document_delivery_date": iso(self.wo_document_delivery_date),
            "wo_document_status": bool(self.wo_document_status),
            "planned_start_date": iso(self.planned_start_date),
            "target_close_date": iso(self.target_close_date),
            "actual_start_date": iso(self.actual_start_date),
            "actual_close_date": iso(self.actual_close_date),
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<WorkOrder {self.id}: {self.shipyard_wo_number or '-'}>"


# ═══════════════════════════════════════════════════════════════════════════
#  WORK DETAILS
# ═══════════════════════════════════════════════════════════════════════════

class WorkDetails(SoftDeleteMixin, TimestampMixin, db.Model):
    """
    A line item under a work order.

    ``is_bastp`` + ``bastp_id`` mark inclusion in a BASTP acceptance
    document; both must be set for the detail to count as grouped.
    """

    __tablename__ = "work_details"

    id = db.Column(db.Integer, primary_key=True)
    work_order_id = db.Column(
        db.Integer, db.ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    description = db.Column(db.Text, default="")
    location = db.Column(db.String(200), default="")
    quantity = db.Column(db.Float, nullable=True)
    uom = db.Column(db.String(30), default="")
    pic = db.Column(db.String(150), default="", comment="Person in charge")

    planned_start_date = db.Column(db.Date, nullable=True)
    target_close_date = db.Column(db.Date, nullable=True)
    period_close_target = db.Column(db.String(50), default="")
    actual_start_date = db.Column(db.Date, nullable=True)
    actual_close_date = db.Column(db.Date, nullable=True)

    is_bastp = db.Column(db.Boolean, nullable=False, default=False)
    bastp_id = db.Column(
        db.Integer, db.ForeignKey("bastps.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    user_id = db.Column(db.String(64), nullable=True)

    work_order = db.relationship("WorkOrder", back_populates="work_details")
    progress_reports = db.relationship("WorkProgress", back_populates="work_details", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "description": self.description,
            "location": self.location,
            "quantity": self.quantity,
            "uom": self.uom,
            "pic": self.pic,
            "planned_start_date": iso(self.planned_start_date),
            "target_close_date": iso(self.target_close_date),
            "period_close_target": self.period_close_target,
            "actual_start_date": iso(self.actual_start_date),
            "actual_close_date": iso(self.actual_close_date),
            "is_bastp": bool(self.is_bastp),
            "bastp_id": self.bastp_id,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<WorkDetails {self.id}: {(self.description or '')[:40]}>"


# ═══════════════════════════════════════════════════════════════════════════
#  WORK PROGRESS
# ═══════════════════════════════════════════════════════════════════════════

class WorkProgress(SoftDeleteMixin, TimestampMixin, db.Model):
    """
    A dated percentage-complete report.

    Normally attached to a WorkDetails; rows with only ``work_order_id`` set
    report progress for the work order as a whole.
    """

    __tablename__ = "work_progress"
    __table_args__ = (
        db.CheckConstraint(
            "work_details_id IS NOT NULL OR work_order_id IS NOT NULL",
            name="ck_work_progress_parent",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    work_details_id = db.Column(
        db.Integer, db.ForeignKey("work_details.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    work_order_id = db.Column(
        db.Integer, db.ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    progress_percentage = db.Column(db.Float, nullable=False, default=0, comment="0-100")
    report_date = db.Column(db.Date, nullable=False, index=True)
    evidence_url = db.Column(db.String(500), nullable=True)
    storage_path = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, default="")
    user_id = db.Column(db.String(64), nullable=True)

    work_details = db.relationship("WorkDetails", back_populates="progress_reports")

    def to_dict(self):
        return {
            "id": self.id,
            "work_details_id": self.work_details_id,
            "work_order_id": self.work_order_id,
            "progress_percentage": self.progress_percentage,
            "report_date": iso(self.report_date),
            "evidence_url": self.evidence_url,
            "storage_path": self.storage_path,
            "notes": self.notes,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<WorkProgress {self.id}: {self.progress_percentage}% @ {self.report_date}>"


# ═══════════════════════════════════════════════════════════════════════════
#  PERMIT TO WORK
# ═══════════════════════════════════════════════════════════════════════════

class PermitToWork(SoftDeleteMixin, TimestampMixin, db.Model):
    """Permit document for a work order; work may not proceed without one."""

    __tablename__ = "permits_to_work"

    id = db.Column(db.Integer, primary_key=True)
    work_order_id = db.Column(
        db.Integer, db.ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    is_uploaded = db.Column(db.Boolean, nullable=False, default=False)
    document_url = db.Column(db.String(500), nullable=True)
    storage_path = db.Column(db.String(500), nullable=True)
    user_id = db.Column(db.String(64), nullable=True)

    work_order = db.relationship("WorkOrder", back_populates="permits")

    def to_dict(self):
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "is_uploaded": bool(self.is_uploaded),
            "document_url": self.document_url,
            "storage_path": self.storage_path,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<PermitToWork {self.id} wo={self.work_order_id} uploaded={self.is_uploaded}>"
