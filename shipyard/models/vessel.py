"""
Shipyard Work Order Console
Vessel domain model.

Architecture chain: Vessel → WorkOrder → WorkDetails → WorkProgress
"""

from shipyard.models import db
from shipyard.models.base import TimestampMixin, iso
from shipyard.models.soft_delete import SoftDeleteMixin


class Vessel(SoftDeleteMixin, TimestampMixin, db.Model):
    """A ship docked at the yard; owns many work orders."""

    __tablename__ = "vessels"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(100), default="")
    company = db.Column(db.String(200), default="")

    work_orders = db.relationship("WorkOrder", back_populates="vessel", lazy="dynamic")

    def to_summary(self):
        """Embedded form used inside work order payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "company": self.company,
        }

    def to_dict(self):
        data = self.to_summary()
        data.update({
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "deleted_at": iso(self.deleted_at),
        })
        return data

    def __repr__(self):
        return f"<Vessel {self.id}: {self.name}>"
