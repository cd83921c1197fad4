"""
Shipyard Work Order Console
Material control models.

Models:
    - MaterialList: catalogue of materials the yard issues
    - MaterialControl: quantity of one material used on a BASTP work detail
"""

from shipyard.models import db
from shipyard.models.base import TimestampMixin, iso
from shipyard.models.soft_delete import SoftDeleteMixin


class MaterialList(SoftDeleteMixin, TimestampMixin, db.Model):
    __tablename__ = "material_list"

    id = db.Column(db.Integer, primary_key=True)
    material = db.Column(db.String(200), nullable=False)
    specification = db.Column(db.String(300), default="")
    category = db.Column(db.String(100), default="", index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "material": self.material,
            "specification": self.specification,
            "category": self.category,
            "created_at": iso(self.created_at),
            "deleted_at": iso(self.deleted_at),
        }

    def __repr__(self):
        return f"<MaterialList {self.id}: {self.material}>"


class MaterialControl(SoftDeleteMixin, TimestampMixin, db.Model):
    """Material consumed by a work detail, recorded against its BASTP."""

    __tablename__ = "material_control"

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(
        db.Integer, db.ForeignKey("material_list.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    bastp_id = db.Column(
        db.Integer, db.ForeignKey("bastps.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    work_details_id = db.Column(
        db.Integer, db.ForeignKey("work_details.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    size = db.Column(db.String(100), default="")
    amount = db.Column(db.Float, nullable=False)
    uom = db.Column(db.String(30), default="")
    user_id = db.Column(db.String(64), nullable=True)

    material = db.relationship("MaterialList")

    def to_dict(self):
        return {
            "id": self.id,
            "material_id": self.material_id,
            "material": self.material.to_dict() if self.material is not None else None,
            "bastp_id": self.bastp_id,
            "work_details_id": self.work_details_id,
            "size": self.size,
            "amount": self.amount,
            "uom": self.uom,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self):
        return f"<MaterialControl {self.id}: material={self.material_id} x{self.amount}>"
