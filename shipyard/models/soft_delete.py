"""
Soft delete for console records.

A row with ``deleted_at`` set is hidden from every read; nothing is
physically removed, so the activity log can still reference it.

    wo.soft_delete()
    WorkOrder.query_active().all()
    q.filter(WorkDetails.active_criterion())
"""

from datetime import datetime, timezone

from shipyard.models import db


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None, index=True)

    def soft_delete(self, at=None):
        self.deleted_at = at or datetime.now(timezone.utc)

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    @classmethod
    def active_criterion(cls):
        return cls.deleted_at.is_(None)

    @classmethod
    def query_active(cls):
        return cls.query.filter(cls.active_criterion())
