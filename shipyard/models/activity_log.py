"""
Shipyard Work Order Console
Activity log model.

Models:
    - ActivityLog: append-only trail of create/update/delete writes.
"""

import json

from shipyard.models import db
from shipyard.models.base import iso, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

ACTIVITY_ACTIONS = {"create", "update", "delete"}


class ActivityLog(db.Model):
    """
    One row per write performed through the API.

    ``old_data`` / ``new_data`` hold JSON snapshots of the row before and
    after the change.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_record", "table_name", "record_id"),
        db.Index("idx_activity_ts", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(20), nullable=False)
    table_name = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.Integer, nullable=True)
    old_data = db.Column(db.Text, nullable=True)
    new_data = db.Column(db.Text, nullable=True)
    description = db.Column(db.String(500), default="")
    user_id = db.Column(db.String(64), nullable=True)
    user_email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    @staticmethod
    def _load(raw):
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return None

    def to_dict(self):
        return {
            "id": self.id,
            "action": self.action,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "old_data": self._load(self.old_data),
            "new_data": self._load(self.new_data),
            "description": self.description,
            "user_id": self.user_id,
            "user_email": self.user_email,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.table_name}#{self.record_id}>"
