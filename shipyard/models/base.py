"""
TimestampMixin — created_at / updated_at columns shared by domain tables.

Also hosts the small serialisation helpers every ``to_dict`` uses so date
columns render the same way across the API.
"""

from datetime import datetime, timezone

from shipyard.models import db


def utcnow():
    return datetime.now(timezone.utc)


def iso(value):
    """ISO-8601 string for a date/datetime column, None when unset."""
    return value.isoformat() if value else None


class TimestampMixin:
    """Server-assigned creation and modification timestamps."""

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
