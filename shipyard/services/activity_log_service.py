"""Activity log — append-only trail of writes made through the API.

Transaction policy: ``log_activity`` uses flush(), never commit(); the route
handler commits the business change and its log row together.
"""
import json
import logging

from shipyard.core.exceptions import ValidationError
from shipyard.middleware.identity import get_current_user
from shipyard.models import db
from shipyard.models.activity_log import ACTIVITY_ACTIONS, ActivityLog

logger = logging.getLogger(__name__)


def log_activity(action, table_name, record_id=None, *, old_data=None, new_data=None, description=""):
    """Append one activity row for the current user.

    Returns:
        ActivityLog instance (already flushed).
    """
    if action not in ACTIVITY_ACTIONS:
        raise ValidationError(f"Unknown activity action: {action}")

    user = get_current_user()
    entry = ActivityLog(
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_data=json.dumps(old_data, default=str) if old_data is not None else None,
        new_data=json.dumps(new_data, default=str) if new_data is not None else None,
        description=description or "",
        user_id=user.user_id,
        user_email=user.email,
    )
    db.session.add(entry)
    db.session.flush()
    logger.debug("Activity %s %s#%s by %s", action, table_name, record_id, user.buffer_key)
    return entry


def activity_query(table_name=None, record_id=None):
    """Newest-first query, optionally narrowed to one table / record."""
    q = ActivityLog.query
    if table_name:
        q = q.filter(ActivityLog.table_name == table_name)
    if record_id is not None:
        q = q.filter(ActivityLog.record_id == record_id)
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
