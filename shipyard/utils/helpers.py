"""Lookup, date and commit helpers shared by blueprints and services."""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from shipyard.core.exceptions import NotFoundError, ValidationError
from shipyard.models import db
from shipyard.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ISO first, then the day-first form printed on yard paperwork
DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y")


def get_active_or_404(model, pk, label=None):
    """Return the row with primary key ``pk`` unless it is missing or soft-deleted.

    Raises:
        NotFoundError: carrying ``label`` (the model name by default).
    """
    obj = db.session.get(model, pk)
    if obj is None or getattr(obj, "deleted_at", None) is not None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


def _coerce_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def parse_date_input(value, field):
    """Parse an optional date field from a request.

    ``None`` and ``""`` clear the field. Anything else must parse, so a typo
    is reported instead of silently wiping the stored date.
    """
    if value in (None, ""):
        return None
    parsed = _coerce_date(value)
    if parsed is None:
        raise ValidationError(
            f"Invalid date for {field}. Use YYYY-MM-DD or DD.MM.YYYY.",
            details={field: value},
        )
    return parsed


def db_commit_or_error():
    """Commit the session; on failure roll back and return an ``api_error`` tuple.

        err = db_commit_or_error()
        if err:
            return err
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Commit rejected by constraint: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Commit failed")
        return api_error(E.DATABASE, "Database error")
    return None


def text_input(value, field):
    """Stripped text for a free-text field; ``None`` gives ``""``.

    Numbers are taken as their text (a BASTP number may arrive as ``42``);
    any other JSON type raises ValidationError.
    """
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(f"{field} must be text", details={field: value})
    return str(value).strip()
