"""
Snapshot fetcher — loads the flat, soft-delete-filtered rows a view needs.

Each part is a plain query → ``to_dict()`` → ``Record.from_dict()`` pass, so
the rollup engine only ever sees typed records. Parts are fetched back to
back inside the request's session and joined all-or-nothing: any database or
record-shape failure aborts the whole fetch with ``FetchError``. An optional
wall-clock bound turns a slow fetch into ``FetchTimeoutError``: the deadline is
checked after each part, and on PostgreSQL every statement is also capped with
``statement_timeout`` so a hung query is cancelled by the server.
"""

import logging
import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError

from shipyard.core.exceptions import FetchError, FetchTimeoutError
from shipyard.models import db
from shipyard.models.bastp import BASTP, WorkVerification
from shipyard.models.vessel import Vessel
from shipyard.models.work_order import PermitToWork, WorkDetails, WorkOrder, WorkProgress
from shipyard.services.records import (
    BastpRecord, PermitRecord, ProgressRecord, RecordError, VerificationRecord,
    VesselRecord, WorkDetailsRecord, WorkOrderRecord,
)
from shipyard.services.rollup_engine import RollupSnapshot

logger = logging.getLogger(__name__)

# SQLSTATE for a statement cancelled by statement_timeout
QUERY_CANCELED = "57014"

VIEW_PARTS = {
    "dashboard": ("work_orders", "work_details", "progress", "permits"),
    "vessels": ("vessels", "work_orders", "work_details", "progress"),
    "vessel_work_orders": ("vessels", "work_orders", "work_details", "progress"),
    "verification": ("vessels", "work_orders", "work_details", "progress", "bastps", "verifications"),
}


# ── Parts ────────────────────────────────────────────────────────────────────

def fetch_vessels():
    rows = Vessel.query_active().order_by(Vessel.id).all()
    return [VesselRecord.from_dict(v.to_summary()) for v in rows]


def fetch_work_orders():
    rows = WorkOrder.query_active().order_by(WorkOrder.id).all()
    records = []
    for wo in rows:
        data = wo.to_dict()
        if wo.vessel is not None and wo.vessel.is_deleted:
            data["vessel"] = None
            data["vessel_id"] = None
        records.append(WorkOrderRecord.from_dict(data))
    return records


def fetch_work_details():
    rows = (
        WorkDetails.query_active()
        .join(WorkOrder, WorkDetails.work_order_id == WorkOrder.id)
        .filter(WorkOrder.active_criterion())
        .order_by(WorkDetails.id)
        .all()
    )
    return [WorkDetailsRecord.from_dict(d.to_dict()) for d in rows]


def fetch_progress():
    """Progress rows whose parent detail (or, for direct rows, work order) is live."""
    detail_rows = (
        WorkProgress.query_active()
        .join(WorkDetails, WorkProgress.work_details_id == WorkDetails.id)
        .join(WorkOrder, WorkDetails.work_order_id == WorkOrder.id)
        .filter(WorkDetails.active_criterion(), WorkOrder.active_criterion())
        .all()
    )
    direct_rows = (
        WorkProgress.query_active()
        .filter(WorkProgress.work_details_id.is_(None))
        .join(WorkOrder, WorkProgress.work_order_id == WorkOrder.id)
        .filter(WorkOrder.active_criterion())
        .all()
    )
    return [ProgressRecord.from_dict(p.to_dict()) for p in detail_rows + direct_rows]


def fetch_permits():
    rows = (
        PermitToWork.query_active()
        .join(WorkOrder, PermitToWork.work_order_id == WorkOrder.id)
        .filter(WorkOrder.active_criterion())
        .all()
    )
    return [PermitRecord.from_dict(p.to_dict()) for p in rows]


def fetch_bastps():
    return [BastpRecord.from_dict(b.to_dict()) for b in BASTP.query_active().all()]


def fetch_verifications():
    rows = WorkVerification.query_active().order_by(WorkVerification.id).all()
    return [VerificationRecord.from_dict(v.to_dict()) for v in rows]


# ── Join ─────────────────────────────────────────────────────────────────────

def _cap_statements(timeout_s):
    """Limit each statement of this transaction to ``timeout_s`` on PostgreSQL."""
    if timeout_s is None or db.session.get_bind().dialect.name != "postgresql":
        return
    ms = max(int(timeout_s * 1000), 1)
    db.session.execute(db.text(f"SET LOCAL statement_timeout = {ms}"))


def _cancelled(exc):
    return isinstance(exc, OperationalError) and getattr(exc.orig, "sqlstate", None) == QUERY_CANCELED


def fetch_snapshot(view: str, timeout_s: float | None = None) -> RollupSnapshot:
    """
    Fetch every part ``view`` needs into one RollupSnapshot.

    Raises:
        FetchTimeoutError: ``timeout_s`` elapsed before all parts arrived.
        FetchError: any part failed; no partial snapshot is returned.
    """
    fetchers = {
        "vessels": fetch_vessels,
        "work_orders": fetch_work_orders,
        "work_details": fetch_work_details,
        "progress": fetch_progress,
        "permits": fetch_permits,
        "bastps": fetch_bastps,
        "verifications": fetch_verifications,
    }
    deadline = time.monotonic() + timeout_s if timeout_s is not None else None

    parts = {}
    try:
        _cap_statements(timeout_s)
    except SQLAlchemyError as exc:
        logger.exception("Could not bound fetch: view=%s", view, extra={"view": view})
        raise FetchError(view) from exc

    for name in VIEW_PARTS[view]:
        try:
            parts[name] = fetchers[name]()
        except SQLAlchemyError as exc:
            if _cancelled(exc):
                logger.warning("Statement cancelled after %ss: view=%s part=%s", timeout_s, view, name,
                               extra={"view": view})
                raise FetchTimeoutError(view, timeout_s) from exc
            logger.exception("Fetch failed: view=%s part=%s", view, name, extra={"view": view})
            raise FetchError(view) from exc
        except RecordError as exc:
            logger.error("Malformed %s row in view=%s: %s", name, view, exc, extra={"view": view})
            raise FetchError(view) from exc
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Fetch timed out after %ss: view=%s part=%s", timeout_s, view, name,
                           extra={"view": view})
            raise FetchTimeoutError(view, timeout_s)

    logger.debug("Fetched view=%s %s", view,
                 ", ".join(f"{k}={len(v)}" for k, v in parts.items()), extra={"view": view})
    return RollupSnapshot(**parts)
