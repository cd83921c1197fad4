"""
Dashboard & vessel views.

Each view follows the same cycle:
  1. take a request id from the caller's snapshot buffer
  2. fetch a flat snapshot (all-or-nothing, dashboard is time-bounded)
  3. derive the view with the rollup engine
  4. commit the payload unless a newer request has superseded it

A failed fetch is recorded against the buffer and re-raised; the app-level
FetchError handler answers 503/504 with the last good payload attached.
"""

import logging
from datetime import datetime, timezone
from urllib.parse import urlencode

from flask import current_app

from shipyard.core.exceptions import FetchError
from shipyard.middleware.identity import get_current_user
from shipyard.models.vessel import Vessel
from shipyard.services import fetcher
from shipyard.services import rollup_engine as engine
from shipyard.services.snapshot_store import get_snapshot_store
from shipyard.utils.helpers import get_active_or_404

logger = logging.getLogger(__name__)


def _now(now):
    return now or datetime.now(timezone.utc)


def buffer_name(view, **inputs):
    """Buffer key for ``view`` under one set of inputs.

    Equal inputs share a buffer; a different vessel, search, sort or filter
    never sees another query's payload.
    """
    query = urlencode(sorted((k, v) for k, v in inputs.items() if v not in (None, "")))
    return f"{view}?{query}" if query else view


def normalise_search(search):
    return engine.fold_text((search or "").strip())


def refresh_view(view, build, inputs=None, timeout_s=None):
    """Run one fetch → build → commit cycle against the caller's buffer.

    ``view`` picks what is fetched and ``inputs`` narrow the buffer. A
    response superseded by a newer request for the same inputs is marked
    stale; it carries the newest committed payload, or its own when the newer
    request has not landed yet.
    """
    store = get_snapshot_store()
    user_key = get_current_user().buffer_key
    name = buffer_name(view, **(inputs or {}))
    seq = store.begin(user_key, name)

    try:
        snapshot = fetcher.fetch_snapshot(view, timeout_s=timeout_s)
    except FetchError as exc:
        store.fail(user_key, name, seq, str(exc))
        exc.snapshot = store.get(user_key, name).payload
        raise

    payload = build(snapshot)
    request_id, stale = seq, False
    if not store.commit(user_key, name, seq, payload):
        stale = True
        buf = store.get(user_key, name)
        if buf.payload is not None and buf.seq > seq:
            payload, request_id = buf.payload, buf.seq

    result = dict(payload)
    result.update({"request_id": request_id, "stale": stale, "error": None})
    return result


def get_dashboard(now=None):
    """Stats + prioritised alerts across every live work order."""
    now = _now(now)
    upcoming = current_app.config.get("UPCOMING_DEADLINE_DAYS", engine.DEFAULT_UPCOMING_DAYS)

    def build(snapshot):
        return engine.build_dashboard(snapshot, now, upcoming_days=upcoming).to_dict()

    return refresh_view(
        "dashboard", build,
        timeout_s=current_app.config.get("DASHBOARD_FETCH_TIMEOUT_S"),
    )


def get_vessel_summaries(search="", sort="name", direction="asc", now=None):
    """Per-vessel work-order counts, searchable and sortable."""
    now = _now(now)
    engine.check_sort(sort, direction, engine.VESSEL_SORT_KEYS)

    def build(snapshot):
        rollups = engine.rollup_work_orders(snapshot, now)
        summaries = engine.build_vessel_summaries(rollups, now)
        summaries = engine.filter_vessel_summaries(summaries, search)
        summaries = engine.sort_vessel_summaries(summaries, sort, direction)
        return {"items": [s.to_dict() for s in summaries], "total": len(summaries)}

    return refresh_view("vessels", build, inputs={
        "search": normalise_search(search), "sort": sort, "direction": direction,
    })


def get_vessel_work_orders(vessel_id, search="", sort="shipyard_wo_date", direction="desc", now=None):
    """One vessel's work orders with resolved progress and status."""
    now = _now(now)
    vessel = get_active_or_404(Vessel, vessel_id)
    engine.check_sort(sort, direction, engine.WORK_ORDER_SORT_KEYS)

    def build(snapshot):
        rows = engine.build_work_order_rows(snapshot, vessel.id, now, search, sort, direction)
        return {
            "vessel": vessel.to_summary(),
            "items": [r.to_dict(now) for r in rows],
            "total": len(rows),
        }

    return refresh_view("vessel_work_orders", build, inputs={
        "vessel_id": vessel.id, "search": normalise_search(search), "sort": sort, "direction": direction,
    })
