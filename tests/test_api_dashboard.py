"""
Shipyard Work Order Console
Tests — dashboard & vessel rollup API.

Covers:
    - Dashboard stats + alerts over live data
    - Progress report moving a work order to completed
    - Request ids, per-user buffers
    - Fetch failure (503) / timeout (504) keeping the last good snapshot
    - Vessel summaries: search, sort, deleted vessels
    - Per-vessel work order listing
"""

import io
from datetime import date, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from shipyard.services import fetcher
from shipyard.services.dashboard_service import buffer_name
from shipyard.services.snapshot_store import get_snapshot_store


def _day(offset):
    return (date.today() + timedelta(days=offset)).isoformat()


def _create_vessel(client, name="MV Sentosa", **kw):
    payload = {"name": name, "type": "Tanker", "company": "Pelni"}
    payload.update(kw)
    res = client.post("/api/v1/vessels", json=payload)
    assert res.status_code == 201
    return res.get_json()


def _create_work_order(client, vessel_id, **kw):
    payload = {"vessel_id": vessel_id}
    payload.update(kw)
    res = client.post("/api/v1/work-orders", json=payload)
    assert res.status_code == 201
    return res.get_json()


def _create_details(client, wo_id, description="Hull blasting", **kw):
    payload = {"description": description}
    payload.update(kw)
    res = client.post(f"/api/v1/work-orders/{wo_id}/work-details", json=payload)
    assert res.status_code == 201
    return res.get_json()


def _report(client, details_id, pct, report_date=None):
    res = client.post(f"/api/v1/work-details/{details_id}/progress", json={
        "progress_percentage": pct,
        "report_date": report_date or _day(0),
    })
    assert res.status_code == 201
    return res.get_json()


def _upload_permit(client, wo_id):
    res = client.post(
        f"/api/v1/work-orders/{wo_id}/permits",
        data={"file": (io.BytesIO(b"%PDF-1.4 permit"), "permit.pdf")},
        content_type="multipart/form-data",
    )
    assert res.status_code == 201
    return res.get_json()


def _alert_types(body, wo_id=None):
    return [a["type"] for a in body["alerts"] if wo_id is None or a["id"] == wo_id]


# ═════════════════════════════════════════════════════════════════════════════
# DASHBOARD
# ═════════════════════════════════════════════════════════════════════════════

class TestDashboard:
    def test_empty(self, client):
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 200
        body = res.get_json()
        assert body["stats"]["total_work_orders"] == 0
        assert body["alerts"] == []
        assert body["request_id"] == 1
        assert body["stale"] is False
        assert body["error"] is None

    def test_progress_to_full_completes_work_order(self, client):
        vessel = _create_vessel(client)
        wo = _create_work_order(client, vessel["id"], target_close_date=_day(-2))
        _upload_permit(client, wo["id"])
        details = _create_details(client, wo["id"])
        _report(client, details["id"], 50, _day(-1))

        body = client.get("/api/v1/dashboard").get_json()
        assert body["stats"]["in_progress"] == 1
        assert body["stats"]["overdue"] == 1
        assert _alert_types(body) == ["overdue"]

        _report(client, details["id"], 100, _day(0))

        body = client.get("/api/v1/dashboard").get_json()
        assert body["stats"]["completed"] == 1
        assert body["stats"]["in_progress"] == 0
        assert body["alerts"] == []

    def test_missing_permit_and_upcoming_deadline(self, client):
        vessel = _create_vessel(client)
        wo = _create_work_order(client, vessel["id"], target_close_date=_day(3))

        body = client.get("/api/v1/dashboard").get_json()
        assert _alert_types(body, wo["id"]) == ["missing_permit", "upcoming_deadline"]
        assert body["alerts"][0]["priority"] == "high"
        assert body["alerts"][0]["vessel_name"] == "MV Sentosa"
        assert body["stats"]["missing_permits"] == 1
        assert body["stats"]["upcoming_deadlines"] == 1
        assert body["stats"]["planned"] == 1

    def test_ready_to_start(self, client):
        vessel = _create_vessel(client)
        wo = _create_work_order(client, vessel["id"], planned_start_date=_day(-1))
        _upload_permit(client, wo["id"])

        body = client.get("/api/v1/dashboard").get_json()
        assert body["stats"]["ready_to_start"] == 1
        assert _alert_types(body) == ["ready_to_start"]
        assert body["stats"]["uploaded_permits"] == 1

    def test_deleted_work_order_excluded(self, client):
        vessel = _create_vessel(client)
        _create_work_order(client, vessel["id"])
        doomed = _create_work_order(client, vessel["id"])
        assert client.delete(f"/api/v1/work-orders/{doomed['id']}").status_code == 200

        body = client.get("/api/v1/dashboard").get_json()
        assert body["stats"]["total_work_orders"] == 1
        assert all(a["id"] != doomed["id"] for a in body["alerts"])

    def test_request_ids_increase(self, client):
        assert client.get("/api/v1/dashboard").get_json()["request_id"] == 1
        assert client.get("/api/v1/dashboard").get_json()["request_id"] == 2

    def test_buffers_are_per_user(self, client, auth_headers):
        client.get("/api/v1/dashboard")
        client.get("/api/v1/dashboard")
        body = client.get("/api/v1/dashboard", headers=auth_headers).get_json()
        assert body["request_id"] == 1


class TestDashboardFetchFailures:
    def test_fetch_error_keeps_last_snapshot(self, client, monkeypatch):
        vessel = _create_vessel(client)
        _create_work_order(client, vessel["id"])
        first = client.get("/api/v1/dashboard").get_json()

        def boom():
            raise OperationalError("SELECT permits", None, Exception("database is locked"))

        monkeypatch.setattr(fetcher, "fetch_permits", boom)
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 503
        body = res.get_json()
        assert body["code"] == "ERR_FETCH_FAILED"
        assert body["error"] == "Failed to load data"
        assert body["retry"] is True
        assert body["snapshot"]["stats"] == first["stats"]

        monkeypatch.undo()
        retry = client.get("/api/v1/dashboard")
        assert retry.status_code == 200
        assert retry.get_json()["request_id"] == 3

    def test_fetch_error_without_prior_snapshot(self, client, monkeypatch):
        def boom():
            raise OperationalError("SELECT permits", None, Exception("connection refused"))

        monkeypatch.setattr(fetcher, "fetch_permits", boom)
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 503
        assert res.get_json()["snapshot"] is None

    def test_timeout(self, app, client, monkeypatch):
        monkeypatch.setitem(app.config, "DASHBOARD_FETCH_TIMEOUT_S", 0)
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 504
        body = res.get_json()
        assert body["code"] == "ERR_FETCH_TIMEOUT"
        assert body["error"] == "Request timeout. Please try again."
        assert body["retry"] is True

    def test_statement_cancelled_by_server_is_timeout(self, client, monkeypatch):
        class QueryCanceled(Exception):
            sqlstate = "57014"

        def cancelled():
            raise OperationalError("SELECT work_orders", None,
                                   QueryCanceled("canceling statement due to statement timeout"))

        monkeypatch.setattr(fetcher, "fetch_work_orders", cancelled)
        res = client.get("/api/v1/dashboard")
        assert res.status_code == 504
        assert res.get_json()["code"] == "ERR_FETCH_TIMEOUT"


# ═════════════════════════════════════════════════════════════════════════════
# BUFFERS PER QUERY
# ═════════════════════════════════════════════════════════════════════════════

class TestBuffersPerQuery:
    def test_failed_listing_never_returns_another_vessels_snapshot(self, client, monkeypatch):
        alpha = _create_vessel(client, "Alpha")
        bravo = _create_vessel(client, "Bravo")
        _create_work_order(client, alpha["id"], shipyard_wo_number="A-1")
        _create_work_order(client, bravo["id"], shipyard_wo_number="B-1")
        assert client.get(f"/api/v1/vessels/{alpha['id']}/work-orders").status_code == 200

        def boom():
            raise OperationalError("SELECT progress", None, Exception("database is locked"))

        monkeypatch.setattr(fetcher, "fetch_progress", boom)
        res = client.get(f"/api/v1/vessels/{bravo['id']}/work-orders")
        assert res.status_code == 503
        assert res.get_json()["snapshot"] is None

        res = client.get(f"/api/v1/vessels/{alpha['id']}/work-orders")
        assert res.status_code == 503
        snapshot = res.get_json()["snapshot"]
        assert snapshot["vessel"]["name"] == "Alpha"
        assert [w["shipyard_wo_number"] for w in snapshot["items"]] == ["A-1"]

    def test_other_search_during_fetch_does_not_replace_results(self, client, monkeypatch):
        _create_vessel(client, "Alpha")
        _create_vessel(client, "Bravo")
        original = fetcher.fetch_snapshot
        nested = []

        def fetch_with_interleaved_request(view, timeout_s=None):
            snapshot = original(view, timeout_s=timeout_s)
            if not nested:
                nested.append(client.get("/api/v1/dashboard/vessels?search=bravo").get_json())
            return snapshot

        monkeypatch.setattr(fetcher, "fetch_snapshot", fetch_with_interleaved_request)
        body = client.get("/api/v1/dashboard/vessels?search=alpha").get_json()
        assert [v["name"] for v in body["items"]] == ["Alpha"]
        assert body["stale"] is False
        assert [v["name"] for v in nested[0]["items"]] == ["Bravo"]

    def test_same_query_superseded_is_stale_with_newest_payload(self, client, monkeypatch):
        vessel = _create_vessel(client, "Alpha")
        original = fetcher.fetch_snapshot
        nested = []

        def fetch_with_interleaved_request(view, timeout_s=None):
            snapshot = original(view, timeout_s=timeout_s)
            if not nested:
                _create_work_order(client, vessel["id"])
                nested.append(client.get("/api/v1/dashboard/vessels?search=ALPHA ").get_json())
            return snapshot

        monkeypatch.setattr(fetcher, "fetch_snapshot", fetch_with_interleaved_request)
        body = client.get("/api/v1/dashboard/vessels?search=alpha").get_json()
        assert nested[0]["request_id"] == 2
        assert nested[0]["stale"] is False
        assert body["stale"] is True
        assert body["request_id"] == 2
        assert body["items"][0]["total_work_orders"] == 1

    def test_superseded_before_newer_lands_keeps_own_payload(self, app, client, monkeypatch):
        _create_vessel(client, "Alpha")
        original = fetcher.fetch_snapshot

        def fetch_then_newer_request_starts(view, timeout_s=None):
            snapshot = original(view, timeout_s=timeout_s)
            get_snapshot_store().begin("anonymous", "vessels?direction=asc&search=alpha&sort=name")
            return snapshot

        monkeypatch.setattr(fetcher, "fetch_snapshot", fetch_then_newer_request_starts)
        body = client.get("/api/v1/dashboard/vessels?search=alpha").get_json()
        assert body["stale"] is True
        assert body["request_id"] == 1
        assert [v["name"] for v in body["items"]] == ["Alpha"]

    def test_buffer_name_ignores_empty_inputs(self):
        assert buffer_name("dashboard") == "dashboard"
        assert buffer_name("vessels", search="", sort="name", direction="asc") == \
            "vessels?direction=asc&sort=name"
        assert buffer_name("verification", search="a&b", vessel_id=None) == "verification?search=a%26b"


# ═════════════════════════════════════════════════════════════════════════════
# VESSEL SUMMARIES
# ═════════════════════════════════════════════════════════════════════════════

class TestVesselSummaries:
    @pytest.fixture()
    def fleet(self, client):
        bravo = _create_vessel(client, "Bravo", company="Pelni")
        alpha = _create_vessel(client, "alpha", company="Meratus")
        _create_work_order(client, bravo["id"], actual_start_date=_day(-3), target_close_date=_day(-1))
        _create_work_order(client, bravo["id"], actual_close_date=_day(-1))
        _create_work_order(client, alpha["id"])
        return {"bravo": bravo, "alpha": alpha}

    def test_counts(self, client, fleet):
        body = client.get("/api/v1/dashboard/vessels").get_json()
        assert body["total"] == 2
        by_name = {v["name"]: v for v in body["items"]}
        assert by_name["Bravo"]["total_work_orders"] == 2
        assert by_name["Bravo"]["active"] == 1
        assert by_name["Bravo"]["completed"] == 1
        assert by_name["Bravo"]["overdue"] == 1
        assert by_name["Bravo"]["pending_documents"] == 2

    def test_default_sort_is_name_case_insensitive(self, client, fleet):
        body = client.get("/api/v1/dashboard/vessels").get_json()
        assert [v["name"] for v in body["items"]] == ["alpha", "Bravo"]

    def test_sort_by_total_desc(self, client, fleet):
        body = client.get("/api/v1/dashboard/vessels?sort=total&direction=desc").get_json()
        assert body["items"][0]["name"] == "Bravo"

    def test_search(self, client, fleet):
        body = client.get("/api/v1/dashboard/vessels?search=MERATUS").get_json()
        assert [v["name"] for v in body["items"]] == ["alpha"]

    def test_unknown_sort_key(self, client, fleet):
        res = client.get("/api/v1/dashboard/vessels?sort=tonnage")
        assert res.status_code == 422
        assert "tonnage" in res.get_json()["error"]

    def test_deleted_vessel_drops_out(self, client, fleet):
        assert client.delete(f"/api/v1/vessels/{fleet['bravo']['id']}").status_code == 200
        body = client.get("/api/v1/dashboard/vessels").get_json()
        assert [v["name"] for v in body["items"]] == ["alpha"]

        dashboard = client.get("/api/v1/dashboard").get_json()
        assert dashboard["stats"]["total_work_orders"] == 3


class TestVesselWorkOrders:
    def test_listing_with_progress(self, client):
        vessel = _create_vessel(client)
        other = _create_vessel(client, "Other")
        older = _create_work_order(client, vessel["id"], shipyard_wo_number="SY-001", shipyard_wo_date=_day(-10))
        newer = _create_work_order(client, vessel["id"], shipyard_wo_number="SY-002", shipyard_wo_date=_day(-2))
        undated = _create_work_order(client, vessel["id"])
        _create_work_order(client, other["id"], shipyard_wo_number="SY-999")
        details = _create_details(client, older["id"], pic="Budi")
        _report(client, details["id"], 40)

        body = client.get(f"/api/v1/vessels/{vessel['id']}/work-orders").get_json()
        assert body["vessel"]["name"] == "MV Sentosa"
        assert [w["id"] for w in body["items"]] == [newer["id"], older["id"], undated["id"]]
        row = body["items"][1]
        assert row["overall_progress"] == 40
        assert row["status"] == "in_progress"
        assert row["work_details"][0]["current_progress"] == 40

        found = client.get(f"/api/v1/vessels/{vessel['id']}/work-orders?search=budi").get_json()
        assert [w["id"] for w in found["items"]] == [older["id"]]

        by_number = client.get(
            f"/api/v1/vessels/{vessel['id']}/work-orders?sort=shipyard_wo_number&direction=asc"
        ).get_json()
        assert [w["shipyard_wo_number"] for w in by_number["items"]] == ["SY-001", "SY-002", None]

    def test_unknown_vessel(self, client):
        assert client.get("/api/v1/vessels/999/work-orders").status_code == 404

    def test_bad_direction(self, client):
        vessel = _create_vessel(client)
        res = client.get(f"/api/v1/vessels/{vessel['id']}/work-orders?direction=up")
        assert res.status_code == 422
