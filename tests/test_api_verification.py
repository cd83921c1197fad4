"""
Shipyard Work Order Console
Tests — work verification API + pipeline view.

Covers:
    - Pipeline of completed work details (pending / verified)
    - Verify: 100% rule, duplicate guard, authorship
    - Withdraw (soft delete)
    - Search + vessel filter
"""

import pytest


def _completed_details(client, vessel_name="MV Sentosa", description="Hull blasting", pct=100):
    vessel = client.post("/api/v1/vessels", json={"name": vessel_name, "company": "Pelni"}).get_json()
    wo = client.post("/api/v1/work-orders", json={
        "vessel_id": vessel["id"], "shipyard_wo_number": f"SY-{vessel['id']}",
    }).get_json()
    details = client.post(f"/api/v1/work-orders/{wo['id']}/work-details",
                          json={"description": description}).get_json()
    res = client.post(f"/api/v1/work-details/{details['id']}/progress",
                      json={"progress_percentage": pct, "report_date": "2026-03-01"})
    assert res.status_code == 201
    return vessel, wo, details


def _pipeline(client, query=""):
    res = client.get(f"/api/v1/verification{query}")
    assert res.status_code == 200
    return res.get_json()


class TestPipeline:
    def test_empty(self, client):
        body = _pipeline(client)
        assert body["stats"] == {"total_completed": 0, "pending": 0, "verified": 0}
        assert body["pending"] == {"no_bastp": [], "with_bastp": []}
        assert body["request_id"] == 1

    def test_only_completed_details_listed(self, client):
        _completed_details(client, "MV Sentosa")
        _completed_details(client, "KM Bahari", pct=99)
        body = _pipeline(client)
        assert body["stats"]["total_completed"] == 1
        item = body["pending"]["no_bastp"][0]
        assert item["vessel"]["name"] == "MV Sentosa"
        assert item["work_order"]["shipyard_wo_number"].startswith("SY-")

    def test_search_and_vessel_filter(self, client):
        sentosa, _, _ = _completed_details(client, "MV Sentosa", "Hull blasting")
        _completed_details(client, "KM Bahari", "Deck painting")

        assert _pipeline(client, "?search=DECK")["stats"]["pending"] == 1
        assert _pipeline(client, "?search=bahari")["stats"]["pending"] == 1
        filtered = _pipeline(client, f"?vessel_id={sentosa['id']}")
        assert filtered["stats"]["pending"] == 1
        assert filtered["stats"]["total_completed"] == 2
        assert _pipeline(client, "?vessel_id=0")["stats"]["pending"] == 2


class TestVerify:
    def test_below_complete_rejected(self, client, auth_headers):
        _, _, details = _completed_details(client, pct=50)
        res = client.post(f"/api/v1/work-details/{details['id']}/verification", json={}, headers=auth_headers)
        assert res.status_code == 422
        assert res.get_json()["details"]["current_progress"] == 50

    def test_verify_stamps_current_user(self, client, auth_headers):
        _, _, details = _completed_details(client)
        res = client.post(f"/api/v1/work-details/{details['id']}/verification",
                          json={"notes": "Inspected by class", "verification_date": "2026-03-02"},
                          headers=auth_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["verified_by"] == "inspector-1"
        assert body["verified_by_email"] == "inspector@yard.test"
        assert body["verification_date"] == "2026-03-02"

        pipeline = _pipeline(client)
        assert pipeline["stats"] == {"total_completed": 1, "pending": 0, "verified": 1}
        verified = pipeline["verified"]["no_bastp"][0]
        assert verified["id"] == details["id"]
        assert verified["verification"]["notes"] == "Inspected by class"

    def test_duplicate_rejected(self, client, auth_headers):
        _, _, details = _completed_details(client)
        url = f"/api/v1/work-details/{details['id']}/verification"
        assert client.post(url, json={}, headers=auth_headers).status_code == 201
        res = client.post(url, json={}, headers=auth_headers)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_unknown_details(self, client):
        assert client.post("/api/v1/work-details/999/verification", json={}).status_code == 404

    @pytest.mark.parametrize("bad_date", ["tomorrow", "2026-13-45"])
    def test_bad_date(self, client, bad_date):
        _, _, details = _completed_details(client)
        res = client.post(f"/api/v1/work-details/{details['id']}/verification",
                          json={"verification_date": bad_date})
        assert res.status_code == 422


class TestWithdraw:
    def test_withdraw_returns_details_to_pending(self, client, auth_headers):
        _, _, details = _completed_details(client)
        verification = client.post(f"/api/v1/work-details/{details['id']}/verification",
                                   json={}, headers=auth_headers).get_json()

        res = client.delete(f"/api/v1/verifications/{verification['id']}")
        assert res.status_code == 200
        assert _pipeline(client)["stats"] == {"total_completed": 1, "pending": 1, "verified": 0}
        assert client.delete(f"/api/v1/verifications/{verification['id']}").status_code == 404

    def test_can_verify_again_after_withdraw(self, client, auth_headers):
        _, _, details = _completed_details(client)
        url = f"/api/v1/work-details/{details['id']}/verification"
        first = client.post(url, json={}, headers=auth_headers).get_json()
        client.delete(f"/api/v1/verifications/{first['id']}")
        assert client.post(url, json={}, headers=auth_headers).status_code == 201
