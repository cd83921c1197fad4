"""
Tests — status rollup engine (pure functions, fixed clock).

Covers:
    - Latest-progress resolution + tie-break
    - Work-order progress (direct reports vs detail mean)
    - Status classification
    - Alert generation, day counts, priority ordering
    - Dashboard statistics
    - Vessel summaries: grouping, search, sort
    - Per-vessel work order rows
    - Verification pipeline: partition, BASTP grouping, filters
"""

from datetime import datetime, timedelta, timezone

import pytest

from shipyard.core.exceptions import ValidationError
from shipyard.services import rollup_engine as engine
from shipyard.services.records import (
    BastpRecord, PermitRecord, ProgressRecord, VerificationRecord, VesselRecord,
    WorkDetailsRecord, WorkOrderRecord,
)
from shipyard.services.rollup_engine import AlertType, RollupSnapshot, WorkOrderStatus

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════

def _vessel(id=1, name="MV Sentosa", type="Tanker", company="Pelni"):
    return VesselRecord(id=id, name=name, type=type, company=company)


def _wo(id, vessel=None, **kw):
    return WorkOrderRecord(id=id, vessel_id=vessel.id if vessel else None, vessel=vessel, **kw)


def _details(id, wo_id, **kw):
    return WorkDetailsRecord(id=id, work_order_id=wo_id, **kw)


def _progress(id, pct, report_date, details_id=None, wo_id=None, created_at=None):
    return ProgressRecord(
        id=id, progress_percentage=pct, report_date=report_date,
        work_details_id=details_id, work_order_id=wo_id, created_at=created_at,
    )


def _permit(id, wo_id, uploaded=True):
    return PermitRecord(id=id, work_order_id=wo_id, is_uploaded=uploaded)


def _alert_types(alerts, wo_id=None):
    return [a.type for a in alerts if wo_id is None or a.work_order_id == wo_id]


# ═════════════════════════════════════════════════════════════════════════════
# LATEST PROGRESS
# ═════════════════════════════════════════════════════════════════════════════

class TestResolveLatestProgress:
    def test_no_rows(self):
        state = engine.resolve_latest_progress([])
        assert state.current_progress == 0
        assert state.has_progress_data is False
        assert state.latest_progress_date is None
        assert state.progress_count == 0

    def test_latest_report_date_wins_regardless_of_order(self):
        rows = [
            _progress(1, 80, NOW - DAY, details_id=1),
            _progress(2, 30, NOW - 5 * DAY, details_id=1),
            _progress(3, 50, NOW - 3 * DAY, details_id=1),
        ]
        state = engine.resolve_latest_progress(rows)
        assert state.current_progress == 80
        assert state.has_progress_data is True
        assert state.latest_progress_date == NOW - DAY
        assert state.progress_count == 3

    def test_same_date_later_created_at_wins(self):
        rows = [
            _progress(5, 70, NOW, details_id=1, created_at=NOW + timedelta(hours=2)),
            _progress(6, 40, NOW, details_id=1, created_at=NOW + timedelta(hours=1)),
        ]
        assert engine.resolve_latest_progress(rows).current_progress == 70

    def test_same_date_and_created_at_higher_id_wins(self):
        rows = [
            _progress(9, 60, NOW, details_id=1, created_at=NOW),
            _progress(4, 20, NOW, details_id=1, created_at=NOW),
        ]
        assert engine.resolve_latest_progress(rows).current_progress == 60

    def test_missing_created_at_sorts_first(self):
        rows = [
            _progress(10, 90, NOW, details_id=1, created_at=None),
            _progress(2, 35, NOW, details_id=1, created_at=NOW),
        ]
        assert engine.resolve_latest_progress(rows).current_progress == 35

    def test_result_stays_within_bounds(self):
        rows = [_progress(i, pct, NOW - i * DAY, details_id=1) for i, pct in enumerate([0, 100, 45])]
        assert 0 <= engine.resolve_latest_progress(rows).current_progress <= 100


class TestWorkOrderProgress:
    def test_direct_rows_take_precedence(self):
        direct = [_progress(1, 40, NOW, wo_id=1)]
        details = [engine.ProgressState(current_progress=100, has_progress_data=True)]
        state = engine.resolve_work_order_progress(direct, details)
        assert state.current_progress == 40

    def test_mean_of_details_rounds_half_up(self):
        details = [
            engine.ProgressState(current_progress=50, has_progress_data=True),
            engine.ProgressState(current_progress=25, has_progress_data=True),
        ]
        assert engine.resolve_work_order_progress([], details).current_progress == 38

    def test_has_data_needs_some_detail_above_zero(self):
        details = [
            engine.ProgressState(current_progress=0, has_progress_data=True),
            engine.ProgressState(),
        ]
        state = engine.resolve_work_order_progress([], details)
        assert state.current_progress == 0
        assert state.has_progress_data is False

    def test_no_details_no_rows(self):
        state = engine.resolve_work_order_progress([], [])
        assert state.current_progress == 0
        assert state.has_progress_data is False


# ═════════════════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════════

class TestClassifyWorkOrder:
    def _state(self, pct):
        return engine.ProgressState(current_progress=pct, has_progress_data=pct > 0)

    def test_actual_close_is_completed(self):
        wo = _wo(1, actual_close_date=NOW - DAY, actual_start_date=NOW - 5 * DAY)
        assert engine.classify_work_order(wo, self._state(30), NOW) is WorkOrderStatus.COMPLETED

    def test_full_progress_is_completed(self):
        wo = _wo(1, planned_start_date=NOW - DAY)
        assert engine.classify_work_order(wo, self._state(100), NOW) is WorkOrderStatus.COMPLETED

    def test_actual_start_is_in_progress(self):
        wo = _wo(1, actual_start_date=NOW - DAY)
        assert engine.classify_work_order(wo, self._state(0), NOW) is WorkOrderStatus.IN_PROGRESS

    def test_partial_progress_is_in_progress(self):
        assert engine.classify_work_order(_wo(1), self._state(10), NOW) is WorkOrderStatus.IN_PROGRESS

    def test_planned_start_reached_is_ready(self):
        wo = _wo(1, planned_start_date=NOW)
        assert engine.classify_work_order(wo, self._state(0), NOW) is WorkOrderStatus.READY_TO_START

    def test_future_planned_start_is_planned(self):
        wo = _wo(1, planned_start_date=NOW + DAY)
        assert engine.classify_work_order(wo, self._state(0), NOW) is WorkOrderStatus.PLANNED

    def test_missing_planned_start_never_ready(self):
        assert engine.classify_work_order(_wo(1), None, NOW) is WorkOrderStatus.PLANNED

    def test_without_progress_only_dates_count(self):
        wo = _wo(1, planned_start_date=NOW - DAY)
        status = engine.classify_work_order(wo, self._state(100), NOW, use_progress=False)
        assert status is WorkOrderStatus.READY_TO_START


# ═════════════════════════════════════════════════════════════════════════════
# ALERTS & DASHBOARD
# ═════════════════════════════════════════════════════════════════════════════

class TestAlerts:
    def _alerts(self, work_orders, permits=(), details=(), progress=(), days=7):
        snapshot = RollupSnapshot(
            work_orders=list(work_orders), permits=list(permits),
            work_details=list(details), progress=list(progress),
        )
        return engine.generate_alerts(engine.rollup_work_orders(snapshot, NOW), NOW, days)

    def test_overdue_by_one_day(self):
        alerts = self._alerts([_wo(1, target_close_date=NOW - DAY)], permits=[_permit(1, 1)])
        overdue = [a for a in alerts if a.type is AlertType.OVERDUE]
        assert len(overdue) == 1
        assert overdue[0].days == 1
        assert overdue[0].priority == "high"
        assert overdue[0].message == "Work order is overdue by 1 days"

    def test_partial_days_round_up(self):
        alerts = self._alerts([_wo(1, target_close_date=NOW - timedelta(hours=30))], permits=[_permit(1, 1)])
        assert [a.days for a in alerts if a.type is AlertType.OVERDUE] == [2]

    def test_missing_permit(self):
        alerts = self._alerts([_wo(1)], permits=[_permit(1, 1, uploaded=False)])
        assert _alert_types(alerts) == [AlertType.MISSING_PERMIT]
        assert alerts[0].message == "Missing permit to work - work cannot proceed"

    def test_upcoming_deadline_window(self):
        alerts = self._alerts(
            [
                _wo(1, target_close_date=NOW + timedelta(days=2, hours=3)),
                _wo(2, target_close_date=NOW + 7 * DAY),
                _wo(3, target_close_date=NOW + 7 * DAY + timedelta(seconds=1)),
            ],
            permits=[_permit(1, 1), _permit(2, 2), _permit(3, 3)],
        )
        upcoming = {a.work_order_id: a for a in alerts if a.type is AlertType.UPCOMING_DEADLINE}
        assert set(upcoming) == {1, 2}
        assert upcoming[1].days == 3
        assert upcoming[1].message == "Target close date in 3 days"
        assert upcoming[1].priority == "medium"

    def test_window_is_configurable(self):
        alerts = self._alerts([_wo(1, target_close_date=NOW + 10 * DAY)], permits=[_permit(1, 1)], days=14)
        assert _alert_types(alerts) == [AlertType.UPCOMING_DEADLINE]

    def test_ready_to_start_needs_permit_and_no_actual_start(self):
        alerts = self._alerts(
            [
                _wo(1, planned_start_date=NOW - DAY),
                _wo(2, planned_start_date=NOW - DAY),
                _wo(3, planned_start_date=NOW - DAY, actual_start_date=NOW),
            ],
            permits=[_permit(1, 1), _permit(2, 3)],
        )
        ready = [a.work_order_id for a in alerts if a.type is AlertType.READY_TO_START]
        assert ready == [1]

    def test_completed_work_orders_raise_nothing(self):
        alerts = self._alerts([_wo(1, actual_close_date=NOW - DAY, target_close_date=NOW - 3 * DAY)])
        assert alerts == []

    def test_sorted_by_priority_and_stable(self):
        vessel = _vessel()
        alerts = self._alerts(
            [
                _wo(1, vessel, planned_start_date=NOW - DAY),            # ready (low)
                _wo(2, vessel, target_close_date=NOW + 2 * DAY),         # upcoming (medium)
                _wo(3, vessel, target_close_date=NOW - 2 * DAY),         # missing permit + overdue
            ],
            permits=[_permit(1, 1), _permit(2, 2)],
        )
        assert [a.priority for a in alerts] == ["high", "high", "medium", "low"]
        assert _alert_types(alerts)[:2] == [AlertType.MISSING_PERMIT, AlertType.OVERDUE]
        assert alerts[0].vessel_name == "MV Sentosa"

    def test_each_alert_belongs_to_a_non_completed_work_order(self):
        work_orders = [
            _wo(1, target_close_date=NOW - DAY),
            _wo(2, actual_close_date=NOW, target_close_date=NOW - DAY),
            _wo(3, planned_start_date=NOW - DAY),
        ]
        alerts = self._alerts(work_orders, permits=[_permit(1, 3)])
        assert {a.work_order_id for a in alerts} <= {1, 3}


class TestDashboard:
    def test_stats(self):
        snapshot = RollupSnapshot(
            work_orders=[
                _wo(1, actual_close_date=NOW - DAY),
                _wo(2, actual_start_date=NOW - DAY, target_close_date=NOW - DAY),
                _wo(3, planned_start_date=NOW - DAY),
                _wo(4, planned_start_date=NOW + 3 * DAY, target_close_date=NOW + 3 * DAY),
            ],
            permits=[_permit(1, 1), _permit(2, 2), _permit(3, 3), _permit(4, 4, uploaded=False)],
        )
        view = engine.build_dashboard(snapshot, NOW)
        stats = view.stats
        assert stats.total_work_orders == 4
        assert (stats.completed, stats.in_progress, stats.ready_to_start, stats.planned) == (1, 1, 1, 1)
        assert stats.overdue == 1
        assert stats.missing_permits == 1
        assert stats.upcoming_deadlines == 1
        assert stats.total_permits == 4
        assert stats.uploaded_permits == 3

        body = view.to_dict()
        assert body["stats"]["total_work_orders"] == 4
        assert body["alerts"][0]["priority"] == "high"

    def test_progress_to_full_completes_work_order(self):
        wo = _wo(1, target_close_date=NOW - DAY)
        details = _details(11, 1)
        first = _progress(1, 50, NOW - 2 * DAY, details_id=11)
        permit = _permit(1, 1)

        before = engine.build_dashboard(
            RollupSnapshot(work_orders=[wo], work_details=[details], progress=[first], permits=[permit]), NOW,
        )
        assert before.stats.in_progress == 1
        assert _alert_types(before.alerts) == [AlertType.OVERDUE]

        after = engine.build_dashboard(
            RollupSnapshot(
                work_orders=[wo], work_details=[details], permits=[permit],
                progress=[first, _progress(2, 100, NOW - DAY, details_id=11)],
            ),
            NOW,
        )
        assert after.stats.completed == 1
        assert after.stats.in_progress == 0
        assert after.alerts == []


# ═════════════════════════════════════════════════════════════════════════════
# VESSEL SUMMARIES
# ═════════════════════════════════════════════════════════════════════════════

class TestVesselSummaries:
    def _summaries(self):
        a = _vessel(1, "Bravo", company="Pelni")
        b = _vessel(2, "alpha", company="Meratus")
        c = _vessel(3, "Charlie", type=None, company=None)
        snapshot = RollupSnapshot(
            work_orders=[
                _wo(1, a, actual_start_date=NOW - DAY, target_close_date=NOW - DAY),
                _wo(2, a, actual_close_date=NOW, customer_wo_number="C", customer_wo_date=NOW,
                    shipyard_wo_number="S", shipyard_wo_date=NOW, wo_document_status=True),
                _wo(3, b, actual_start_date=NOW - DAY),
                _wo(4, c),
                _wo(5, None, actual_start_date=NOW - DAY),
            ],
        )
        return engine.build_vessel_summaries(engine.rollup_work_orders(snapshot, NOW), NOW)

    def test_grouping_and_counts(self):
        by_id = {s.id: s for s in self._summaries()}
        assert set(by_id) == {1, 2, 3}
        bravo = by_id[1]
        assert bravo.total_work_orders == 2
        assert bravo.active == 1
        assert bravo.completed == 1
        assert bravo.pending_documents == 1
        assert bravo.overdue == 1

    def test_totals_match_work_orders_with_vessels(self):
        assert sum(s.total_work_orders for s in self._summaries()) == 4

    def test_search_is_case_insensitive_and_skips_missing_fields(self):
        summaries = self._summaries()
        assert [s.name for s in engine.filter_vessel_summaries(summaries, "PELNI")] == ["Bravo"]
        assert [s.name for s in engine.filter_vessel_summaries(summaries, "tank")] == ["Bravo", "alpha"]
        assert len(engine.filter_vessel_summaries(summaries, "  ")) == 3

    def test_sort_by_name_case_folded(self):
        names = [s.name for s in engine.sort_vessel_summaries(self._summaries(), "name", "asc")]
        assert names == ["alpha", "Bravo", "Charlie"]

    def test_sort_by_total_desc(self):
        ids = [s.id for s in engine.sort_vessel_summaries(self._summaries(), "total", "desc")]
        assert ids[0] == 1

    def test_sort_by_name_ignores_accents(self):
        summaries = [
            engine.VesselSummary(id=1, name="Foxtrot", type=None, company=None),
            engine.VesselSummary(id=2, name="Émeraude", type=None, company=None),
            engine.VesselSummary(id=3, name="delta", type=None, company=None),
        ]
        names = [s.name for s in engine.sort_vessel_summaries(summaries, "name", "asc")]
        assert names == ["delta", "Émeraude", "Foxtrot"]

    def test_search_ignores_accents(self):
        summaries = [
            engine.VesselSummary(id=1, name="KM Lumière", type="Ferry", company="Société Maritime"),
            engine.VesselSummary(id=2, name="KM Nusa", type="Tug", company="Pelni"),
        ]
        assert [s.id for s in engine.filter_vessel_summaries(summaries, "LUMIERE")] == [1]
        assert [s.id for s in engine.filter_vessel_summaries(summaries, "société")] == [1]

    def test_fold_text(self):
        assert engine.fold_text("Çelik Straße") == "celik strasse"
        assert engine.fold_text(None) == ""

    def test_sort_ties_keep_input_order(self):
        summaries = self._summaries()
        ordered = engine.sort_vessel_summaries(summaries, "overdue", "asc")
        assert [s.id for s in ordered] == [2, 3, 1]

    def test_sort_is_a_permutation(self):
        summaries = self._summaries()
        for key in engine.VESSEL_SORT_KEYS:
            for direction in engine.SORT_DIRECTIONS:
                result = engine.sort_vessel_summaries(summaries, key, direction)
                assert sorted(s.id for s in result) == sorted(s.id for s in summaries)

    def test_unknown_sort_key_rejected(self):
        with pytest.raises(ValidationError):
            engine.sort_vessel_summaries(self._summaries(), "tonnage", "asc")
        with pytest.raises(ValidationError):
            engine.sort_vessel_summaries(self._summaries(), "name", "sideways")


class TestWorkOrderRows:
    def test_filter_search_and_sort(self):
        vessel = _vessel()
        other = _vessel(2, "Other")
        snapshot = RollupSnapshot(
            work_orders=[
                _wo(1, vessel, shipyard_wo_number="SY-002", shipyard_wo_date=NOW - DAY),
                _wo(2, vessel, shipyard_wo_number="SY-001", shipyard_wo_date=NOW - 2 * DAY),
                _wo(3, vessel, shipyard_wo_number=None),
                _wo(4, other, shipyard_wo_number="SY-000"),
            ],
            work_details=[_details(10, 2, pic="Budi"), _details(11, 1, pic="Sari")],
            progress=[_progress(1, 40, NOW, details_id=10)],
        )
        rows = engine.build_work_order_rows(snapshot, 1, NOW, sort="shipyard_wo_number", direction="asc")
        assert [r.work_order.id for r in rows] == [2, 1, 3]
        assert rows[0].progress.current_progress == 40
        assert rows[0].status is WorkOrderStatus.IN_PROGRESS

        found = engine.build_work_order_rows(snapshot, 1, NOW, search="budi")
        assert [r.work_order.id for r in found] == [2]

        newest_first = engine.build_work_order_rows(snapshot, 1, NOW)
        assert [r.work_order.id for r in newest_first] == [1, 2, 3]


# ═════════════════════════════════════════════════════════════════════════════
# VERIFICATION PIPELINE
# ═════════════════════════════════════════════════════════════════════════════

def _verification(id, details_id, deleted_at=None):
    return VerificationRecord(id=id, work_details_id=details_id, deleted_at=deleted_at)


class TestVerificationPipeline:
    def _snapshot(self, details, verifications=(), bastps=(), vessel=None, wo=None):
        vessel = vessel or _vessel(1, "MV Sentosa", company="Pelni")
        wo = wo or _wo(1, vessel, shipyard_wo_number="SY-100", customer_wo_number="CU-9")
        progress = [_progress(d.id, 100, NOW, details_id=d.id) for d in details]
        return RollupSnapshot(
            vessels=[vessel], work_orders=[wo], work_details=list(details), progress=progress,
            bastps=list(bastps), verifications=list(verifications),
        )

    def test_bastp_with_one_verified_detail(self):
        bastp = BastpRecord(id=7, number="B-7", date=NOW - DAY)
        details = [_details(i, 1, is_bastp=True, bastp_id=7) for i in (1, 2, 3)]
        pipeline = engine.build_verification_pipeline(
            self._snapshot(details, verifications=[_verification(1, 2)], bastps=[bastp]),
        )
        assert pipeline.total_completed == 3
        assert pipeline.pending_no_bastp == []
        assert len(pipeline.pending_with_bastp) == 1
        group = pipeline.pending_with_bastp[0]
        assert group.bastp.number == "B-7"
        assert [d.details.id for d in group.items] == [1, 3]
        assert [v.details.details.id for v in pipeline.verified_with_bastp[0].items] == [2]
        assert pipeline.pending_count == 2
        assert pipeline.verified_count == 1

    def test_incomplete_details_are_excluded(self):
        details = [_details(1, 1), _details(2, 1)]
        snapshot = self._snapshot(details)
        snapshot.progress[1] = _progress(99, 60, NOW, details_id=2)
        pipeline = engine.build_verification_pipeline(snapshot)
        assert pipeline.total_completed == 1
        assert [d.details.id for d in pipeline.pending_no_bastp] == [1]

    def test_flag_without_reference_is_not_grouped(self):
        details = [_details(1, 1, is_bastp=True, bastp_id=None), _details(2, 1, is_bastp=False, bastp_id=7)]
        pipeline = engine.build_verification_pipeline(self._snapshot(details))
        assert [d.details.id for d in pipeline.pending_no_bastp] == [1, 2]
        assert pipeline.pending_with_bastp == []

    def test_unresolved_bastp_group_pinned_first(self):
        dated = BastpRecord(id=1, number="OLD", date=NOW - 10 * DAY)
        newer = BastpRecord(id=2, number="NEW", date=NOW - DAY)
        undated = BastpRecord(id=3, number="NODATE", date=None)
        details = [
            _details(1, 1, is_bastp=True, bastp_id=1),
            _details(2, 1, is_bastp=True, bastp_id=3),
            _details(3, 1, is_bastp=True, bastp_id=2),
            _details(4, 1, is_bastp=True, bastp_id=404),
        ]
        pipeline = engine.build_verification_pipeline(self._snapshot(details, bastps=[dated, newer, undated]))
        order = [(g.bastp_id, g.bastp.number if g.bastp else None) for g in pipeline.pending_with_bastp]
        assert order == [(404, None), (2, "NEW"), (1, "OLD"), (3, "NODATE")]

    def test_every_completed_detail_appears_exactly_once(self):
        bastp = BastpRecord(id=5, number="B-5", date=NOW)
        details = [
            _details(1, 1),
            _details(2, 1, is_bastp=True, bastp_id=5),
            _details(3, 1, is_bastp=True, bastp_id=77),
            _details(4, 1),
        ]
        pipeline = engine.build_verification_pipeline(
            self._snapshot(details, verifications=[_verification(1, 3), _verification(2, 4)], bastps=[bastp]),
        )
        seen = [d.details.id for d in pipeline.pending_no_bastp]
        seen += [d.details.id for g in pipeline.pending_with_bastp for d in g.items]
        seen += [v.details.details.id for v in pipeline.verified_no_bastp]
        seen += [v.details.details.id for g in pipeline.verified_with_bastp for v in g.items]
        assert sorted(seen) == [1, 2, 3, 4]
        assert pipeline.verified_with_bastp[0].bastp is None

    def test_deleted_verification_is_ignored(self):
        details = [_details(1, 1)]
        pipeline = engine.build_verification_pipeline(
            self._snapshot(details, verifications=[_verification(1, 1, deleted_at=NOW)]),
        )
        assert [d.details.id for d in pipeline.pending_no_bastp] == [1]
        assert pipeline.verified_ids == frozenset()

    def test_search_matches_work_order_and_vessel_fields(self):
        details = [_details(1, 1, description="Hull blasting"), _details(2, 1, description="Deck paint")]
        snapshot = self._snapshot(details)
        assert engine.build_verification_pipeline(snapshot, search="HULL").pending_count == 1
        assert engine.build_verification_pipeline(snapshot, search="sy-100").pending_count == 2
        assert engine.build_verification_pipeline(snapshot, search="pelni").pending_count == 2
        assert engine.build_verification_pipeline(snapshot, search="nothing").pending_count == 0

    def test_vessel_filter_zero_means_all(self):
        details = [_details(1, 1)]
        snapshot = self._snapshot(details)
        assert engine.build_verification_pipeline(snapshot, vessel_id=0).pending_count == 1
        assert engine.build_verification_pipeline(snapshot, vessel_id=1).pending_count == 1
        filtered = engine.build_verification_pipeline(snapshot, vessel_id=2)
        assert filtered.pending_count == 0
        assert filtered.total_completed == 1

    def test_to_dict_shape(self):
        details = [_details(1, 1)]
        body = engine.build_verification_pipeline(self._snapshot(details)).to_dict()
        assert body["stats"] == {"total_completed": 1, "pending": 1, "verified": 0}
        item = body["pending"]["no_bastp"][0]
        assert item["current_progress"] == 100
        assert item["vessel"]["name"] == "MV Sentosa"
        assert item["work_order"]["shipyard_wo_number"] == "SY-100"
