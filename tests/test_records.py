"""
Tests — record normalisation at the fetch boundary.

Covers:
    - Date coercion to aware UTC datetimes
    - Integer id / foreign key checks
    - Progress percentage bounds
    - Embedded vessel on work orders
    - BASTP membership flag
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from shipyard.services.records import (
    BastpRecord, PermitRecord, ProgressRecord, RecordError, VerificationRecord,
    WorkDetailsRecord, WorkOrderRecord, to_utc_datetime,
)


class TestToUtcDatetime:
    def test_none_and_blank(self):
        assert to_utc_datetime(None) is None
        assert to_utc_datetime("") is None

    def test_bare_date_is_midnight_utc(self):
        assert to_utc_datetime(date(2026, 3, 1)) == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert to_utc_datetime("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_naive_datetime_assumed_utc(self):
        result = to_utc_datetime(datetime(2026, 3, 1, 8, 30))
        assert result.tzinfo is not None
        assert result.hour == 8

    def test_offset_converted_to_utc(self):
        result = to_utc_datetime("2026-03-01T08:00:00+07:00")
        assert result == datetime(2026, 3, 1, 1, 0, tzinfo=timezone.utc)
        assert result.utcoffset() == timedelta(0)

    def test_zulu_suffix(self):
        assert to_utc_datetime("2026-03-01T00:00:00Z") == datetime(2026, 3, 1, tzinfo=timezone.utc)

    def test_garbage_rejected(self):
        with pytest.raises(RecordError):
            to_utc_datetime("next tuesday")
        with pytest.raises(RecordError):
            to_utc_datetime(12345)


class TestWorkOrderRecord:
    def test_embedded_vessel(self):
        rec = WorkOrderRecord.from_dict({
            "id": 3,
            "vessel": {"id": 9, "name": "MV Sentosa", "type": "Tanker", "company": "Pelni"},
            "target_close_date": "2026-04-01",
            "wo_document_status": True,
        })
        assert rec.vessel_id == 9
        assert rec.vessel.name == "MV Sentosa"
        assert rec.target_close_date == datetime(2026, 4, 1, tzinfo=timezone.utc)
        assert rec.wo_document_status is True

    def test_numeric_string_ids_accepted(self):
        rec = WorkOrderRecord.from_dict({"id": "12", "vessel_id": "4"})
        assert rec.id == 12
        assert rec.vessel_id == 4

    def test_missing_id_rejected(self):
        with pytest.raises(RecordError) as exc_info:
            WorkOrderRecord.from_dict({"vessel_id": 1})
        assert exc_info.value.field == "id"

    def test_non_dict_vessel_rejected(self):
        with pytest.raises(RecordError):
            WorkOrderRecord.from_dict({"id": 1, "vessel": "MV Sentosa"})

    def test_bad_date_rejected(self):
        with pytest.raises(RecordError) as exc_info:
            WorkOrderRecord.from_dict({"id": 1, "planned_start_date": "soon"})
        assert exc_info.value.details["field"] == "planned_start_date"


class TestProgressRecord:
    def test_valid_row(self):
        rec = ProgressRecord.from_dict({
            "id": 1, "work_details_id": 2, "progress_percentage": 37.5, "report_date": "2026-03-01",
        })
        assert rec.progress_percentage == 37.5
        assert rec.work_order_id is None

    def test_whole_numbers_become_int(self):
        rec = ProgressRecord.from_dict({
            "id": 1, "work_order_id": 2, "progress_percentage": 100.0, "report_date": "2026-03-01",
        })
        assert rec.progress_percentage == 100
        assert isinstance(rec.progress_percentage, int)

    @pytest.mark.parametrize("pct", [-1, 100.5, "abc", None, True])
    def test_out_of_range_or_wrong_type(self, pct):
        with pytest.raises(RecordError):
            ProgressRecord.from_dict({
                "id": 1, "work_details_id": 2, "progress_percentage": pct, "report_date": "2026-03-01",
            })

    def test_report_date_required(self):
        with pytest.raises(RecordError):
            ProgressRecord.from_dict({"id": 1, "work_details_id": 2, "progress_percentage": 10})

    def test_needs_a_parent(self):
        with pytest.raises(RecordError):
            ProgressRecord.from_dict({"id": 1, "progress_percentage": 10, "report_date": "2026-03-01"})


class TestOtherRecords:
    def test_in_bastp_needs_flag_and_reference(self):
        assert WorkDetailsRecord.from_dict({"id": 1, "work_order_id": 1, "is_bastp": True, "bastp_id": 4}).in_bastp
        assert not WorkDetailsRecord.from_dict({"id": 1, "work_order_id": 1, "is_bastp": True}).in_bastp
        assert not WorkDetailsRecord.from_dict({"id": 1, "work_order_id": 1, "bastp_id": 4}).in_bastp

    def test_boolean_id_rejected(self):
        with pytest.raises(RecordError):
            PermitRecord.from_dict({"id": True, "work_order_id": 1})

    def test_string_flags(self):
        assert PermitRecord.from_dict({"id": 1, "work_order_id": 1, "is_uploaded": "false"}).is_uploaded is False
        assert PermitRecord.from_dict({"id": 1, "work_order_id": 1, "is_uploaded": 1}).is_uploaded is True

    def test_bastp_round_trip_fields(self):
        rec = BastpRecord.from_dict({"id": 5, "number": "B-5", "date": "2026-02-01", "status": "DRAFT"})
        assert rec.to_dict()["date"] == "2026-02-01T00:00:00+00:00"

    def test_verification_keeps_deleted_at(self):
        rec = VerificationRecord.from_dict({"id": 1, "work_details_id": 2, "deleted_at": "2026-02-01T10:00:00"})
        assert rec.deleted_at is not None
        assert "deleted_at" not in rec.to_dict()
