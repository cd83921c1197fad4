"""
Typed record types consumed by the status rollup engine.

Rows leave the database (or any other source) as plain dicts; ``from_dict``
on each record type is the single place where their shape is checked and
normalised:

  - ids and foreign keys must be integers (numeric strings are accepted)
  - dates become timezone-aware UTC datetimes; a bare date means midnight UTC
  - progress percentages must lie within 0-100
  - embedded relations (``vessel`` on a work order) become records too

Anything that cannot be normalised raises ``RecordError`` instead of
propagating untyped data into the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any

from shipyard.core.exceptions import ValidationError


class RecordError(ValidationError):
    """A fetched row does not have the shape its record type requires."""

    def __init__(self, record_type: str, field: str, value: Any) -> None:
        self.record_type = record_type
        self.field = field
        super().__init__(
            f"{record_type}: invalid {field}",
            details={"record_type": record_type, "field": field, "value": repr(value)},
        )


# ── Normalisers ──────────────────────────────────────────────────────────────

def to_utc_datetime(value, record_type: str = "record", field: str = "date") -> datetime | None:
    """Normalise a date-ish value to an aware UTC datetime (None stays None)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                return to_utc_datetime(date.fromisoformat(text))
            return to_utc_datetime(datetime.fromisoformat(text.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise RecordError(record_type, field, value)


def _int(value, record_type: str, field: str, required: bool = True) -> int | None:
    if value is None or value == "":
        if required:
            raise RecordError(record_type, field, value)
        return None
    if isinstance(value, bool):
        raise RecordError(record_type, field, value)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise RecordError(record_type, field, value)


def _text(value) -> str | None:
    if value is None:
        return None
    return str(value)


def _flag(value) -> bool:
    return bool(value) and value not in ("false", "0")


def _percentage(value, record_type: str) -> int | float:
    if isinstance(value, bool) or value is None:
        raise RecordError(record_type, "progress_percentage", value)
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise RecordError(record_type, "progress_percentage", value) from exc
    if not 0 <= number <= 100:
        raise RecordError(record_type, "progress_percentage", value)
    return int(number) if number.is_integer() else number


# ── Records ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class VesselRecord:
    id: int
    name: str | None = None
    type: str | None = None
    company: str | None = None

    @classmethod
    def from_dict(cls, row: dict) -> VesselRecord:
        return cls(
            id=_int(row.get("id"), "Vessel", "id"),
            name=_text(row.get("name")),
            type=_text(row.get("type")),
            company=_text(row.get("company")),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "type": self.type, "company": self.company}


@dataclass(frozen=True)
class WorkOrderRecord:
    id: int
    vessel_id: int | None = None
    vessel: VesselRecord | None = None
    customer_wo_number: str | None = None
    customer_wo_date: datetime | None = None
    shipyard_wo_number: str | None = None
    shipyard_wo_date: datetime | None = None
    wo_document_status: bool = False
    planned_start_date: datetime | None = None
    target_close_date: datetime | None = None
    actual_start_date: datetime | None = None
    actual_close_date: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, row: dict) -> WorkOrderRecord:
        kind = "WorkOrder"
        vessel_row = row.get("vessel")
        vessel = None
        if vessel_row is not None:
            if not isinstance(vessel_row, dict):
                raise RecordError(kind, "vessel", vessel_row)
            vessel = VesselRecord.from_dict(vessel_row)
        vessel_id = _int(row.get("vessel_id"), kind, "vessel_id", required=False)
        if vessel_id is None and vessel is not None:
            vessel_id = vessel.id

        def when(field):
            return to_utc_datetime(row.get(field), kind, field)

        return cls(
            id=_int(row.get("id"), kind, "id"),
            vessel_id=vessel_id,
            vessel=vessel,
            customer_wo_number=_text(row.get("customer_wo_number")),
            customer_wo_date=when("customer_wo_date"),
            shipyard_wo_number=_text(row.get("shipyard_wo_number")),
            shipyard_wo_date=when("shipyard_wo_date"),
            wo_document_status=_flag(row.get("wo_document_status")),
            planned_start_date=when("planned_start_date"),
            target_close_date=when("target_close_date"),
            actual_start_date=when("actual_start_date"),
            actual_close_date=when("actual_close_date"),
            created_at=when("created_at"),
        )


@dataclass(frozen=True)
class WorkDetailsRecord:
    id: int
    work_order_id: int
    description: str | None = None
    location: str | None = None
    pic: str | None = None
    quantity: float | None = None
    uom: str | None = None
    is_bastp: bool = False
    bastp_id: int | None = None
    planned_start_date: datetime | None = None
    target_close_date: datetime | None = None
    actual_start_date: datetime | None = None
    actual_close_date: datetime | None = None
    created_at: datetime | None = None

    @property
    def in_bastp(self) -> bool:
        """Grouped under a BASTP only when the flag and the reference are both set."""
        return self.is_bastp and self.bastp_id is not None

    @classmethod
    def from_dict(cls, row: dict) -> WorkDetailsRecord:
        kind = "WorkDetails"

        def when(field):
            return to_utc_datetime(row.get(field), kind, field)

        quantity = row.get("quantity")
        return cls(
            id=_int(row.get("id"), kind, "id"),
            work_order_id=_int(row.get("work_order_id"), kind, "work_order_id"),
            description=_text(row.get("description")),
            location=_text(row.get("location")),
            pic=_text(row.get("pic")),
            quantity=float(quantity) if isinstance(quantity, (int, float)) and not isinstance(quantity, bool) else None,
            uom=_text(row.get("uom")),
            is_bastp=_flag(row.get("is_bastp")),
            bastp_id=_int(row.get("bastp_id"), kind, "bastp_id", required=False),
            planned_start_date=when("planned_start_date"),
            target_close_date=when("target_close_date"),
            actual_start_date=when("actual_start_date"),
            actual_close_date=when("actual_close_date"),
            created_at=when("created_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "work_order_id": self.work_order_id,
            "description": self.description,
            "location": self.location,
            "pic": self.pic,
            "quantity": self.quantity,
            "uom": self.uom,
            "is_bastp": self.is_bastp,
            "bastp_id": self.bastp_id,
            "planned_start_date": iso(self.planned_start_date),
            "target_close_date": iso(self.target_close_date),
            "actual_start_date": iso(self.actual_start_date),
            "actual_close_date": iso(self.actual_close_date),
        }


@dataclass(frozen=True)
class ProgressRecord:
    id: int
    progress_percentage: int | float
    report_date: datetime
    work_details_id: int | None = None
    work_order_id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, row: dict) -> ProgressRecord:
        kind = "WorkProgress"
        report_date = to_utc_datetime(row.get("report_date"), kind, "report_date")
        if report_date is None:
            raise RecordError(kind, "report_date", row.get("report_date"))
        work_details_id = _int(row.get("work_details_id"), kind, "work_details_id", required=False)
        work_order_id = _int(row.get("work_order_id"), kind, "work_order_id", required=False)
        if work_details_id is None and work_order_id is None:
            raise RecordError(kind, "work_details_id", None)
        return cls(
            id=_int(row.get("id"), kind, "id"),
            progress_percentage=_percentage(row.get("progress_percentage"), kind),
            report_date=report_date,
            work_details_id=work_details_id,
            work_order_id=work_order_id,
            created_at=to_utc_datetime(row.get("created_at"), kind, "created_at"),
        )


@dataclass(frozen=True)
class PermitRecord:
    id: int
    work_order_id: int
    is_uploaded: bool = False

    @classmethod
    def from_dict(cls, row: dict) -> PermitRecord:
        return cls(
            id=_int(row.get("id"), "PermitToWork", "id"),
            work_order_id=_int(row.get("work_order_id"), "PermitToWork", "work_order_id"),
            is_uploaded=_flag(row.get("is_uploaded")),
        )


@dataclass(frozen=True)
class BastpRecord:
    id: int
    number: str | None = None
    date: datetime | None = None
    delivery_date: datetime | None = None
    status: str | None = None
    vessel_id: int | None = None

    @classmethod
    def from_dict(cls, row: dict) -> BastpRecord:
        kind = "BASTP"
        return cls(
            id=_int(row.get("id"), kind, "id"),
            number=_text(row.get("number")),
            date=to_utc_datetime(row.get("date"), kind, "date"),
            delivery_date=to_utc_datetime(row.get("delivery_date"), kind, "delivery_date"),
            status=_text(row.get("status")),
            vessel_id=_int(row.get("vessel_id"), kind, "vessel_id", required=False),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "date": iso(self.date),
            "delivery_date": iso(self.delivery_date),
            "status": self.status,
            "vessel_id": self.vessel_id,
        }


@dataclass(frozen=True)
class VerificationRecord:
    id: int
    work_details_id: int
    verification_date: datetime | None = None
    verified_by: str | None = None
    verified_by_email: str | None = None
    notes: str | None = None
    deleted_at: datetime | None = None

    @classmethod
    def from_dict(cls, row: dict) -> VerificationRecord:
        kind = "WorkVerification"
        return cls(
            id=_int(row.get("id"), kind, "id"),
            work_details_id=_int(row.get("work_details_id"), kind, "work_details_id"),
            verification_date=to_utc_datetime(row.get("verification_date"), kind, "verification_date"),
            verified_by=_text(row.get("verified_by")),
            verified_by_email=_text(row.get("verified_by_email")),
            notes=_text(row.get("notes")),
            deleted_at=to_utc_datetime(row.get("deleted_at"), kind, "deleted_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "work_details_id": self.work_details_id,
            "verification_date": iso(self.verification_date),
            "verified_by": self.verified_by,
            "verified_by_email": self.verified_by_email,
            "notes": self.notes,
        }


def iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
