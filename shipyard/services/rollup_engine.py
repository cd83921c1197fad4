"""
Status Rollup Engine.

Pure, synchronous derivation of every status view the console shows from a
flat snapshot of typed records:

  - latest-progress resolution per work detail / work order
  - work-order status classification (completed / in_progress /
    ready_to_start / planned)
  - dashboard statistics and the prioritised alert list
  - per-vessel summaries with search and sort
  - the verification pipeline (pending vs verified, grouped by BASTP)

Nothing here touches Flask or the database. ``now`` is always passed in
explicitly and must be timezone-aware.

Usage:
    from shipyard.services import rollup_engine as engine

    rollups = engine.rollup_work_orders(snapshot, now)
    view = engine.build_dashboard(snapshot, now)
    pipeline = engine.build_verification_pipeline(snapshot, search="hull")
"""

from __future__ import annotations

import logging
import math
import unicodedata
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable

from shipyard.core.exceptions import ValidationError
from shipyard.services.records import (
    BastpRecord, PermitRecord, ProgressRecord, VerificationRecord, VesselRecord,
    WorkDetailsRecord, WorkOrderRecord, iso,
)

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
COMPLETE = 100
DEFAULT_UPCOMING_DAYS = 7

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

VESSEL_SORT_KEYS = ("name", "total", "active", "overdue")
WORK_ORDER_SORT_KEYS = ("shipyard_wo_date", "shipyard_wo_number")
SORT_DIRECTIONS = ("asc", "desc")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class WorkOrderStatus(str, Enum):
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    READY_TO_START = "ready_to_start"
    PLANNED = "planned"


class AlertType(str, Enum):
    MISSING_PERMIT = "missing_permit"
    OVERDUE = "overdue"
    UPCOMING_DEADLINE = "upcoming_deadline"
    READY_TO_START = "ready_to_start"


# ═════════════════════════════════════════════════════════════════════════════
# Snapshot & derived types
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class RollupSnapshot:
    """Flat, request-scoped copy of every row a view needs (soft-deleted rows already removed)."""
    work_orders: list[WorkOrderRecord] = field(default_factory=list)
    work_details: list[WorkDetailsRecord] = field(default_factory=list)
    progress: list[ProgressRecord] = field(default_factory=list)
    permits: list[PermitRecord] = field(default_factory=list)
    vessels: list[VesselRecord] = field(default_factory=list)
    bastps: list[BastpRecord] = field(default_factory=list)
    verifications: list[VerificationRecord] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressState:
    current_progress: int | float = 0
    has_progress_data: bool = False
    latest_progress_date: datetime | None = None
    progress_count: int = 0

    def to_dict(self) -> dict:
        return {
            "current_progress": self.current_progress,
            "has_progress_data": self.has_progress_data,
            "latest_progress_date": iso(self.latest_progress_date),
            "progress_count": self.progress_count,
        }


@dataclass
class WorkDetailsRollup:
    details: WorkDetailsRecord
    progress: ProgressState
    work_order: WorkOrderRecord | None = None
    vessel: VesselRecord | None = None

    @property
    def is_complete(self) -> bool:
        return self.progress.current_progress == COMPLETE

    def to_dict(self) -> dict:
        data = self.details.to_dict()
        data.update(self.progress.to_dict())
        wo = self.work_order
        data["work_order"] = {
            "id": wo.id,
            "customer_wo_number": wo.customer_wo_number,
            "shipyard_wo_number": wo.shipyard_wo_number,
            "customer_wo_date": iso(wo.customer_wo_date),
            "shipyard_wo_date": iso(wo.shipyard_wo_date),
        } if wo is not None else None
        data["vessel"] = self.vessel.to_dict() if self.vessel is not None else None
        return data


@dataclass
class WorkOrderRollup:
    work_order: WorkOrderRecord
    progress: ProgressState
    status: WorkOrderStatus
    vessel: VesselRecord | None = None
    details: list[WorkDetailsRollup] = field(default_factory=list)
    permits: list[PermitRecord] = field(default_factory=list)

    @property
    def has_uploaded_permit(self) -> bool:
        return any(p.is_uploaded for p in self.permits)

    def is_overdue(self, now: datetime) -> bool:
        """Past target close while not yet at 100%."""
        target = self.work_order.target_close_date
        return target is not None and target < now and self.progress.current_progress < COMPLETE

    def to_dict(self, now: datetime) -> dict:
        wo = self.work_order
        return {
            "id": wo.id,
            "vessel_id": wo.vessel_id,
            "vessel": self.vessel.to_dict() if self.vessel is not None else None,
            "customer_wo_number": wo.customer_wo_number,
            "customer_wo_date": iso(wo.customer_wo_date),
            "shipyard_wo_number": wo.shipyard_wo_number,
            "shipyard_wo_date": iso(wo.shipyard_wo_date),
            "wo_document_status": wo.wo_document_status,
            "planned_start_date": iso(wo.planned_start_date),
            "target_close_date": iso(wo.target_close_date),
            "actual_start_date": iso(wo.actual_start_date),
            "actual_close_date": iso(wo.actual_close_date),
            "status": self.status.value,
            "is_overdue": self.is_overdue(now),
            "overall_progress": self.progress.current_progress,
            "has_progress_data": self.progress.has_progress_data,
            "has_uploaded_permit": self.has_uploaded_permit,
            "work_details": [d.to_dict() for d in self.details],
        }


# ═════════════════════════════════════════════════════════════════════════════
# 1. Latest-progress resolution
# ═════════════════════════════════════════════════════════════════════════════

def _progress_order(row: ProgressRecord):
    # Same report date: later created_at wins, then the higher id.
    created = row.created_at
    return (row.report_date, created is not None, created or _EPOCH, row.id)


def resolve_latest_progress(rows: Iterable[ProgressRecord]) -> ProgressState:
    """Current progress is the percentage of the most recent report."""
    rows = list(rows)
    if not rows:
        return ProgressState()
    latest = max(rows, key=_progress_order)
    return ProgressState(
        current_progress=latest.progress_percentage,
        has_progress_data=True,
        latest_progress_date=latest.report_date,
        progress_count=len(rows),
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def resolve_work_order_progress(direct_rows: Iterable[ProgressRecord],
                                detail_states: Iterable[ProgressState]) -> ProgressState:
    """Work-order progress from its own reports, else the mean of its details."""
    direct_rows = list(direct_rows)
    if direct_rows:
        return resolve_latest_progress(direct_rows)

    detail_states = list(detail_states)
    if not detail_states:
        return ProgressState()
    total = sum(s.current_progress for s in detail_states)
    dates = [s.latest_progress_date for s in detail_states if s.latest_progress_date is not None]
    return ProgressState(
        current_progress=_round_half_up(total / len(detail_states)),
        has_progress_data=any(s.current_progress > 0 for s in detail_states),
        latest_progress_date=max(dates) if dates else None,
        progress_count=sum(s.progress_count for s in detail_states),
    )


# ═════════════════════════════════════════════════════════════════════════════
# 2. Classification
# ═════════════════════════════════════════════════════════════════════════════

def classify_work_order(wo: WorkOrderRecord, progress: ProgressState | None,
                        now: datetime, use_progress: bool = True) -> WorkOrderStatus:
    """Exclusive four-way status; first matching rule wins."""
    current = progress.current_progress if (use_progress and progress is not None) else 0

    if wo.actual_close_date is not None or (use_progress and current == COMPLETE):
        return WorkOrderStatus.COMPLETED
    if wo.actual_start_date is not None or (use_progress and current > 0):
        return WorkOrderStatus.IN_PROGRESS
    if wo.planned_start_date is not None and wo.planned_start_date <= now:
        return WorkOrderStatus.READY_TO_START
    return WorkOrderStatus.PLANNED


# ═════════════════════════════════════════════════════════════════════════════
# Snapshot joins
# ═════════════════════════════════════════════════════════════════════════════

def _vessel_index(snapshot: RollupSnapshot) -> dict[int, VesselRecord]:
    vessels = {v.id: v for v in snapshot.vessels}
    for wo in snapshot.work_orders:
        if wo.vessel is not None:
            vessels.setdefault(wo.vessel.id, wo.vessel)
    return vessels


def _resolve_vessel(wo: WorkOrderRecord | None, vessels: dict[int, VesselRecord]) -> VesselRecord | None:
    if wo is None:
        return None
    if wo.vessel is not None:
        return wo.vessel
    if wo.vessel_id is None:
        return None
    return vessels.get(wo.vessel_id)


def rollup_work_details(snapshot: RollupSnapshot) -> list[WorkDetailsRollup]:
    """Attach resolved progress, parent work order and vessel to every work detail."""
    progress_by_detail = defaultdict(list)
    for row in snapshot.progress:
        if row.work_details_id is not None:
            progress_by_detail[row.work_details_id].append(row)

    work_orders = {wo.id: wo for wo in snapshot.work_orders}
    vessels = _vessel_index(snapshot)

    rollups = []
    for details in snapshot.work_details:
        wo = work_orders.get(details.work_order_id)
        rollups.append(WorkDetailsRollup(
            details=details,
            progress=resolve_latest_progress(progress_by_detail.get(details.id, ())),
            work_order=wo,
            vessel=_resolve_vessel(wo, vessels),
        ))
    return rollups


def rollup_work_orders(snapshot: RollupSnapshot, now: datetime,
                       use_progress: bool = True) -> list[WorkOrderRollup]:
    """Join details, progress and permits onto each work order and classify it."""
    details_by_wo = defaultdict(list)
    for detail in rollup_work_details(snapshot):
        details_by_wo[detail.details.work_order_id].append(detail)

    direct_progress = defaultdict(list)
    for row in snapshot.progress:
        if row.work_details_id is None and row.work_order_id is not None:
            direct_progress[row.work_order_id].append(row)

    permits_by_wo = defaultdict(list)
    for permit in snapshot.permits:
        permits_by_wo[permit.work_order_id].append(permit)

    vessels = _vessel_index(snapshot)
    rollups = []
    for wo in snapshot.work_orders:
        details = details_by_wo.get(wo.id, [])
        progress = resolve_work_order_progress(
            direct_progress.get(wo.id, ()), [d.progress for d in details],
        )
        rollups.append(WorkOrderRollup(
            work_order=wo,
            progress=progress,
            status=classify_work_order(wo, progress, now, use_progress=use_progress),
            vessel=_resolve_vessel(wo, vessels),
            details=details,
            permits=permits_by_wo.get(wo.id, []),
        ))
    return rollups


# ═════════════════════════════════════════════════════════════════════════════
# 3. Alerts & dashboard statistics
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class Alert:
    work_order_id: int
    type: AlertType
    priority: str
    message: str
    customer_wo_number: str | None = None
    shipyard_wo_number: str | None = None
    planned_start_date: datetime | None = None
    target_close_date: datetime | None = None
    vessel_name: str | None = None
    days: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.work_order_id,
            "type": self.type.value,
            "priority": self.priority,
            "message": self.message,
            "customer_wo_number": self.customer_wo_number,
            "shipyard_wo_number": self.shipyard_wo_number,
            "planned_start_date": iso(self.planned_start_date),
            "target_close_date": iso(self.target_close_date),
            "vessel_name": self.vessel_name,
            "days": self.days,
        }


@dataclass
class DashboardStats:
    total_work_orders: int = 0
    in_progress: int = 0
    completed: int = 0
    planned: int = 0
    ready_to_start: int = 0
    overdue: int = 0
    missing_permits: int = 0
    upcoming_deadlines: int = 0
    total_permits: int = 0
    uploaded_permits: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


@dataclass
class DashboardView:
    stats: DashboardStats
    alerts: list[Alert]

    def to_dict(self) -> dict:
        return {
            "stats": self.stats.to_dict(),
            "alerts": [a.to_dict() for a in self.alerts],
        }


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta / DAY)


def _alerts_for(rollup: WorkOrderRollup, now: datetime, upcoming_days: int) -> list[Alert]:
    if rollup.status is WorkOrderStatus.COMPLETED:
        return []

    wo = rollup.work_order

    def alert(kind, priority, message, days=None):
        return Alert(
            work_order_id=wo.id, type=kind, priority=priority, message=message,
            customer_wo_number=wo.customer_wo_number,
            shipyard_wo_number=wo.shipyard_wo_number,
            planned_start_date=wo.planned_start_date,
            target_close_date=wo.target_close_date,
            vessel_name=rollup.vessel.name if rollup.vessel is not None else None,
            days=days,
        )

    alerts = []
    has_permit = rollup.has_uploaded_permit
    target = wo.target_close_date

    if not has_permit:
        alerts.append(alert(AlertType.MISSING_PERMIT, "high",
                            "Missing permit to work - work cannot proceed"))

    if target is not None and target < now:
        days = _ceil_days(now - target)
        alerts.append(alert(AlertType.OVERDUE, "high",
                            f"Work order is overdue by {days} days", days))

    if target is not None and now < target <= now + timedelta(days=upcoming_days):
        days = _ceil_days(target - now)
        alerts.append(alert(AlertType.UPCOMING_DEADLINE, "medium",
                            f"Target close date in {days} days", days))

    planned = wo.planned_start_date
    if has_permit and wo.actual_start_date is None and planned is not None and planned <= now:
        alerts.append(alert(AlertType.READY_TO_START, "low",
                            "Ready to start - all requirements met"))
    return alerts


def sort_alerts(alerts: Iterable[Alert]) -> list[Alert]:
    """Highest priority first; equal priorities keep their relative order."""
    return sorted(alerts, key=lambda a: PRIORITY_RANK[a.priority], reverse=True)


def generate_alerts(rollups: Iterable[WorkOrderRollup], now: datetime,
                    upcoming_days: int = DEFAULT_UPCOMING_DAYS) -> list[Alert]:
    alerts = []
    for rollup in rollups:
        alerts.extend(_alerts_for(rollup, now, upcoming_days))
    return sort_alerts(alerts)


def compute_dashboard_stats(rollups: list[WorkOrderRollup], alerts: list[Alert],
                            permits: list[PermitRecord]) -> DashboardStats:
    stats = DashboardStats(
        total_work_orders=len(rollups),
        total_permits=len(permits),
        uploaded_permits=sum(1 for p in permits if p.is_uploaded),
    )
    for rollup in rollups:
        if rollup.status is WorkOrderStatus.COMPLETED:
            stats.completed += 1
        elif rollup.status is WorkOrderStatus.IN_PROGRESS:
            stats.in_progress += 1
        elif rollup.status is WorkOrderStatus.READY_TO_START:
            stats.ready_to_start += 1
        else:
            stats.planned += 1

    for a in alerts:
        if a.type is AlertType.MISSING_PERMIT:
            stats.missing_permits += 1
        elif a.type is AlertType.OVERDUE:
            stats.overdue += 1
        elif a.type is AlertType.UPCOMING_DEADLINE:
            stats.upcoming_deadlines += 1
    return stats


def build_dashboard(snapshot: RollupSnapshot, now: datetime,
                    upcoming_days: int = DEFAULT_UPCOMING_DAYS) -> DashboardView:
    rollups = rollup_work_orders(snapshot, now)
    alerts = generate_alerts(rollups, now, upcoming_days)
    return DashboardView(
        stats=compute_dashboard_stats(rollups, alerts, snapshot.permits),
        alerts=alerts,
    )


# ═════════════════════════════════════════════════════════════════════════════
# 4. Vessel rollups
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class VesselSummary:
    id: int
    name: str | None
    type: str | None
    company: str | None
    total_work_orders: int = 0
    active: int = 0
    completed: int = 0
    pending_documents: int = 0
    overdue: int = 0

    def to_dict(self) -> dict:
        return dict(self.__dict__)


def build_vessel_summaries(rollups: Iterable[WorkOrderRollup], now: datetime) -> list[VesselSummary]:
    """Per-vessel counts; work orders without a resolvable vessel are left out."""
    summaries: dict[int, VesselSummary] = {}
    skipped = 0
    for rollup in rollups:
        vessel = rollup.vessel
        if vessel is None:
            skipped += 1
            continue
        summary = summaries.get(vessel.id)
        if summary is None:
            summary = summaries[vessel.id] = VesselSummary(
                id=vessel.id, name=vessel.name, type=vessel.type, company=vessel.company,
            )
        summary.total_work_orders += 1
        if rollup.status is WorkOrderStatus.IN_PROGRESS:
            summary.active += 1
        elif rollup.status is WorkOrderStatus.COMPLETED:
            summary.completed += 1
        if not rollup.work_order.wo_document_status:
            summary.pending_documents += 1
        if rollup.is_overdue(now):
            summary.overdue += 1

    if skipped:
        logger.info("Vessel rollup skipped %d work orders without vessel data", skipped)
    return list(summaries.values())


def fold_text(value: str | None) -> str:
    """Case- and accent-insensitive form of ``value`` for search and name ordering."""
    decomposed = unicodedata.normalize("NFKD", value or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def _contains(term: str, *values) -> bool:
    return any(isinstance(v, str) and term in fold_text(v) for v in values)


def filter_vessel_summaries(summaries: Iterable[VesselSummary], search: str | None) -> list[VesselSummary]:
    summaries = list(summaries)
    term = fold_text((search or "").strip())
    if not term:
        return summaries
    return [s for s in summaries if _contains(term, s.name, s.type, s.company)]


def check_sort(key: str, direction: str, allowed: tuple) -> None:
    if key not in allowed:
        raise ValidationError(f"Unsupported sort key: {key}", details={"allowed": list(allowed)})
    if direction not in SORT_DIRECTIONS:
        raise ValidationError(f"Unsupported sort direction: {direction}",
                              details={"allowed": list(SORT_DIRECTIONS)})


def sort_vessel_summaries(summaries: Iterable[VesselSummary], key: str = "name",
                          direction: str = "asc") -> list[VesselSummary]:
    check_sort(key, direction, VESSEL_SORT_KEYS)
    if key == "name":
        sort_key = lambda s: fold_text(s.name)  # noqa: E731
    elif key == "total":
        sort_key = lambda s: s.total_work_orders  # noqa: E731
    else:
        sort_key = lambda s: getattr(s, key)  # noqa: E731
    return sorted(summaries, key=sort_key, reverse=(direction == "desc"))


# ── Per-vessel work order listing ────────────────────────────────────────────

def filter_work_order_rollups(rollups: Iterable[WorkOrderRollup], search: str | None) -> list[WorkOrderRollup]:
    """Match work order numbers, or any detail's description / location / PIC."""
    rollups = list(rollups)
    term = fold_text((search or "").strip())
    if not term:
        return rollups

    def matches(r: WorkOrderRollup) -> bool:
        wo = r.work_order
        if _contains(term, wo.customer_wo_number, wo.shipyard_wo_number):
            return True
        return any(_contains(term, d.details.description, d.details.location, d.details.pic)
                   for d in r.details)

    return [r for r in rollups if matches(r)]


def sort_work_order_rollups(rollups: Iterable[WorkOrderRollup], key: str = "shipyard_wo_date",
                            direction: str = "desc") -> list[WorkOrderRollup]:
    """Sort by shipyard WO date or number; rows missing the key always go last."""
    check_sort(key, direction, WORK_ORDER_SORT_KEYS)
    rollups = list(rollups)
    present = [r for r in rollups if getattr(r.work_order, key) is not None]
    missing = [r for r in rollups if getattr(r.work_order, key) is None]
    if key == "shipyard_wo_number":
        sort_key = lambda r: fold_text(r.work_order.shipyard_wo_number)  # noqa: E731
    else:
        sort_key = lambda r: r.work_order.shipyard_wo_date  # noqa: E731
    return sorted(present, key=sort_key, reverse=(direction == "desc")) + missing


def build_work_order_rows(snapshot: RollupSnapshot, vessel_id: int, now: datetime,
                          search: str | None = None, sort: str = "shipyard_wo_date",
                          direction: str = "desc") -> list[WorkOrderRollup]:
    """Work orders of one vessel with resolved progress, filtered and sorted."""
    rollups = [
        r for r in rollup_work_orders(snapshot, now)
        if r.vessel is not None and r.vessel.id == vessel_id
    ]
    return sort_work_order_rollups(filter_work_order_rollups(rollups, search), sort, direction)


# ═════════════════════════════════════════════════════════════════════════════
# 5. Verification pipeline
# ═════════════════════════════════════════════════════════════════════════════

@dataclass
class VerifiedItem:
    details: WorkDetailsRollup
    verification: VerificationRecord

    def to_dict(self) -> dict:
        data = self.details.to_dict()
        data["verification"] = self.verification.to_dict()
        return data


@dataclass
class BastpGroup:
    bastp_id: int
    bastp: BastpRecord | None
    items: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "bastp_id": self.bastp_id,
            "bastp": self.bastp.to_dict() if self.bastp is not None else None,
            "count": len(self.items),
            "items": [i.to_dict() for i in self.items],
        }


@dataclass
class VerificationPipeline:
    total_completed: int
    verified_ids: frozenset
    pending_no_bastp: list[WorkDetailsRollup]
    pending_with_bastp: list[BastpGroup]
    verified_no_bastp: list[VerifiedItem]
    verified_with_bastp: list[BastpGroup]

    @property
    def pending_count(self) -> int:
        return len(self.pending_no_bastp) + sum(len(g.items) for g in self.pending_with_bastp)

    @property
    def verified_count(self) -> int:
        return len(self.verified_no_bastp) + sum(len(g.items) for g in self.verified_with_bastp)

    def to_dict(self) -> dict:
        return {
            "stats": {
                "total_completed": self.total_completed,
                "pending": self.pending_count,
                "verified": self.verified_count,
            },
            "pending": {
                "no_bastp": [d.to_dict() for d in self.pending_no_bastp],
                "with_bastp": [g.to_dict() for g in self.pending_with_bastp],
            },
            "verified": {
                "no_bastp": [v.to_dict() for v in self.verified_no_bastp],
                "with_bastp": [g.to_dict() for g in self.verified_with_bastp],
            },
        }


def _details_match(rollup: WorkDetailsRollup, term: str, vessel_id: int) -> bool:
    if vessel_id and (rollup.vessel is None or rollup.vessel.id != vessel_id):
        return False
    if not term:
        return True
    d, wo, vessel = rollup.details, rollup.work_order, rollup.vessel
    return _contains(
        term,
        d.description, d.location, d.pic,
        wo.customer_wo_number if wo else None,
        wo.shipyard_wo_number if wo else None,
        vessel.name if vessel else None,
        vessel.company if vessel else None,
    )


def _bastp_group_order(group: BastpGroup):
    # Unresolved BASTP first, then newest BASTP date, undated last.
    if group.bastp is None:
        return (0, 0.0)
    if group.bastp.date is None:
        return (2, 0.0)
    return (1, -group.bastp.date.timestamp())


def group_by_bastp(items: Iterable, bastps: dict[int, BastpRecord], bastp_id_of) -> list[BastpGroup]:
    groups: dict[int, BastpGroup] = {}
    for item in items:
        bastp_id = bastp_id_of(item)
        group = groups.get(bastp_id)
        if group is None:
            group = groups[bastp_id] = BastpGroup(bastp_id=bastp_id, bastp=bastps.get(bastp_id))
            if group.bastp is None:
                logger.warning("BASTP id=%s referenced by work details but not found", bastp_id)
        group.items.append(item)
    return sorted(groups.values(), key=_bastp_group_order)


def build_verification_pipeline(snapshot: RollupSnapshot, search: str | None = None,
                                vessel_id: int = 0) -> VerificationPipeline:
    """Split completed work details into pending / verified, each grouped by BASTP."""
    term = fold_text((search or "").strip())
    vessel_id = vessel_id or 0

    details = rollup_work_details(snapshot)
    by_id = {d.details.id: d for d in details}
    completed = [d for d in details if d.is_complete]

    verification_by_detail: dict[int, VerificationRecord] = {}
    for v in snapshot.verifications:
        if v.deleted_at is None:
            verification_by_detail.setdefault(v.work_details_id, v)
    verified_ids = frozenset(verification_by_detail)

    pending = [d for d in completed
               if d.details.id not in verified_ids and _details_match(d, term, vessel_id)]
    verified = [
        VerifiedItem(details=by_id[wd_id], verification=v)
        for wd_id, v in verification_by_detail.items()
        if wd_id in by_id and _details_match(by_id[wd_id], term, vessel_id)
    ]

    bastps = {b.id: b for b in snapshot.bastps}
    return VerificationPipeline(
        total_completed=len(completed),
        verified_ids=verified_ids,
        pending_no_bastp=[d for d in pending if not d.details.in_bastp],
        pending_with_bastp=group_by_bastp(
            (d for d in pending if d.details.in_bastp), bastps, lambda d: d.details.bastp_id,
        ),
        verified_no_bastp=[v for v in verified if not v.details.details.in_bastp],
        verified_with_bastp=group_by_bastp(
            (v for v in verified if v.details.details.in_bastp), bastps,
            lambda v: v.details.details.bastp_id,
        ),
    )
