"""
Status Calculator (``milestone_kernel.domain.status``).

Responsibility
--------------
Pure functions that derive a milestone's aggregate status and progress from
its deliverables, plus the small rollups shown alongside them (baseline
commitment status, forecast-vs-baseline variance, schedule breach).

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  Imports nothing outside ``domain/``.

Invariants enforced
-------------------
* A milestone with zero deliverables is never ``COMPLETED``.
* "All delivered" is checked before "all not started".
* Progress is the round-half-up mean of deliverable progress; missing
  progress counts as 0.
* Status and progress are always computed from the same deliverable
  snapshot (``derive_rollup`` takes one collection and returns both).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Sequence
from uuid import UUID


class DeliverableStatus(str, Enum):
    """Lifecycle of a deliverable (owned outside this kernel)."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED_FOR_REVIEW = "submitted_for_review"
    RETURNED_FOR_MORE_WORK = "returned_for_more_work"
    REVIEW_COMPLETE = "review_complete"
    DELIVERED = "delivered"


class MilestoneStatus(str, Enum):
    """Derived milestone status. Never stored."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class BaselineStatus(str, Enum):
    """Baseline commitment status."""

    NOT_COMMITTED = "not_committed"
    AWAITING_SUPPLIER = "awaiting_supplier"
    AWAITING_CUSTOMER = "awaiting_customer"
    LOCKED = "locked"


class CertificateStatus(str, Enum):
    """Acceptance certificate status."""

    DRAFT = "draft"
    PENDING_SUPPLIER = "pending_supplier"
    PENDING_CUSTOMER = "pending_customer"
    SIGNED = "signed"


class VarianceDirection(str, Enum):
    OVER = "over"
    UNDER = "under"
    ON = "on"


@dataclass(frozen=True)
class DeliverableSnapshot:
    """The fields of a deliverable this kernel reads."""

    deliverable_id: UUID
    name: str
    status: DeliverableStatus | None = None
    progress: int | None = None
    due_date: date | None = None

    def __post_init__(self) -> None:
        if self.progress is not None and not 0 <= self.progress <= 100:
            raise ValueError(
                f"Deliverable progress must be within 0..100, got {self.progress}"
            )


@dataclass(frozen=True)
class MilestoneRollup:
    """Status and progress derived from one deliverable snapshot."""

    status: MilestoneStatus
    progress: int
    deliverable_count: int


@dataclass(frozen=True)
class Variance:
    """Forecast minus baseline, with a rounded percentage."""

    amount: Decimal
    percentage: int
    direction: VarianceDirection


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def derive_milestone_status(
    deliverables: Sequence[DeliverableSnapshot],
) -> MilestoneStatus:
    """Derive the aggregate status of a milestone from its deliverables."""
    if not deliverables:
        return MilestoneStatus.NOT_STARTED

    if all(d.status is DeliverableStatus.DELIVERED for d in deliverables):
        return MilestoneStatus.COMPLETED

    if all(
        d.status is None or d.status is DeliverableStatus.NOT_STARTED
        for d in deliverables
    ):
        return MilestoneStatus.NOT_STARTED

    return MilestoneStatus.IN_PROGRESS


def derive_milestone_progress(deliverables: Sequence[DeliverableSnapshot]) -> int:
    """Round-half-up mean of deliverable progress (missing counts as 0).

    Progress values [100, 50, 50] give 67.
    """
    if not deliverables:
        return 0
    total = sum(d.progress or 0 for d in deliverables)
    return _round_half_up(Decimal(total) / Decimal(len(deliverables)))


def derive_rollup(deliverables: Iterable[DeliverableSnapshot]) -> MilestoneRollup:
    """Derive status and progress together from a single snapshot."""
    snapshot = tuple(deliverables)
    return MilestoneRollup(
        status=derive_milestone_status(snapshot),
        progress=derive_milestone_progress(snapshot),
        deliverable_count=len(snapshot),
    )


def derive_baseline_status(
    locked: bool,
    supplier_signed: bool,
    customer_signed: bool,
) -> BaselineStatus:
    if locked or (supplier_signed and customer_signed):
        return BaselineStatus.LOCKED
    if supplier_signed:
        return BaselineStatus.AWAITING_CUSTOMER
    if customer_signed:
        return BaselineStatus.AWAITING_SUPPLIER
    return BaselineStatus.NOT_COMMITTED


def calculate_variance(
    forecast: Decimal | None,
    baseline: Decimal | None,
) -> Variance:
    """
    Compare forecast billable against the committed baseline.

    The percentage is relative to the baseline and rounded half-up; it is
    0 when there is no baseline to compare against.
    """
    forecast = Decimal(forecast or 0)
    baseline = Decimal(baseline or 0)
    amount = forecast - baseline

    if baseline == 0:
        percentage = 0
    else:
        percentage = _round_half_up(amount / baseline * 100)

    if amount > 0:
        direction = VarianceDirection.OVER
    elif amount < 0:
        direction = VarianceDirection.UNDER
    else:
        direction = VarianceDirection.ON

    return Variance(amount=amount, percentage=percentage, direction=direction)


def latest_due_date(deliverables: Iterable[DeliverableSnapshot]) -> date | None:
    dates = [d.due_date for d in deliverables if d.due_date is not None]
    return max(dates) if dates else None


def is_baseline_breached(
    baseline_end_date: date | None,
    deliverables: Iterable[DeliverableSnapshot],
) -> bool:
    """True when any deliverable is due after the committed baseline end."""
    if baseline_end_date is None:
        return False
    latest = latest_due_date(deliverables)
    return latest is not None and latest > baseline_end_date
