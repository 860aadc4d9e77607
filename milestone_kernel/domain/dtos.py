"""
DTOs -- immutable records and read models.

Responsibility:
    Frozen data structures crossing the persistence and service boundaries:
    MilestoneRecord / CertificateRecord / BaselineVersionRecord (what the
    ORM models convert to) and the read models returned to callers
    (MilestoneView, BillableMilestone, ProjectSummary).

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ORM models convert *into* these via
    ``to_dto()``; nothing here imports models.

Invariants enforced:
    - Services return DTOs, never ORM entities, so callers cannot write
      signature fields behind the state machine's back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping
from uuid import UUID

from milestone_kernel.domain.approval import (
    ApprovalState,
    Signature,
    SignaturePair,
)
from milestone_kernel.domain.permissions import Action
from milestone_kernel.domain.status import (
    BaselineStatus,
    CertificateStatus,
    DeliverableSnapshot,
    MilestoneStatus,
    Variance,
)


@dataclass(frozen=True)
class ScheduleValues:
    """One of the baseline / forecast / actual triples."""

    start_date: date | None = None
    end_date: date | None = None
    billable: Decimal | None = None


# =========================================================================
# Persistence-boundary records
# =========================================================================


@dataclass(frozen=True)
class MilestoneRecord:
    milestone_id: UUID
    project_id: UUID
    milestone_ref: str
    name: str
    description: str | None
    baseline: ScheduleValues
    forecast: ScheduleValues
    actual: ScheduleValues
    baseline_locked: bool
    baseline_signatures: SignaturePair
    version: int

    @property
    def baseline_state(self) -> ApprovalState:
        return self.baseline_signatures.state


@dataclass(frozen=True)
class CertificateRecord:
    certificate_id: UUID
    milestone_id: UUID
    certificate_number: str
    milestone_ref: str
    milestone_name: str
    payment_value: Decimal
    deliverables_snapshot: tuple[DeliverableSnapshot, ...]
    status: CertificateStatus
    signatures: SignaturePair
    generated_by_id: UUID
    generated_at: datetime
    version: int


@dataclass(frozen=True)
class BaselineVersionRecord:
    """A committed baseline, captured at the moment it locked."""

    version_id: UUID
    milestone_id: UUID
    version: int
    baseline: ScheduleValues
    supplier_signature: Signature
    customer_signature: Signature
    locked_at: datetime


# =========================================================================
# Read models
# =========================================================================


@dataclass(frozen=True)
class BaselineView:
    status: BaselineStatus
    locked: bool
    values: ScheduleValues
    supplier_signature: Signature | None
    customer_signature: Signature | None


@dataclass(frozen=True)
class CertificateView:
    certificate_id: UUID
    certificate_number: str
    status: CertificateStatus
    value: Decimal
    supplier_signature: Signature | None
    customer_signature: Signature | None


@dataclass(frozen=True)
class MilestoneView:
    """What a caller sees for one milestone. Derived fields are computed on read."""

    milestone_id: UUID
    project_id: UUID
    milestone_ref: str
    name: str
    status: MilestoneStatus
    progress: int
    deliverable_count: int
    baseline: BaselineView
    forecast: ScheduleValues
    actual: ScheduleValues
    variance: Variance
    baseline_breached: bool
    certificate: CertificateView | None
    allowed_actions: frozenset[Action] = frozenset()


@dataclass(frozen=True)
class BillableMilestone:
    milestone_id: UUID
    milestone_ref: str
    name: str
    billable: Decimal
    expected_date: date | None
    certificate_status: CertificateStatus | None
    ready_to_bill: bool


@dataclass(frozen=True)
class ProjectSummary:
    project_id: UUID
    milestone_count: int
    by_status: Mapping[MilestoneStatus, int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    locked_baselines: int = 0
    signed_certificates: int = 0
    baseline_billable: Decimal = Decimal("0")
    forecast_billable: Decimal = Decimal("0")
