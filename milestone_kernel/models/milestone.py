"""
Module: milestone_kernel.models.milestone
Responsibility: ORM persistence for milestones: the baseline / forecast /
    actual schedule and billing triple, and the baseline commitment
    (lock flag plus supplier and customer signatures).
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - baseline_locked iff both baseline signatures are present
      (ck_milestones_lock_matches_signatures).
    - Each signature is all-or-nothing (ck_milestones_signature_complete).
    - milestone_ref is unique within a project.
    - version is a SQLAlchemy version_id_col: every UPDATE is conditional
      on the version read, so two writers deciding from the same read
      cannot both win.
    - Baseline fields and written signatures are frozen while locked
      (ORM listener in db/immutability.py).

Failure modes:
    - IntegrityError on a lock/signature mismatch or duplicate reference.
    - StaleDataError on flush when another transaction bumped the version.
    - ImmutabilityViolationError on a forbidden baseline/signature change.

Audit relevance:
    The baseline signatures are the commitment evidence.  Each lock also
    appends a MilestoneBaselineVersion row and an audit event.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from milestone_kernel.db.base import TrackedBase
from milestone_kernel.db.types import NAME_LENGTH, REF_LENGTH, TEXT_LENGTH
from milestone_kernel.domain.approval import ResetOutcome, SignatureOutcome, SignaturePair
from milestone_kernel.domain.dtos import MilestoneRecord, ScheduleValues
from milestone_kernel.models.signature_columns import (
    clear_signatures,
    read_signature_pair,
    signature_consistency_sql,
    write_signature,
)

BASELINE_PREFIX = "baseline_"

# Fields frozen while the baseline is locked.
BASELINE_VALUE_FIELDS = ("baseline_start_date", "baseline_end_date", "baseline_billable")

FORECAST_VALUE_FIELDS = ("forecast_start_date", "forecast_end_date", "forecast_billable")


class MilestoneModel(TrackedBase):
    """
    A project milestone.

    Contract:
        Signature columns are written only through ``apply_signature`` and
        ``apply_reset``, which take state-machine outcomes.

    Guarantees:
        - ``signatures`` and ``baseline_locked`` always agree after flush.
    """

    __tablename__ = "milestones"

    __table_args__ = (
        UniqueConstraint("project_id", "milestone_ref", name="uq_milestones_project_ref"),
        CheckConstraint(
            "(baseline_locked AND baseline_supplier_signed_at IS NOT NULL "
            "AND baseline_customer_signed_at IS NOT NULL) OR "
            "(NOT baseline_locked AND (baseline_supplier_signed_at IS NULL "
            "OR baseline_customer_signed_at IS NULL))",
            name="ck_milestones_lock_matches_signatures",
        ),
        CheckConstraint(
            signature_consistency_sql(BASELINE_PREFIX),
            name="ck_milestones_signature_complete",
        ),
        CheckConstraint(
            "baseline_billable IS NULL OR baseline_billable >= 0",
            name="ck_milestones_baseline_billable_non_negative",
        ),
        Index("idx_milestones_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(nullable=False)
    milestone_ref: Mapped[str] = mapped_column(String(REF_LENGTH), nullable=False)
    name: Mapped[str] = mapped_column(String(NAME_LENGTH), nullable=False)
    description: Mapped[str | None] = mapped_column(String(TEXT_LENGTH), nullable=True)

    baseline_start_date: Mapped[date | None] = mapped_column(nullable=True)
    baseline_end_date: Mapped[date | None] = mapped_column(nullable=True)
    baseline_billable: Mapped[Decimal | None] = mapped_column(nullable=True)

    forecast_start_date: Mapped[date | None] = mapped_column(nullable=True)
    forecast_end_date: Mapped[date | None] = mapped_column(nullable=True)
    forecast_billable: Mapped[Decimal | None] = mapped_column(nullable=True)

    actual_start_date: Mapped[date | None] = mapped_column(nullable=True)
    actual_end_date: Mapped[date | None] = mapped_column(nullable=True)
    actual_billable: Mapped[Decimal | None] = mapped_column(nullable=True)

    baseline_locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    baseline_supplier_signer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    baseline_supplier_signer_name: Mapped[str | None] = mapped_column(
        String(NAME_LENGTH), nullable=True
    )
    baseline_supplier_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    baseline_customer_signer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    baseline_customer_signer_name: Mapped[str | None] = mapped_column(
        String(NAME_LENGTH), nullable=True
    )
    baseline_customer_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<Milestone {self.milestone_ref} locked={self.baseline_locked} "
            f"v{self.version}>"
        )

    @property
    def signatures(self) -> SignaturePair:
        return read_signature_pair(self, BASELINE_PREFIX)

    def apply_signature(self, outcome: SignatureOutcome) -> None:
        write_signature(self, BASELINE_PREFIX, outcome.signature)
        self.baseline_locked = outcome.completed

    def apply_reset(self, outcome: ResetOutcome) -> None:
        clear_signatures(self, BASELINE_PREFIX)
        self.baseline_locked = False

    def to_dto(self) -> MilestoneRecord:
        """Convert ORM model to frozen domain DTO."""
        return MilestoneRecord(
            milestone_id=self.id,
            project_id=self.project_id,
            milestone_ref=self.milestone_ref,
            name=self.name,
            description=self.description,
            baseline=ScheduleValues(
                self.baseline_start_date, self.baseline_end_date, self.baseline_billable
            ),
            forecast=ScheduleValues(
                self.forecast_start_date, self.forecast_end_date, self.forecast_billable
            ),
            actual=ScheduleValues(
                self.actual_start_date, self.actual_end_date, self.actual_billable
            ),
            baseline_locked=self.baseline_locked,
            baseline_signatures=self.signatures,
            version=self.version,
        )
