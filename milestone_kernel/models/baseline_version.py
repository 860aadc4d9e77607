"""
Module: milestone_kernel.models.baseline_version
Responsibility: Append-only record of every baseline commitment.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - UNIQUE(milestone_id, version): versions are numbered 1, 2, ... per
      milestone and a number is never reused.
    - Rows are immutable once written (no UPDATE, no DELETE).

Audit relevance:
    A reset clears the signatures on the milestone row.  This table keeps
    what was committed, by whom and when.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from milestone_kernel.db.base import Base, UUIDString
from milestone_kernel.db.types import NAME_LENGTH
from milestone_kernel.domain.approval import Signature, SignatoryRole
from milestone_kernel.domain.dtos import BaselineVersionRecord, ScheduleValues
from milestone_kernel.exceptions import ImmutabilityViolationError


class MilestoneBaselineVersionModel(Base):
    """A locked baseline, frozen at the moment of the second signature."""

    __tablename__ = "milestone_baseline_versions"

    __table_args__ = (
        UniqueConstraint(
            "milestone_id", "version",
            name="uq_milestone_baseline_versions_version",
        ),
    )

    milestone_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("milestones.id"),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    baseline_start_date: Mapped[date | None] = mapped_column(nullable=True)
    baseline_end_date: Mapped[date | None] = mapped_column(nullable=True)
    baseline_billable: Mapped[Decimal | None] = mapped_column(nullable=True)

    supplier_signer_id: Mapped[UUID] = mapped_column(nullable=False)
    supplier_signer_name: Mapped[str] = mapped_column(String(NAME_LENGTH), nullable=False)
    supplier_signed_at: Mapped[datetime] = mapped_column(nullable=False)

    customer_signer_id: Mapped[UUID] = mapped_column(nullable=False)
    customer_signer_name: Mapped[str] = mapped_column(String(NAME_LENGTH), nullable=False)
    customer_signed_at: Mapped[datetime] = mapped_column(nullable=False)

    locked_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<MilestoneBaselineVersion milestone={self.milestone_id} v{self.version}>"

    def to_dto(self) -> BaselineVersionRecord:
        """Convert ORM model to frozen domain DTO."""
        return BaselineVersionRecord(
            version_id=self.id,
            milestone_id=self.milestone_id,
            version=self.version,
            baseline=ScheduleValues(
                self.baseline_start_date, self.baseline_end_date, self.baseline_billable
            ),
            supplier_signature=Signature(
                role=SignatoryRole.SUPPLIER,
                signer_id=self.supplier_signer_id,
                signer_name=self.supplier_signer_name,
                signed_at=self.supplier_signed_at,
            ),
            customer_signature=Signature(
                role=SignatoryRole.CUSTOMER,
                signer_id=self.customer_signer_id,
                signer_name=self.customer_signer_name,
                signed_at=self.customer_signed_at,
            ),
            locked_at=self.locked_at,
        )


@event.listens_for(MilestoneBaselineVersionModel, "before_update")
def prevent_baseline_version_update(mapper, connection, target):
    """Prevent updates to committed baseline versions."""
    raise ImmutabilityViolationError(
        entity_type="MilestoneBaselineVersion",
        entity_id=str(target.id),
        reason="Committed baseline versions are immutable -- cannot modify",
    )


@event.listens_for(MilestoneBaselineVersionModel, "before_delete")
def prevent_baseline_version_delete(mapper, connection, target):
    """Prevent deletion of committed baseline versions."""
    raise ImmutabilityViolationError(
        entity_type="MilestoneBaselineVersion",
        entity_id=str(target.id),
        reason="Committed baseline versions are immutable -- cannot delete",
    )
