"""
Module: milestone_kernel.models.deliverable
Responsibility: ORM mapping of the deliverables table, which the milestone
    kernel reads to derive milestone status and progress.
Architecture position: Kernel > Models.  Deliverable CRUD belongs to the
    wider application; the kernel only reads these rows through
    DeliverableSelector.

Invariants enforced:
    - progress within 0..100 when present (ck_deliverables_progress_range).
    - status is one of DeliverableStatus when present.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from milestone_kernel.db.base import TrackedBase, UUIDString
from milestone_kernel.db.types import CODE_LENGTH, NAME_LENGTH
from milestone_kernel.domain.status import DeliverableSnapshot, DeliverableStatus

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in DeliverableStatus)


class DeliverableModel(TrackedBase):
    """A unit of work belonging to exactly one milestone."""

    __tablename__ = "deliverables"

    __table_args__ = (
        CheckConstraint(
            f"status IS NULL OR status IN ({_STATUS_VALUES})",
            name="ck_deliverables_valid_status",
        ),
        CheckConstraint(
            "progress IS NULL OR (progress >= 0 AND progress <= 100)",
            name="ck_deliverables_progress_range",
        ),
        Index("idx_deliverables_milestone", "milestone_id"),
    )

    milestone_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("milestones.id"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(NAME_LENGTH), nullable=False)
    status: Mapped[str | None] = mapped_column(String(CODE_LENGTH), nullable=True)
    progress: Mapped[int | None] = mapped_column(Integer, nullable=True)
    due_date: Mapped[date | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Deliverable {self.name} status={self.status} progress={self.progress}>"

    def to_dto(self) -> DeliverableSnapshot:
        """Convert ORM model to frozen domain DTO."""
        return DeliverableSnapshot(
            deliverable_id=self.id,
            name=self.name,
            status=DeliverableStatus(self.status) if self.status else None,
            progress=self.progress,
            due_date=self.due_date,
        )
