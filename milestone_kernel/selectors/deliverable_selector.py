"""
Module: milestone_kernel.selectors.deliverable_selector
Responsibility: Read access to the deliverables of a milestone, returned as
    DeliverableSnapshot tuples for the Status Calculator.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Deterministic ordering (due_date, then name, then id) so two reads
      of unchanged data yield equal snapshots.

Failure modes:
    - Returns an empty tuple for a milestone with no deliverables (never
      raises on absence of data).
"""

from collections.abc import Iterable
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from milestone_kernel.domain.status import DeliverableSnapshot
from milestone_kernel.models.deliverable import DeliverableModel
from milestone_kernel.selectors.base import BaseSelector


class DeliverableReader(Protocol):
    """Anything that can list a milestone's deliverables."""

    def list_for_milestone(self, milestone_id: UUID) -> tuple[DeliverableSnapshot, ...]:
        ...


class DeliverableSelector(BaseSelector[DeliverableModel]):
    """
    SQL implementation of ``DeliverableReader``.

    Guarantees:
        - Each call issues exactly one query; callers fetch once and pass
          the tuple to every derivation that needs it.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def list_for_milestone(self, milestone_id: UUID) -> tuple[DeliverableSnapshot, ...]:
        rows = self.session.execute(
            select(DeliverableModel)
            .where(DeliverableModel.milestone_id == milestone_id)
            .order_by(
                DeliverableModel.due_date,
                DeliverableModel.name,
                DeliverableModel.id,
            )
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def list_for_milestones(
        self, milestone_ids: Iterable[UUID]
    ) -> dict[UUID, tuple[DeliverableSnapshot, ...]]:
        """Batch form of ``list_for_milestone`` for project-level reports."""
        ids = list(milestone_ids)
        grouped: dict[UUID, list[DeliverableSnapshot]] = {mid: [] for mid in ids}
        if not ids:
            return {}

        rows = self.session.execute(
            select(DeliverableModel)
            .where(DeliverableModel.milestone_id.in_(ids))
            .order_by(
                DeliverableModel.due_date,
                DeliverableModel.name,
                DeliverableModel.id,
            )
        ).scalars().all()
        for row in rows:
            grouped[row.milestone_id].append(row.to_dto())
        return {mid: tuple(items) for mid, items in grouped.items()}
