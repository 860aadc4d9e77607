"""
Module: milestone_kernel.selectors.milestone_selector
Responsibility: Read-only query access to milestones, their acceptance
    certificates and their committed baseline versions.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants enforced:
    - Read-only: No mutations performed on any queried data.
    - DTO convention: all public methods return MilestoneRecord /
      CertificateRecord / BaselineVersionRecord, never ORM models.
    - Project listings are ordered by milestone_ref.

Failure modes:
    - Returns None or an empty collection when nothing matches; raising
      NotFound is the service's decision.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from milestone_kernel.domain.dtos import (
    BaselineVersionRecord,
    CertificateRecord,
    MilestoneRecord,
)
from milestone_kernel.models.baseline_version import MilestoneBaselineVersionModel
from milestone_kernel.models.certificate import AcceptanceCertificateModel
from milestone_kernel.models.milestone import MilestoneModel
from milestone_kernel.selectors.base import BaseSelector


class MilestoneSelector(BaseSelector[MilestoneModel]):
    """
    Selector for milestone and certificate queries.

    Non-goals:
        - Does NOT derive status or progress; that needs deliverables and
          belongs to the Status Calculator.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def get(self, milestone_id: UUID) -> MilestoneRecord | None:
        milestone = self.session.get(
            MilestoneModel, milestone_id, populate_existing=True
        )
        return milestone.to_dto() if milestone else None

    def list_for_project(self, project_id: UUID) -> list[MilestoneRecord]:
        rows = self.session.execute(
            select(MilestoneModel)
            .where(MilestoneModel.project_id == project_id)
            .order_by(MilestoneModel.milestone_ref)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def get_certificate(self, certificate_id: UUID) -> CertificateRecord | None:
        certificate = self.session.get(
            AcceptanceCertificateModel, certificate_id, populate_existing=True
        )
        return certificate.to_dto() if certificate else None

    def certificate_for_milestone(self, milestone_id: UUID) -> CertificateRecord | None:
        certificate = self.session.execute(
            select(AcceptanceCertificateModel).where(
                AcceptanceCertificateModel.milestone_id == milestone_id
            )
        ).scalar_one_or_none()
        return certificate.to_dto() if certificate else None

    def certificates_for_milestones(
        self, milestone_ids: Iterable[UUID]
    ) -> dict[UUID, CertificateRecord]:
        ids = list(milestone_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(AcceptanceCertificateModel).where(
                AcceptanceCertificateModel.milestone_id.in_(ids)
            )
        ).scalars().all()
        return {row.milestone_id: row.to_dto() for row in rows}

    def baseline_versions(self, milestone_id: UUID) -> list[BaselineVersionRecord]:
        rows = self.session.execute(
            select(MilestoneBaselineVersionModel)
            .where(MilestoneBaselineVersionModel.milestone_id == milestone_id)
            .order_by(MilestoneBaselineVersionModel.version)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def latest_baseline_version(self, milestone_id: UUID) -> int:
        """Highest committed version number, 0 if never locked."""
        latest = self.session.execute(
            select(MilestoneBaselineVersionModel.version)
            .where(MilestoneBaselineVersionModel.milestone_id == milestone_id)
            .order_by(MilestoneBaselineVersionModel.version.desc())
            .limit(1)
        ).scalar_one_or_none()
        return latest or 0
