"""
Module: milestone_kernel.models.certificate
Responsibility: ORM persistence for milestone acceptance certificates.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - At most one certificate per milestone (UNIQUE milestone_id).  A
      concurrent second generate() fails on this constraint.
    - status agrees with the signatures present
      (ck_acceptance_certificates_status_matches_signatures).
    - Each signature is all-or-nothing.
    - version is a version_id_col: signing is a conditional UPDATE.
    - The value snapshot (payment_value, milestone_ref/name,
      deliverables_snapshot, certificate_number) never changes, written
      signatures are never edited, and a signed certificate cannot be
      deleted (ORM listeners in db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate certificate for the same milestone.
    - StaleDataError on flush when another signer bumped the version.
    - ImmutabilityViolationError on any snapshot edit or signed deletion.

Audit relevance:
    A signed certificate is the billing evidence for a milestone.  It is
    a financial record, so there is no reset path.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from milestone_kernel.db.base import TrackedBase, UUIDString
from milestone_kernel.db.types import CODE_LENGTH, NAME_LENGTH, REF_LENGTH
from milestone_kernel.domain.approval import (
    SignatureOutcome,
    SignaturePair,
    certificate_status_for,
)
from milestone_kernel.domain.dtos import CertificateRecord
from milestone_kernel.domain.status import (
    CertificateStatus,
    DeliverableSnapshot,
    DeliverableStatus,
)
from milestone_kernel.models.signature_columns import (
    read_signature_pair,
    signature_consistency_sql,
    write_signature,
)

# Fields that form the value snapshot taken at generation time.
SNAPSHOT_FIELDS = (
    "milestone_id",
    "certificate_number",
    "milestone_ref",
    "milestone_name",
    "payment_value",
    "deliverables_snapshot",
    "generated_by_id",
    "generated_at",
)

_STATUS_SIGNATURE_SQL = (
    "(status = 'draft' AND supplier_signed_at IS NULL AND customer_signed_at IS NULL) OR "
    "(status = 'pending_customer' AND supplier_signed_at IS NOT NULL "
    "AND customer_signed_at IS NULL) OR "
    "(status = 'pending_supplier' AND supplier_signed_at IS NULL "
    "AND customer_signed_at IS NOT NULL) OR "
    "(status = 'signed' AND supplier_signed_at IS NOT NULL "
    "AND customer_signed_at IS NOT NULL)"
)


def snapshot_deliverables(deliverables: tuple[DeliverableSnapshot, ...]) -> list[dict]:
    """JSON form of the deliverables a certificate was raised against."""
    return [
        {
            "deliverable_id": str(d.deliverable_id),
            "name": d.name,
            "status": d.status.value if d.status else None,
            "progress": d.progress,
            "due_date": d.due_date.isoformat() if d.due_date else None,
        }
        for d in deliverables
    ]


def _load_snapshot(rows: list[dict] | None) -> tuple[DeliverableSnapshot, ...]:
    return tuple(
        DeliverableSnapshot(
            deliverable_id=UUID(row["deliverable_id"]),
            name=row["name"],
            status=DeliverableStatus(row["status"]) if row.get("status") else None,
            progress=row.get("progress"),
            due_date=date.fromisoformat(row["due_date"]) if row.get("due_date") else None,
        )
        for row in rows or ()
    )


class AcceptanceCertificateModel(TrackedBase):
    """
    Acceptance certificate for one completed milestone.

    Contract:
        Created by MilestoneService.generate_certificate in ``draft``; the
        only later mutation is ``apply_signature``.
    """

    __tablename__ = "acceptance_certificates"

    __table_args__ = (
        CheckConstraint(
            "status IN ('draft', 'pending_supplier', 'pending_customer', 'signed')",
            name="ck_acceptance_certificates_valid_status",
        ),
        CheckConstraint(
            _STATUS_SIGNATURE_SQL,
            name="ck_acceptance_certificates_status_matches_signatures",
        ),
        CheckConstraint(
            signature_consistency_sql(),
            name="ck_acceptance_certificates_signature_complete",
        ),
    )

    milestone_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("milestones.id"),
        nullable=False,
        unique=True,
    )
    certificate_number: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True
    )
    milestone_ref: Mapped[str] = mapped_column(String(REF_LENGTH), nullable=False)
    milestone_name: Mapped[str] = mapped_column(String(NAME_LENGTH), nullable=False)
    payment_value: Mapped[Decimal] = mapped_column(nullable=False)
    deliverables_snapshot: Mapped[list | None] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(
        String(CODE_LENGTH), nullable=False, default=CertificateStatus.DRAFT.value
    )

    supplier_signer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    supplier_signer_name: Mapped[str | None] = mapped_column(
        String(NAME_LENGTH), nullable=True
    )
    supplier_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    customer_signer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    customer_signer_name: Mapped[str | None] = mapped_column(
        String(NAME_LENGTH), nullable=True
    )
    customer_signed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    generated_by_id: Mapped[UUID] = mapped_column(nullable=False)
    generated_at: Mapped[datetime] = mapped_column(nullable=False)

    version: Mapped[int] = mapped_column(nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<AcceptanceCertificate {self.certificate_number} status={self.status}>"

    @property
    def signatures(self) -> SignaturePair:
        return read_signature_pair(self)

    def apply_signature(self, outcome: SignatureOutcome) -> None:
        write_signature(self, "", outcome.signature)
        self.status = certificate_status_for(outcome.new_state).value

    def to_dto(self) -> CertificateRecord:
        """Convert ORM model to frozen domain DTO."""
        return CertificateRecord(
            certificate_id=self.id,
            milestone_id=self.milestone_id,
            certificate_number=self.certificate_number,
            milestone_ref=self.milestone_ref,
            milestone_name=self.milestone_name,
            payment_value=self.payment_value,
            deliverables_snapshot=_load_snapshot(self.deliverables_snapshot),
            status=CertificateStatus(self.status),
            signatures=self.signatures,
            generated_by_id=self.generated_by_id,
            generated_at=self.generated_at,
            version=self.version,
        )
