"""
Module: milestone_kernel.models.audit_event
Responsibility: ORM persistence for the tamper-evident audit trail of
    baseline and certificate actions.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listener in
      db/immutability.py).
    - Hash chain per audited entity:
      hash = H(entity_type | entity_id | action | payload_hash | prev_hash).
      Validated by AuditorService.validate_chain.
    - seq is unique per entity, so two writers cannot both append the
      "next" link of the same chain.

Audit relevance:
    Every baseline signature, lock and reset and every certificate
    generation and signature produces one AuditEvent.  reset_baseline and
    generate_certificate are audited whether or not the caller confirmed
    them in the UI.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from milestone_kernel.db.base import Base, UUIDString
from milestone_kernel.db.types import CODE_LENGTH, HASH_LENGTH


class AuditAction(str, Enum):
    """Types of auditable actions."""

    BASELINE_SIGNED = "baseline_signed"
    BASELINE_LOCKED = "baseline_locked"
    BASELINE_RESET = "baseline_reset"
    BASELINE_FIELDS_UPDATED = "baseline_fields_updated"
    FORECAST_UPDATED = "forecast_updated"

    CERTIFICATE_GENERATED = "certificate_generated"
    CERTIFICATE_SIGNED = "certificate_signed"
    CERTIFICATE_FULLY_SIGNED = "certificate_fully_signed"


class AuditEvent(Base):
    """
    Audit event with per-entity hash chain.

    Guarantees:
        - prev_hash is None only for the first event of an entity.

    Non-goals:
        - This model does NOT compute hashes; AuditorService does.
    """

    __tablename__ = "milestone_audit_events"

    __table_args__ = (
        UniqueConstraint(
            "entity_type", "entity_id", "seq",
            name="uq_milestone_audit_events_entity_seq",
        ),
        Index("idx_milestone_audit_entity", "entity_type", "entity_id"),
        Index("idx_milestone_audit_action", "action"),
    )

    entity_type: Mapped[str] = mapped_column(String(CODE_LENGTH), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[str] = mapped_column(String(CODE_LENGTH), nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_role: Mapped[str] = mapped_column(String(CODE_LENGTH), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(HASH_LENGTH), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(HASH_LENGTH), nullable=True)
    hash: Mapped[str] = mapped_column(String(HASH_LENGTH), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} on {self.entity_type}:{self.entity_id}#{self.seq}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
