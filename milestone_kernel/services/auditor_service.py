"""
AuditorService -- tamper-evident audit trail for sign-off actions.

Responsibility:
    Creates immutable, hash-chained audit events for every baseline and
    certificate action, and validates the chain on demand.

Architecture position:
    Kernel > Services -- imperative shell, called by MilestoneService inside
    the same transaction as the change being audited.

Invariants enforced:
    - Append-only: audit events are never modified or deleted (ORM listener).
    - Chain integrity per entity:
      ``hash = H(entity_type | entity_id | action | payload_hash | prev_hash)``.
    - seq is the next number in the entity's chain; the
      UNIQUE(entity_type, entity_id, seq) constraint rejects a second writer
      appending the same link.

Failure modes:
    - AuditChainBrokenError: a stored hash does not match its recomputed
      value, or prev_hash does not match the predecessor's hash.

Audit relevance:
    This IS the audit service.  Each ``record_*`` method names one action
    of the sign-off workflow.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from milestone_kernel.domain.approval import ResetOutcome, SignatureOutcome
from milestone_kernel.domain.clock import Clock, SystemClock
from milestone_kernel.domain.dtos import ScheduleValues
from milestone_kernel.domain.identity import Actor
from milestone_kernel.exceptions import AuditChainBrokenError
from milestone_kernel.logging_config import get_logger
from milestone_kernel.models.audit_event import AuditAction, AuditEvent
from milestone_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")

MILESTONE_ENTITY = "Milestone"
CERTIFICATE_ENTITY = "AcceptanceCertificate"


@dataclass(frozen=True)
class AuditTraceEntry:
    seq: int
    action: AuditAction
    occurred_at: datetime
    actor_id: UUID
    actor_role: str
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit events for one entity, in chain order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(e.action for e in self.entries)

    @property
    def last_action(self) -> AuditAction | None:
        return self.entries[-1].action if self.entries else None


def _schedule_payload(values: ScheduleValues) -> dict[str, Any]:
    return {
        "start_date": values.start_date,
        "end_date": values.end_date,
        "billable": values.billable,
    }


class AuditorService:
    """
    Creates and validates hash-chained audit events.

    Non-goals:
        - Does NOT call ``session.commit()`` -- the caller owns the
          transaction, so an audit row exists iff the change it describes
          was committed.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _last_link(self, entity_type: str, entity_id: UUID) -> AuditEvent | None:
        return self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _create_audit_event(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor: Actor,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        last = self._last_link(entity_type, entity_id)
        seq = (last.seq + 1) if last else 1
        prev_hash = last.hash if last else None

        payload_data = to_json_safe(payload or {})
        payload_hash = hash_payload(payload_data)
        event_hash = hash_audit_event(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        audit_event = AuditEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            seq=seq,
            action=action.value,
            actor_id=actor.user_id,
            actor_role=actor.role.value,
            occurred_at=self._clock.now(),
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=event_hash,
        )
        self._session.add(audit_event)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "seq": seq,
            },
        )
        return audit_event

    # Baseline

    def record_baseline_signed(
        self, outcome: SignatureOutcome, actor: Actor
    ) -> AuditEvent:
        return self._create_audit_event(
            MILESTONE_ENTITY,
            outcome.entity_id,
            AuditAction.BASELINE_SIGNED,
            actor,
            {
                "signature": outcome.signature.to_dict(),
                "from_state": outcome.previous_state.value,
                "to_state": outcome.new_state.value,
            },
        )

    def record_baseline_locked(
        self,
        milestone_id: UUID,
        baseline_version: int,
        baseline: ScheduleValues,
        actor: Actor,
    ) -> AuditEvent:
        return self._create_audit_event(
            MILESTONE_ENTITY,
            milestone_id,
            AuditAction.BASELINE_LOCKED,
            actor,
            {"baseline_version": baseline_version, "baseline": _schedule_payload(baseline)},
        )

    def record_baseline_reset(self, outcome: ResetOutcome, actor: Actor) -> AuditEvent:
        cleared = [
            s.to_dict()
            for s in (outcome.cleared.supplier, outcome.cleared.customer)
            if s is not None
        ]
        return self._create_audit_event(
            MILESTONE_ENTITY,
            outcome.entity_id,
            AuditAction.BASELINE_RESET,
            actor,
            {"cleared_signatures": cleared},
        )

    def record_baseline_fields_updated(
        self,
        milestone_id: UUID,
        before: ScheduleValues,
        after: ScheduleValues,
        actor: Actor,
    ) -> AuditEvent:
        return self._create_audit_event(
            MILESTONE_ENTITY,
            milestone_id,
            AuditAction.BASELINE_FIELDS_UPDATED,
            actor,
            {"before": _schedule_payload(before), "after": _schedule_payload(after)},
        )

    def record_forecast_updated(
        self,
        milestone_id: UUID,
        before: ScheduleValues,
        after: ScheduleValues,
        actor: Actor,
    ) -> AuditEvent:
        return self._create_audit_event(
            MILESTONE_ENTITY,
            milestone_id,
            AuditAction.FORECAST_UPDATED,
            actor,
            {"before": _schedule_payload(before), "after": _schedule_payload(after)},
        )

    # Certificate

    def record_certificate_generated(
        self,
        certificate_id: UUID,
        milestone_id: UUID,
        certificate_number: str,
        payment_value,
        deliverable_count: int,
        actor: Actor,
    ) -> AuditEvent:
        return self._create_audit_event(
            CERTIFICATE_ENTITY,
            certificate_id,
            AuditAction.CERTIFICATE_GENERATED,
            actor,
            {
                "milestone_id": milestone_id,
                "certificate_number": certificate_number,
                "payment_value": payment_value,
                "deliverable_count": deliverable_count,
            },
        )

    def record_certificate_signed(
        self, outcome: SignatureOutcome, actor: Actor
    ) -> AuditEvent:
        return self._create_audit_event(
            CERTIFICATE_ENTITY,
            outcome.entity_id,
            AuditAction.CERTIFICATE_SIGNED,
            actor,
            {
                "signature": outcome.signature.to_dict(),
                "from_state": outcome.previous_state.value,
                "to_state": outcome.new_state.value,
            },
        )

    def record_certificate_fully_signed(
        self,
        certificate_id: UUID,
        certificate_number: str,
        payment_value,
        actor: Actor,
    ) -> AuditEvent:
        return self._create_audit_event(
            CERTIFICATE_ENTITY,
            certificate_id,
            AuditAction.CERTIFICATE_FULLY_SIGNED,
            actor,
            {"certificate_number": certificate_number, "payment_value": payment_value},
        )

    # Queries

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=e.seq,
                    action=AuditAction(e.action),
                    occurred_at=e.occurred_at,
                    actor_id=e.actor_id,
                    actor_role=e.actor_role,
                    payload=e.payload or {},
                    hash=e.hash,
                )
                for e in events
            ),
        )

    def validate_chain(self, entity_type: str, entity_id: UUID) -> bool:
        """
        Validate one entity's audit chain.

        Raises:
            AuditChainBrokenError: If any link fails validation.
        """
        events = self._session.execute(
            select(AuditEvent)
            .where(
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == entity_id,
            )
            .order_by(AuditEvent.seq)
        ).scalars().all()

        expected_prev: str | None = None
        for event in events:
            if event.prev_hash != expected_prev:
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "check": "prev_hash"},
                )
                raise AuditChainBrokenError(
                    str(event.id), expected_prev or "None", event.prev_hash or "None"
                )

            expected_hash = hash_audit_event(
                entity_type=event.entity_type,
                entity_id=str(event.entity_id),
                action=event.action,
                payload_hash=hash_payload(event.payload or {}),
                prev_hash=event.prev_hash,
            )
            if event.hash != expected_hash or event.payload_hash != hash_payload(
                event.payload or {}
            ):
                logger.critical(
                    "audit_chain_broken",
                    extra={"audit_event_id": str(event.id), "check": "hash"},
                )
                raise AuditChainBrokenError(str(event.id), expected_hash, event.hash)

            expected_prev = event.hash

        return True
