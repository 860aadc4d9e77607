"""
MilestoneService -- baseline commitment and acceptance certificate workflow.

Responsibility:
    The only write path for milestone sign-off.  Reads the record fresh,
    asks the Permission Gate and the Approval State Machine for a decision,
    persists it with a conditional (versioned) write, audits it and logs
    it.  Also assembles the read models callers display.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain layer
    (``domain.status``, ``domain.approval``, ``domain.permissions``).

Invariants enforced:
    - Decisions are made from state read inside the writing transaction
      (``SELECT ... FOR UPDATE`` with ``populate_existing``), never from a
      view the caller loaded earlier.
    - Milestone and certificate rows are written with a version check.  A
      lost race (StaleDataError) rolls back, re-reads and decides again,
      at most ``max_write_attempts`` times.  A rejected precondition is
      never retried.
    - Every baseline lock appends a MilestoneBaselineVersion row in the
      same transaction.
    - At most one certificate per milestone, backed by a UNIQUE constraint
      for concurrent generate() calls.

Failure modes:
    - MilestoneNotFoundError / CertificateNotFoundError.
    - SigningRoleForbiddenError, AdminOnlyError, OperationForbiddenError.
    - AlreadySignedError, BaselineLockedError, BaselineNotLockedError,
      MilestoneNotCompletedError, CertificateAlreadyExistsError.
    - ConcurrentModificationError after exhausting write attempts, or when
      another project's same-ref milestone took the certificate number in
      the same millisecond.
    - InvalidFieldValueError for a bad signatory role or schedule value.

Audit relevance:
    Every mutation writes an AuditEvent in the same transaction.
    reset_baseline and generate_certificate are always audited and logged;
    a confirmation prompt is a presentation concern.  Reset does not
    notify the original signers.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from milestone_kernel.db.types import round_money
from milestone_kernel.domain.approval import (
    ApprovalKind,
    SignatoryRole,
    SignatureOutcome,
    check_generate,
    plan_reset,
    plan_signature,
)
from milestone_kernel.domain.clock import Clock, SystemClock
from milestone_kernel.domain.dtos import (
    BaselineVersionRecord,
    BaselineView,
    BillableMilestone,
    CertificateRecord,
    CertificateView,
    MilestoneRecord,
    MilestoneView,
    ProjectSummary,
    ScheduleValues,
)
from milestone_kernel.domain.identity import Actor
from milestone_kernel.domain.permissions import (
    GateContext,
    allowed_actions,
    can_edit_baseline_fields,
    can_edit_forecast,
    can_generate_certificate,
)
from milestone_kernel.domain.status import (
    CertificateStatus,
    DeliverableSnapshot,
    MilestoneStatus,
    calculate_variance,
    derive_baseline_status,
    derive_rollup,
    is_baseline_breached,
    latest_due_date,
)
from milestone_kernel.exceptions import (
    BaselineLockedError,
    CertificateAlreadyExistsError,
    CertificateNotFoundError,
    ConcurrentModificationError,
    InvalidFieldValueError,
    MilestoneNotFoundError,
    OperationForbiddenError,
)
from milestone_kernel.logging_config import LogContext, get_logger
from milestone_kernel.models.baseline_version import MilestoneBaselineVersionModel
from milestone_kernel.models.certificate import (
    AcceptanceCertificateModel,
    snapshot_deliverables,
)
from milestone_kernel.models.milestone import MilestoneModel
from milestone_kernel.selectors.deliverable_selector import (
    DeliverableReader,
    DeliverableSelector,
)
from milestone_kernel.selectors.milestone_selector import MilestoneSelector
from milestone_kernel.services.auditor_service import AuditorService

logger = get_logger("services.milestone")

T = TypeVar("T")

_UNSET: Any = object()

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _parse_signatory(value: SignatoryRole | str) -> SignatoryRole:
    if isinstance(value, SignatoryRole):
        return value
    try:
        return SignatoryRole(str(value).strip().lower())
    except ValueError:
        raise InvalidFieldValueError(
            "role", value, "must be 'supplier' or 'customer'"
        ) from None


def _parse_billable(field: str, value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidFieldValueError(field, value, "is not a decimal amount") from None
    if not amount.is_finite():
        raise InvalidFieldValueError(field, value, "is not a decimal amount")
    if amount < 0:
        raise InvalidFieldValueError(field, value, "must not be negative")
    return amount


class MilestoneService:
    """
    Orchestrates the two-party sign-off workflow for milestones.

    Contract:
        Every public mutating method owns its transaction: it commits on
        success and rolls back and re-raises on any failure.  Results are
        frozen DTOs, never ORM entities.

    Guarantees:
        - sign A then sign B ends in the same state as sign B then sign A.
        - Concurrent sign A and sign B end ``locked`` with both signatures;
          the server-observed write order decides which one locks.

    Non-goals:
        - Authentication or role lookup (``Actor`` is passed in).
        - Notifying anyone about resets or signatures.
    """

    def __init__(
        self,
        session: Session,
        deliverable_reader: DeliverableReader | None = None,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
        admin_may_sign: bool = False,
        max_write_attempts: int = 3,
        certificate_prefix: str = "CERT",
    ):
        if max_write_attempts < 1:
            raise ValueError("max_write_attempts must be at least 1")
        self._session = session
        self._clock = clock or SystemClock()
        self._deliverables = deliverable_reader or DeliverableSelector(session)
        self._auditor = auditor or AuditorService(session, self._clock)
        self._selector = MilestoneSelector(session)
        self._admin_may_sign = admin_may_sign
        self._max_write_attempts = max_write_attempts
        self._certificate_prefix = certificate_prefix

    # =========================================================================
    # Transaction helpers
    # =========================================================================

    def _write(
        self,
        operation: str,
        entity_type: str,
        entity_id: UUID,
        attempt: Callable[[], T],
    ) -> T:
        """
        Run ``attempt`` and commit, re-running it after a lost version race.

        ``attempt`` must re-read everything it decides on.
        """
        for attempt_no in range(1, self._max_write_attempts + 1):
            try:
                result = attempt()
                self._session.commit()
                return result
            except StaleDataError:
                self._session.rollback()
                logger.warning(
                    "write_conflict_retry",
                    extra={
                        "entity_type": entity_type,
                        "entity_id": str(entity_id),
                        "attempt": attempt_no,
                        "max_attempts": self._max_write_attempts,
                    },
                )
            except Exception:
                self._session.rollback()
                raise

        logger.error(
            "write_conflict_exhausted",
            extra={
                "operation": operation,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "attempts": self._max_write_attempts,
            },
        )
        raise ConcurrentModificationError(
            entity_type, str(entity_id), self._max_write_attempts
        )

    def _lock_milestone(self, milestone_id: UUID) -> MilestoneModel:
        milestone = self._session.execute(
            select(MilestoneModel)
            .where(MilestoneModel.id == milestone_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if milestone is None:
            raise MilestoneNotFoundError(str(milestone_id))
        return milestone

    def _lock_certificate(self, certificate_id: UUID) -> AcceptanceCertificateModel:
        certificate = self._session.execute(
            select(AcceptanceCertificateModel)
            .where(AcceptanceCertificateModel.id == certificate_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if certificate is None:
            raise CertificateNotFoundError(str(certificate_id))
        return certificate

    def _require_milestone(self, milestone_id: UUID) -> MilestoneRecord:
        record = self._selector.get(milestone_id)
        if record is None:
            raise MilestoneNotFoundError(str(milestone_id))
        return record

    # =========================================================================
    # Baseline commitment
    # =========================================================================

    def sign_baseline(
        self,
        milestone_id: UUID,
        role: SignatoryRole | str,
        actor: Actor,
    ) -> MilestoneRecord:
        """
        Sign the milestone baseline as ``role``.

        The second signature locks the baseline and records a committed
        baseline version.
        """
        signatory = _parse_signatory(role)

        def attempt() -> tuple[MilestoneRecord, SignatureOutcome]:
            milestone = self._lock_milestone(milestone_id)
            outcome = plan_signature(
                ApprovalKind.BASELINE,
                milestone.id,
                milestone.signatures,
                signatory,
                actor,
                self._clock.now(),
                locked=milestone.baseline_locked,
                admin_may_sign=self._admin_may_sign,
            )
            milestone.apply_signature(outcome)
            milestone.updated_by_id = actor.user_id
            self._session.flush()

            self._auditor.record_baseline_signed(outcome, actor)
            if outcome.completed:
                version = self._append_baseline_version(milestone, outcome)
                self._auditor.record_baseline_locked(
                    milestone.id,
                    version,
                    ScheduleValues(
                        milestone.baseline_start_date,
                        milestone.baseline_end_date,
                        milestone.baseline_billable,
                    ),
                    actor,
                )
            return milestone.to_dto(), outcome

        with LogContext.bind(
            operation="sign_baseline",
            milestone_id=milestone_id,
            actor_id=actor.user_id,
        ):
            record, outcome = self._write(
                "sign_baseline", "Milestone", milestone_id, attempt
            )
            logger.info(
                "baseline_signed",
                extra={
                    "signatory": signatory.value,
                    "actor_role": actor.role.value,
                    "from_state": outcome.previous_state.value,
                    "to_state": outcome.new_state.value,
                },
            )
            if outcome.completed:
                logger.info(
                    "baseline_locked",
                    extra={"milestone_ref": record.milestone_ref},
                )
        return record

    def _append_baseline_version(
        self, milestone: MilestoneModel, outcome: SignatureOutcome
    ) -> int:
        version = self._selector.latest_baseline_version(milestone.id) + 1
        supplier = outcome.signatures.supplier
        customer = outcome.signatures.customer
        self._session.add(
            MilestoneBaselineVersionModel(
                milestone_id=milestone.id,
                version=version,
                baseline_start_date=milestone.baseline_start_date,
                baseline_end_date=milestone.baseline_end_date,
                baseline_billable=milestone.baseline_billable,
                supplier_signer_id=supplier.signer_id,
                supplier_signer_name=supplier.signer_name,
                supplier_signed_at=supplier.signed_at,
                customer_signer_id=customer.signer_id,
                customer_signer_name=customer.signer_name,
                customer_signed_at=customer.signed_at,
                locked_at=outcome.signature.signed_at,
            )
        )
        self._session.flush()
        return version

    def reset_baseline(self, milestone_id: UUID, actor: Actor) -> MilestoneRecord:
        """
        Administrative reset: clear both baseline signatures and unlock.

        The committed version stays in the baseline version history.
        """

        def attempt():
            milestone = self._lock_milestone(milestone_id)
            outcome = plan_reset(
                milestone.id,
                milestone.signatures,
                milestone.baseline_locked,
                actor,
            )
            milestone.apply_reset(outcome)
            milestone.updated_by_id = actor.user_id
            self._session.flush()
            self._auditor.record_baseline_reset(outcome, actor)
            return milestone.to_dto()

        with LogContext.bind(
            operation="reset_baseline",
            milestone_id=milestone_id,
            actor_id=actor.user_id,
        ):
            record = self._write("reset_baseline", "Milestone", milestone_id, attempt)
            logger.warning(
                "baseline_reset",
                extra={
                    "milestone_ref": record.milestone_ref,
                    "actor_role": actor.role.value,
                },
            )
        return record

    def update_baseline_fields(
        self,
        milestone_id: UUID,
        actor: Actor,
        *,
        start_date: date | None = _UNSET,
        end_date: date | None = _UNSET,
        billable: Decimal | None = _UNSET,
    ) -> MilestoneRecord:
        """Edit the baseline triple. Only possible while the baseline is unlocked."""
        if not can_edit_baseline_fields(actor.role, baseline_locked=False):
            raise OperationForbiddenError("update_baseline_fields", actor.role.value)

        def attempt():
            milestone = self._lock_milestone(milestone_id)
            if milestone.baseline_locked:
                raise BaselineLockedError(str(milestone.id), "update_baseline_fields")
            before, after = self._apply_schedule(
                milestone, "baseline", start_date, end_date, billable
            )
            milestone.updated_by_id = actor.user_id
            self._session.flush()
            self._auditor.record_baseline_fields_updated(
                milestone.id, before, after, actor
            )
            return milestone.to_dto()

        with LogContext.bind(
            operation="update_baseline_fields",
            milestone_id=milestone_id,
            actor_id=actor.user_id,
        ):
            record = self._write(
                "update_baseline_fields", "Milestone", milestone_id, attempt
            )
            logger.info("baseline_fields_updated")
        return record

    def update_forecast(
        self,
        milestone_id: UUID,
        actor: Actor,
        *,
        start_date: date | None = _UNSET,
        end_date: date | None = _UNSET,
        billable: Decimal | None = _UNSET,
    ) -> MilestoneRecord:
        """Edit the forecast triple. Allowed whether or not the baseline is locked."""
        if not can_edit_forecast(actor.role):
            raise OperationForbiddenError("update_forecast", actor.role.value)

        def attempt():
            milestone = self._lock_milestone(milestone_id)
            before, after = self._apply_schedule(
                milestone, "forecast", start_date, end_date, billable
            )
            milestone.updated_by_id = actor.user_id
            self._session.flush()
            self._auditor.record_forecast_updated(milestone.id, before, after, actor)
            return milestone.to_dto()

        with LogContext.bind(
            operation="update_forecast",
            milestone_id=milestone_id,
            actor_id=actor.user_id,
        ):
            record = self._write("update_forecast", "Milestone", milestone_id, attempt)
            logger.info("forecast_updated")
        return record

    @staticmethod
    def _apply_schedule(
        milestone: MilestoneModel,
        prefix: str,
        start_date: Any,
        end_date: Any,
        billable: Any,
    ) -> tuple[ScheduleValues, ScheduleValues]:
        before = ScheduleValues(
            getattr(milestone, f"{prefix}_start_date"),
            getattr(milestone, f"{prefix}_end_date"),
            getattr(milestone, f"{prefix}_billable"),
        )
        after = ScheduleValues(
            before.start_date if start_date is _UNSET else start_date,
            before.end_date if end_date is _UNSET else end_date,
            before.billable
            if billable is _UNSET
            else _parse_billable(f"{prefix}_billable", billable),
        )
        if (
            after.start_date is not None
            and after.end_date is not None
            and after.end_date < after.start_date
        ):
            raise InvalidFieldValueError(
                f"{prefix}_end_date", after.end_date, "must not precede the start date"
            )

        setattr(milestone, f"{prefix}_start_date", after.start_date)
        setattr(milestone, f"{prefix}_end_date", after.end_date)
        setattr(milestone, f"{prefix}_billable", after.billable)
        return before, after

    # =========================================================================
    # Acceptance certificate
    # =========================================================================

    def _certificate_number(self, milestone_ref: str, at: datetime) -> str:
        return f"{self._certificate_prefix}-{milestone_ref}-{_base36(int(at.timestamp() * 1000))}"

    def generate_certificate(self, milestone_id: UUID, actor: Actor) -> CertificateRecord:
        """
        Raise the acceptance certificate for a completed milestone.

        The payment value and deliverable list are snapshotted now; later
        forecast edits do not change the certificate.
        """
        if not can_generate_certificate(
            actor.role, MilestoneStatus.COMPLETED, has_certificate=False
        ):
            raise OperationForbiddenError("generate_certificate", actor.role.value)

        with LogContext.bind(
            operation="generate_certificate",
            milestone_id=milestone_id,
            actor_id=actor.user_id,
        ):
            try:
                milestone = self._lock_milestone(milestone_id)
                deliverables = self._deliverables.list_for_milestone(milestone.id)
                rollup = derive_rollup(deliverables)
                existing = self._selector.certificate_for_milestone(milestone.id)

                check_generate(
                    milestone.id,
                    rollup.status,
                    existing.certificate_id if existing else None,
                )
                now = self._clock.now()
                certificate = AcceptanceCertificateModel(
                    milestone_id=milestone.id,
                    certificate_number=self._certificate_number(
                        milestone.milestone_ref, now
                    ),
                    milestone_ref=milestone.milestone_ref,
                    milestone_name=milestone.name,
                    payment_value=round_money(milestone.forecast_billable or Decimal("0")),
                    deliverables_snapshot=snapshot_deliverables(deliverables),
                    status=CertificateStatus.DRAFT.value,
                    generated_by_id=actor.user_id,
                    generated_at=now,
                    created_by_id=actor.user_id,
                )
                self._session.add(certificate)
                self._session.flush()

                self._auditor.record_certificate_generated(
                    certificate.id,
                    milestone.id,
                    certificate.certificate_number,
                    certificate.payment_value,
                    rollup.deliverable_count,
                    actor,
                )
                record = certificate.to_dto()
                self._session.commit()
            except IntegrityError:
                self._session.rollback()
                existing = self._selector.certificate_for_milestone(milestone_id)
                if existing is None:
                    # Certificate number taken by a same-ref milestone of another project.
                    logger.warning("certificate_number_collision")
                    raise ConcurrentModificationError(
                        "AcceptanceCertificate", str(milestone_id), 1
                    ) from None
                logger.info(
                    "certificate_generate_lost_race",
                    extra={"certificate_id": str(existing.certificate_id)},
                )
                raise CertificateAlreadyExistsError(
                    str(milestone_id), str(existing.certificate_id)
                ) from None
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "certificate_generated",
                extra={
                    "certificate_id": str(record.certificate_id),
                    "certificate_number": record.certificate_number,
                    "payment_value": str(record.payment_value),
                },
            )
        return record

    def sign_certificate(
        self,
        certificate_id: UUID,
        role: SignatoryRole | str,
        actor: Actor,
    ) -> CertificateRecord:
        """Sign the acceptance certificate as ``role``."""
        signatory = _parse_signatory(role)

        def attempt() -> tuple[CertificateRecord, SignatureOutcome]:
            certificate = self._lock_certificate(certificate_id)
            outcome = plan_signature(
                ApprovalKind.CERTIFICATE,
                certificate.id,
                certificate.signatures,
                signatory,
                actor,
                self._clock.now(),
                admin_may_sign=self._admin_may_sign,
            )
            certificate.apply_signature(outcome)
            certificate.updated_by_id = actor.user_id
            self._session.flush()
            self._auditor.record_certificate_signed(outcome, actor)
            if outcome.completed:
                self._auditor.record_certificate_fully_signed(
                    certificate.id,
                    certificate.certificate_number,
                    certificate.payment_value,
                    actor,
                )
            return certificate.to_dto(), outcome

        with LogContext.bind(
            operation="sign_certificate",
            certificate_id=certificate_id,
            actor_id=actor.user_id,
        ):
            record, outcome = self._write(
                "sign_certificate", "AcceptanceCertificate", certificate_id, attempt
            )
            logger.info(
                "certificate_signed",
                extra={
                    "signatory": signatory.value,
                    "actor_role": actor.role.value,
                    "status": record.status.value,
                },
            )
            if outcome.completed:
                logger.info(
                    "certificate_fully_signed",
                    extra={"certificate_number": record.certificate_number},
                )
        return record

    def get_certificate(self, certificate_id: UUID) -> CertificateRecord:
        record = self._selector.get_certificate(certificate_id)
        if record is None:
            raise CertificateNotFoundError(str(certificate_id))
        return record

    def get_certificate_for_milestone(self, milestone_id: UUID) -> CertificateRecord | None:
        self._require_milestone(milestone_id)
        return self._selector.certificate_for_milestone(milestone_id)

    # =========================================================================
    # Read models
    # =========================================================================

    def get_milestone_view(
        self, milestone_id: UUID, actor: Actor | None = None
    ) -> MilestoneView:
        """
        Assemble the milestone as a caller sees it.

        Deliverables are fetched once and status, progress and breach are
        all derived from that one snapshot.  When ``actor`` is given the
        view lists the actions the Permission Gate would allow them.
        """
        record = self._require_milestone(milestone_id)
        deliverables = self._deliverables.list_for_milestone(milestone_id)
        certificate = self._selector.certificate_for_milestone(milestone_id)
        return self._build_view(record, deliverables, certificate, actor)

    def _build_view(
        self,
        record: MilestoneRecord,
        deliverables: tuple[DeliverableSnapshot, ...],
        certificate: CertificateRecord | None,
        actor: Actor | None,
    ) -> MilestoneView:
        rollup = derive_rollup(deliverables)
        signatures = record.baseline_signatures

        baseline = BaselineView(
            status=derive_baseline_status(
                record.baseline_locked,
                signatures.supplier is not None,
                signatures.customer is not None,
            ),
            locked=record.baseline_locked,
            values=record.baseline,
            supplier_signature=signatures.supplier,
            customer_signature=signatures.customer,
        )

        certificate_view = None
        if certificate is not None:
            certificate_view = CertificateView(
                certificate_id=certificate.certificate_id,
                certificate_number=certificate.certificate_number,
                status=certificate.status,
                value=certificate.payment_value,
                supplier_signature=certificate.signatures.supplier,
                customer_signature=certificate.signatures.customer,
            )

        actions = frozenset()
        if actor is not None:
            actions = allowed_actions(
                actor.role,
                GateContext(
                    baseline_locked=record.baseline_locked,
                    baseline_signatures=signatures,
                    milestone_status=rollup.status,
                    certificate_signatures=certificate.signatures if certificate else None,
                ),
                admin_may_sign=self._admin_may_sign,
            )

        return MilestoneView(
            milestone_id=record.milestone_id,
            project_id=record.project_id,
            milestone_ref=record.milestone_ref,
            name=record.name,
            status=rollup.status,
            progress=rollup.progress,
            deliverable_count=rollup.deliverable_count,
            baseline=baseline,
            forecast=record.forecast,
            actual=record.actual,
            variance=calculate_variance(record.forecast.billable, record.baseline.billable),
            baseline_breached=is_baseline_breached(record.baseline.end_date, deliverables),
            certificate=certificate_view,
            allowed_actions=actions,
        )

    def list_baseline_versions(self, milestone_id: UUID) -> list[BaselineVersionRecord]:
        self._require_milestone(milestone_id)
        return self._selector.baseline_versions(milestone_id)

    def list_billable_milestones(self, project_id: UUID) -> list[BillableMilestone]:
        """
        Milestones with a positive forecast billable, for invoicing.

        The expected date is the latest deliverable due date, falling back
        to the forecast end and then the baseline end.
        """
        records = [
            r
            for r in self._selector.list_for_project(project_id)
            if r.forecast.billable is not None and r.forecast.billable > 0
        ]
        ids = [r.milestone_id for r in records]
        deliverables = self._deliverables_for(ids)
        certificates = self._selector.certificates_for_milestones(ids)

        result = []
        for record in records:
            certificate = certificates.get(record.milestone_id)
            expected = (
                latest_due_date(deliverables.get(record.milestone_id, ()))
                or record.forecast.end_date
                or record.baseline.end_date
            )
            result.append(
                BillableMilestone(
                    milestone_id=record.milestone_id,
                    milestone_ref=record.milestone_ref,
                    name=record.name,
                    billable=record.forecast.billable,
                    expected_date=expected,
                    certificate_status=certificate.status if certificate else None,
                    ready_to_bill=bool(
                        certificate and certificate.status is CertificateStatus.SIGNED
                    ),
                )
            )
        return result

    def get_project_summary(self, project_id: UUID) -> ProjectSummary:
        records = self._selector.list_for_project(project_id)
        ids = [r.milestone_id for r in records]
        deliverables = self._deliverables_for(ids)
        certificates = self._selector.certificates_for_milestones(ids)

        by_status: Counter[MilestoneStatus] = Counter(
            {status: 0 for status in MilestoneStatus}
        )
        for record in records:
            rollup = derive_rollup(deliverables.get(record.milestone_id, ()))
            by_status[rollup.status] += 1

        return ProjectSummary(
            project_id=project_id,
            milestone_count=len(records),
            by_status=dict(by_status),
            locked_baselines=sum(1 for r in records if r.baseline_locked),
            signed_certificates=sum(
                1 for c in certificates.values() if c.status is CertificateStatus.SIGNED
            ),
            baseline_billable=sum(
                (r.baseline.billable or Decimal("0") for r in records), Decimal("0")
            ),
            forecast_billable=sum(
                (r.forecast.billable or Decimal("0") for r in records), Decimal("0")
            ),
        )

    def _deliverables_for(
        self, milestone_ids: list[UUID]
    ) -> dict[UUID, tuple[DeliverableSnapshot, ...]]:
        batch = getattr(self._deliverables, "list_for_milestones", None)
        if batch is not None:
            return batch(milestone_ids)
        return {mid: self._deliverables.list_for_milestone(mid) for mid in milestone_ids}

