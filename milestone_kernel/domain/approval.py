"""
Approval state machine (``milestone_kernel.domain.approval``).

Responsibility
--------------
Two-party sign-off logic shared by the baseline commitment and the
acceptance certificate.  Given the signature state read at decision time,
decides whether a sign / reset / generate request is legal and what the
next state is.  Persisting the decision is the service's job.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and functions.  ZERO I/O.
No imports from ``db/``, ``models/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* ``APPROVAL_TRANSITIONS`` defines the only valid state changes.
  ``RESET`` (locked -> not committed) applies to the baseline only.
* ``LOCKED`` iff both signatures are present; the state is always derived
  from the signature pair, never stored independently of it.
* A signature is written once.  Re-signing raises ``AlreadySignedError``;
  it is never a silent no-op.
* Admin does not sign for a role it does not hold unless
  ``admin_may_sign`` is switched on.

Failure modes
-------------
* ``SigningRoleForbiddenError`` / ``AdminOnlyError`` -- wrong caller.
* ``AlreadySignedError``, ``BaselineLockedError``, ``BaselineNotLockedError``,
  ``MilestoneNotCompletedError``, ``CertificateAlreadyExistsError``,
  ``InvalidApprovalTransitionError`` -- stale view / wrong source state.
None are retried; the caller should re-read and decide again.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from milestone_kernel.domain.identity import (
    CUSTOMER_SIDE_ROLES,
    SUPPLIER_SIDE_ROLES,
    Actor,
    Role,
)
from milestone_kernel.domain.status import (
    BaselineStatus,
    CertificateStatus,
    MilestoneStatus,
)
from milestone_kernel.exceptions import (
    AdminOnlyError,
    AlreadySignedError,
    BaselineLockedError,
    BaselineNotLockedError,
    CertificateAlreadyExistsError,
    InvalidApprovalTransitionError,
    MilestoneNotCompletedError,
    SigningRoleForbiddenError,
)


class ApprovalKind(str, Enum):
    BASELINE = "baseline"
    CERTIFICATE = "certificate"


class SignatoryRole(str, Enum):
    """The two parties to every approval."""

    SUPPLIER = "supplier"
    CUSTOMER = "customer"

    @property
    def counterpart(self) -> SignatoryRole:
        if self is SignatoryRole.SUPPLIER:
            return SignatoryRole.CUSTOMER
        return SignatoryRole.SUPPLIER


class ApprovalState(str, Enum):
    NOT_COMMITTED = "not_committed"
    AWAITING_SUPPLIER = "awaiting_supplier"
    AWAITING_CUSTOMER = "awaiting_customer"
    LOCKED = "locked"


APPROVAL_TRANSITIONS: dict[ApprovalState, frozenset[ApprovalState]] = {
    ApprovalState.NOT_COMMITTED: frozenset({
        ApprovalState.AWAITING_SUPPLIER,
        ApprovalState.AWAITING_CUSTOMER,
    }),
    ApprovalState.AWAITING_SUPPLIER: frozenset({ApprovalState.LOCKED}),
    ApprovalState.AWAITING_CUSTOMER: frozenset({ApprovalState.LOCKED}),
    # Reset. Baseline only.
    ApprovalState.LOCKED: frozenset({ApprovalState.NOT_COMMITTED}),
}

SIGNATORY_ROLES: dict[SignatoryRole, frozenset[Role]] = {
    SignatoryRole.SUPPLIER: SUPPLIER_SIDE_ROLES,
    SignatoryRole.CUSTOMER: CUSTOMER_SIDE_ROLES,
}

_BASELINE_STATUS: dict[ApprovalState, BaselineStatus] = {
    ApprovalState.NOT_COMMITTED: BaselineStatus.NOT_COMMITTED,
    ApprovalState.AWAITING_SUPPLIER: BaselineStatus.AWAITING_SUPPLIER,
    ApprovalState.AWAITING_CUSTOMER: BaselineStatus.AWAITING_CUSTOMER,
    ApprovalState.LOCKED: BaselineStatus.LOCKED,
}

_CERTIFICATE_STATUS: dict[ApprovalState, CertificateStatus] = {
    ApprovalState.NOT_COMMITTED: CertificateStatus.DRAFT,
    ApprovalState.AWAITING_SUPPLIER: CertificateStatus.PENDING_SUPPLIER,
    ApprovalState.AWAITING_CUSTOMER: CertificateStatus.PENDING_CUSTOMER,
    ApprovalState.LOCKED: CertificateStatus.SIGNED,
}


def baseline_status_for(state: ApprovalState) -> BaselineStatus:
    return _BASELINE_STATUS[state]


def certificate_status_for(state: ApprovalState) -> CertificateStatus:
    return _CERTIFICATE_STATUS[state]


def may_act_as(
    actor_role: Role,
    signatory: SignatoryRole,
    admin_may_sign: bool = False,
) -> bool:
    """Whether a caller holding ``actor_role`` may sign as ``signatory``."""
    if actor_role is Role.ADMIN:
        return admin_may_sign
    return actor_role in SIGNATORY_ROLES[signatory]


# =========================================================================
# Signature value objects
# =========================================================================


@dataclass(frozen=True)
class Signature:
    """One party's signature. Persisted as {role, signer_id, signer_name, signed_at}."""

    role: SignatoryRole
    signer_id: UUID
    signer_name: str
    signed_at: datetime

    def to_dict(self) -> dict:
        return {
            "role": self.role.value,
            "signer_id": str(self.signer_id),
            "signer_name": self.signer_name,
            "signed_at": self.signed_at.isoformat(),
        }


@dataclass(frozen=True)
class SignaturePair:
    """Supplier and customer signatures of one approval."""

    supplier: Signature | None = None
    customer: Signature | None = None

    def get(self, role: SignatoryRole) -> Signature | None:
        return self.supplier if role is SignatoryRole.SUPPLIER else self.customer

    def has(self, role: SignatoryRole) -> bool:
        return self.get(role) is not None

    def with_signature(self, signature: Signature) -> SignaturePair:
        if signature.role is SignatoryRole.SUPPLIER:
            return SignaturePair(supplier=signature, customer=self.customer)
        return SignaturePair(supplier=self.supplier, customer=signature)

    @property
    def is_complete(self) -> bool:
        return self.supplier is not None and self.customer is not None

    @property
    def state(self) -> ApprovalState:
        if self.is_complete:
            return ApprovalState.LOCKED
        if self.supplier is not None:
            return ApprovalState.AWAITING_CUSTOMER
        if self.customer is not None:
            return ApprovalState.AWAITING_SUPPLIER
        return ApprovalState.NOT_COMMITTED


EMPTY_SIGNATURES = SignaturePair()


# =========================================================================
# Outcomes
# =========================================================================


@dataclass(frozen=True)
class SignatureOutcome:
    """Decision produced by ``plan_signature``."""

    kind: ApprovalKind
    entity_id: UUID
    signature: Signature
    signatures: SignaturePair
    previous_state: ApprovalState
    new_state: ApprovalState

    @property
    def completed(self) -> bool:
        """True when this signature was the second one."""
        return self.new_state is ApprovalState.LOCKED


@dataclass(frozen=True)
class ResetOutcome:
    """Decision produced by ``plan_reset``."""

    entity_id: UUID
    cleared: SignaturePair
    previous_state: ApprovalState
    new_state: ApprovalState = ApprovalState.NOT_COMMITTED


def _check_transition(
    entity_id: UUID,
    from_state: ApprovalState,
    to_state: ApprovalState,
) -> None:
    if to_state not in APPROVAL_TRANSITIONS[from_state]:
        raise InvalidApprovalTransitionError(
            str(entity_id), from_state.value, to_state.value
        )


# =========================================================================
# Transitions
# =========================================================================


def plan_signature(
    kind: ApprovalKind,
    entity_id: UUID,
    current: SignaturePair,
    signatory: SignatoryRole,
    actor: Actor,
    signed_at: datetime,
    *,
    locked: bool = False,
    admin_may_sign: bool = False,
) -> SignatureOutcome:
    """
    Decide a ``sign(signatory)`` transition.

    ``current`` must be the signature state read immediately before this
    call, inside the transaction that will persist the outcome.  Deciding
    from an older read is how both parties end up "awaiting" each other.
    """
    if not may_act_as(actor.role, signatory, admin_may_sign):
        raise SigningRoleForbiddenError(
            actor.role.value, signatory.value, kind.value
        )

    if current.has(signatory):
        raise AlreadySignedError(kind.value, str(entity_id), signatory.value)

    if kind is ApprovalKind.BASELINE and (
        locked or current.state is ApprovalState.LOCKED
    ):
        raise BaselineLockedError(str(entity_id), "sign")

    signature = Signature(
        role=signatory,
        signer_id=actor.user_id,
        signer_name=actor.user_name,
        signed_at=signed_at,
    )
    signatures = current.with_signature(signature)
    previous_state = current.state
    new_state = signatures.state
    _check_transition(entity_id, previous_state, new_state)

    return SignatureOutcome(
        kind=kind,
        entity_id=entity_id,
        signature=signature,
        signatures=signatures,
        previous_state=previous_state,
        new_state=new_state,
    )


def plan_reset(
    milestone_id: UUID,
    current: SignaturePair,
    locked: bool,
    actor: Actor,
) -> ResetOutcome:
    """
    Decide the administrative baseline reset.

    Clears both signatures and the lock together.  Certificates have no
    reset: a signed certificate is a financial record.
    """
    if not actor.is_admin:
        raise AdminOnlyError("reset_baseline", actor.role.value)

    if not locked:
        raise BaselineNotLockedError(str(milestone_id))

    _check_transition(milestone_id, ApprovalState.LOCKED, ApprovalState.NOT_COMMITTED)
    return ResetOutcome(
        entity_id=milestone_id,
        cleared=current,
        previous_state=ApprovalState.LOCKED,
    )


def check_generate(
    milestone_id: UUID,
    milestone_status: MilestoneStatus,
    existing_certificate_id: UUID | None,
) -> None:
    """
    Preconditions of ``generate()``.

    A second call for the same milestone fails; callers wanting
    get-or-create semantics must fetch first.
    """
    if existing_certificate_id is not None:
        raise CertificateAlreadyExistsError(
            str(milestone_id), str(existing_certificate_id)
        )
    if milestone_status is not MilestoneStatus.COMPLETED:
        raise MilestoneNotCompletedError(str(milestone_id), milestone_status.value)
