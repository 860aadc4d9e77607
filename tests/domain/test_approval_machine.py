"""
Tests for the Approval State Machine (``milestone_kernel.domain.approval``).

Invariants tested:
- APPROVAL_TRANSITIONS defines the only legal state changes.
- LOCKED iff both signatures present; state derived from the pair.
- Signing order does not change the end state.
- Re-signing is a conflict, never a silent no-op.
- Admin signs only when admin_may_sign is on.
- Reset is admin-only and requires a locked baseline.
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from milestone_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    EMPTY_SIGNATURES,
    ApprovalKind,
    ApprovalState,
    SignatoryRole,
    SignaturePair,
    baseline_status_for,
    certificate_status_for,
    check_generate,
    may_act_as,
    plan_reset,
    plan_signature,
)
from milestone_kernel.domain.identity import Actor, Role
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
    ConflictError,
    ForbiddenError,
    MilestoneNotCompletedError,
    SigningRoleForbiddenError,
)

NOW = datetime(2024, 6, 1, 9, 0, tzinfo=UTC)


def actor(role: Role) -> Actor:
    return Actor(user_id=uuid4(), user_name=role.value, role=role)


def sign(current, signatory, who, kind=ApprovalKind.BASELINE, **kwargs):
    return plan_signature(kind, uuid4(), current, signatory, who, NOW, **kwargs)


# =========================================================================
# Transition table
# =========================================================================


class TestApprovalTransitions:

    def test_every_state_has_entry(self):
        for state in ApprovalState:
            assert state in APPROVAL_TRANSITIONS

    def test_not_committed_goes_to_awaiting(self):
        assert APPROVAL_TRANSITIONS[ApprovalState.NOT_COMMITTED] == {
            ApprovalState.AWAITING_SUPPLIER,
            ApprovalState.AWAITING_CUSTOMER,
        }

    def test_locked_only_resets(self):
        assert APPROVAL_TRANSITIONS[ApprovalState.LOCKED] == {ApprovalState.NOT_COMMITTED}

    def test_status_mappings_cover_every_state(self):
        assert baseline_status_for(ApprovalState.LOCKED) is BaselineStatus.LOCKED
        assert certificate_status_for(ApprovalState.NOT_COMMITTED) is CertificateStatus.DRAFT
        assert (
            certificate_status_for(ApprovalState.AWAITING_CUSTOMER)
            is CertificateStatus.PENDING_CUSTOMER
        )
        assert certificate_status_for(ApprovalState.LOCKED) is CertificateStatus.SIGNED


# =========================================================================
# Signing
# =========================================================================


class TestPlanSignature:

    def test_first_supplier_signature_awaits_customer(self):
        outcome = sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_PM))
        assert outcome.previous_state is ApprovalState.NOT_COMMITTED
        assert outcome.new_state is ApprovalState.AWAITING_CUSTOMER
        assert not outcome.completed
        assert outcome.signatures.supplier.signed_at == NOW

    def test_first_customer_signature_awaits_supplier(self):
        outcome = sign(EMPTY_SIGNATURES, SignatoryRole.CUSTOMER, actor(Role.CUSTOMER_FINANCE))
        assert outcome.new_state is ApprovalState.AWAITING_SUPPLIER

    def test_second_signature_locks(self):
        first = sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_PM))
        second = sign(first.signatures, SignatoryRole.CUSTOMER, actor(Role.CUSTOMER_PM))
        assert second.new_state is ApprovalState.LOCKED
        assert second.completed
        assert second.signatures.is_complete

    def test_order_independent(self):
        supplier, customer = actor(Role.SUPPLIER_PM), actor(Role.CUSTOMER_PM)

        a = sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, supplier)
        ab = sign(a.signatures, SignatoryRole.CUSTOMER, customer)

        b = sign(EMPTY_SIGNATURES, SignatoryRole.CUSTOMER, customer)
        ba = sign(b.signatures, SignatoryRole.SUPPLIER, supplier)

        assert ab.new_state is ba.new_state is ApprovalState.LOCKED
        assert ab.signatures == ba.signatures

    def test_second_signature_for_same_role_conflicts(self):
        first = sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_PM))
        with pytest.raises(AlreadySignedError) as exc_info:
            sign(first.signatures, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_FINANCE))
        assert exc_info.value.code == "ALREADY_SIGNED"
        assert isinstance(exc_info.value, ConflictError)

    @pytest.mark.parametrize(
        "role,signatory",
        [
            (Role.CUSTOMER_PM, SignatoryRole.SUPPLIER),
            (Role.SUPPLIER_FINANCE, SignatoryRole.CUSTOMER),
            (Role.CONTRIBUTOR, SignatoryRole.SUPPLIER),
            (Role.VIEWER, SignatoryRole.CUSTOMER),
            (Role.ADMIN, SignatoryRole.SUPPLIER),
        ],
    )
    def test_wrong_role_forbidden(self, role, signatory):
        with pytest.raises(SigningRoleForbiddenError) as exc_info:
            sign(EMPTY_SIGNATURES, signatory, actor(role))
        assert isinstance(exc_info.value, ForbiddenError)

    def test_admin_signs_when_configured(self):
        outcome = sign(
            EMPTY_SIGNATURES, SignatoryRole.CUSTOMER, actor(Role.ADMIN), admin_may_sign=True
        )
        assert outcome.new_state is ApprovalState.AWAITING_SUPPLIER

    def test_locked_baseline_rejects_signature(self):
        with pytest.raises(BaselineLockedError):
            sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_PM), locked=True)

    def test_forbidden_checked_before_already_signed(self):
        first = sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_PM))
        with pytest.raises(SigningRoleForbiddenError):
            sign(first.signatures, SignatoryRole.SUPPLIER, actor(Role.VIEWER))

    def test_certificate_signing_ignores_locked_flag(self):
        first = sign(
            EMPTY_SIGNATURES,
            SignatoryRole.SUPPLIER,
            actor(Role.SUPPLIER_PM),
            kind=ApprovalKind.CERTIFICATE,
        )
        second = sign(
            first.signatures,
            SignatoryRole.CUSTOMER,
            actor(Role.CUSTOMER_PM),
            kind=ApprovalKind.CERTIFICATE,
        )
        assert certificate_status_for(second.new_state) is CertificateStatus.SIGNED


class TestMayActAs:

    def test_supplier_side(self):
        assert may_act_as(Role.SUPPLIER_PM, SignatoryRole.SUPPLIER)
        assert may_act_as(Role.SUPPLIER_FINANCE, SignatoryRole.SUPPLIER)
        assert not may_act_as(Role.SUPPLIER_PM, SignatoryRole.CUSTOMER)

    def test_customer_side(self):
        assert may_act_as(Role.CUSTOMER_PM, SignatoryRole.CUSTOMER)
        assert may_act_as(Role.CUSTOMER_FINANCE, SignatoryRole.CUSTOMER)
        assert not may_act_as(Role.CUSTOMER_FINANCE, SignatoryRole.SUPPLIER)

    def test_admin_needs_flag(self):
        assert not may_act_as(Role.ADMIN, SignatoryRole.SUPPLIER)
        assert may_act_as(Role.ADMIN, SignatoryRole.SUPPLIER, admin_may_sign=True)


# =========================================================================
# Reset and generate
# =========================================================================


class TestPlanReset:

    def _locked_pair(self) -> SignaturePair:
        first = sign(EMPTY_SIGNATURES, SignatoryRole.SUPPLIER, actor(Role.SUPPLIER_PM))
        return sign(first.signatures, SignatoryRole.CUSTOMER, actor(Role.CUSTOMER_PM)).signatures

    def test_reset_clears_to_not_committed(self):
        pair = self._locked_pair()
        outcome = plan_reset(uuid4(), pair, True, actor(Role.ADMIN))
        assert outcome.previous_state is ApprovalState.LOCKED
        assert outcome.new_state is ApprovalState.NOT_COMMITTED
        assert outcome.cleared == pair

    def test_reset_not_locked_conflicts(self):
        with pytest.raises(BaselineNotLockedError):
            plan_reset(uuid4(), EMPTY_SIGNATURES, False, actor(Role.ADMIN))

    @pytest.mark.parametrize("role", [Role.SUPPLIER_PM, Role.CUSTOMER_PM, Role.VIEWER])
    def test_reset_admin_only(self, role):
        with pytest.raises(AdminOnlyError):
            plan_reset(uuid4(), self._locked_pair(), True, actor(role))


class TestCheckGenerate:

    def test_completed_without_certificate_passes(self):
        check_generate(uuid4(), MilestoneStatus.COMPLETED, None)

    @pytest.mark.parametrize(
        "status", [MilestoneStatus.NOT_STARTED, MilestoneStatus.IN_PROGRESS]
    )
    def test_not_completed_conflicts(self, status):
        with pytest.raises(MilestoneNotCompletedError):
            check_generate(uuid4(), status, None)

    def test_existing_certificate_conflicts(self):
        with pytest.raises(CertificateAlreadyExistsError):
            check_generate(uuid4(), MilestoneStatus.COMPLETED, uuid4())
