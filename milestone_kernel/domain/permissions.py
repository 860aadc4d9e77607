"""
milestone_kernel.domain.permissions -- the Permission Gate.

Responsibility:
    Pure (role, record state) -> bool rules for every mutating milestone
    operation.  MilestoneService consults these on every call; a
    presentation layer may use ``allowed_actions`` to hide buttons, but
    that is an affordance, not the security boundary.

Architecture position:
    Kernel domain layer.  ZERO I/O.  Role is always an explicit argument.

Invariants:
    - canEditBaselineFields = admin, or (supplier side AND NOT locked).
    - canSignBaseline = may act as signatory AND not yet signed AND NOT locked.
    - canResetBaseline = admin AND locked.
    - canGenerateCertificate = manager role AND completed AND no certificate.
    - canSignCertificate = may act as signatory AND not yet signed.
    - Admin signs only when the workflow is configured with admin_may_sign.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from milestone_kernel.domain.approval import SignatoryRole, SignaturePair, may_act_as
from milestone_kernel.domain.identity import (
    MANAGER_ROLES,
    SUPPLIER_SIDE_ROLES,
    Role,
)
from milestone_kernel.domain.status import MilestoneStatus


class Action(str, Enum):
    """Operations a caller may be offered on a milestone."""

    EDIT_BASELINE = "edit_baseline"
    EDIT_FORECAST = "edit_forecast"
    SIGN_BASELINE_AS_SUPPLIER = "sign_baseline_as_supplier"
    SIGN_BASELINE_AS_CUSTOMER = "sign_baseline_as_customer"
    RESET_BASELINE = "reset_baseline"
    GENERATE_CERTIFICATE = "generate_certificate"
    SIGN_CERTIFICATE_AS_SUPPLIER = "sign_certificate_as_supplier"
    SIGN_CERTIFICATE_AS_CUSTOMER = "sign_certificate_as_customer"


_SIGN_BASELINE_ACTION = {
    SignatoryRole.SUPPLIER: Action.SIGN_BASELINE_AS_SUPPLIER,
    SignatoryRole.CUSTOMER: Action.SIGN_BASELINE_AS_CUSTOMER,
}

_SIGN_CERTIFICATE_ACTION = {
    SignatoryRole.SUPPLIER: Action.SIGN_CERTIFICATE_AS_SUPPLIER,
    SignatoryRole.CUSTOMER: Action.SIGN_CERTIFICATE_AS_CUSTOMER,
}


def can_edit_baseline_fields(role: Role, baseline_locked: bool) -> bool:
    if role is Role.ADMIN:
        return True
    return role in SUPPLIER_SIDE_ROLES and not baseline_locked


def can_edit_forecast(role: Role) -> bool:
    return role is Role.ADMIN or role in SUPPLIER_SIDE_ROLES


def can_sign_baseline(
    role: Role,
    signatory: SignatoryRole,
    signatures: SignaturePair,
    baseline_locked: bool,
    admin_may_sign: bool = False,
) -> bool:
    return (
        may_act_as(role, signatory, admin_may_sign)
        and not signatures.has(signatory)
        and not baseline_locked
    )


def can_reset_baseline(role: Role, baseline_locked: bool) -> bool:
    return role is Role.ADMIN and baseline_locked


def can_generate_certificate(
    role: Role,
    milestone_status: MilestoneStatus,
    has_certificate: bool,
) -> bool:
    return (
        role in MANAGER_ROLES
        and milestone_status is MilestoneStatus.COMPLETED
        and not has_certificate
    )


def can_sign_certificate(
    role: Role,
    signatory: SignatoryRole,
    signatures: SignaturePair,
    admin_may_sign: bool = False,
) -> bool:
    return may_act_as(role, signatory, admin_may_sign) and not signatures.has(signatory)


@dataclass(frozen=True)
class GateContext:
    """Record state the gate needs to evaluate every action at once."""

    baseline_locked: bool
    baseline_signatures: SignaturePair
    milestone_status: MilestoneStatus
    certificate_signatures: SignaturePair | None = None


def allowed_actions(
    role: Role,
    context: GateContext,
    admin_may_sign: bool = False,
) -> frozenset[Action]:
    """Every action ``role`` may take against the record described by ``context``."""
    actions: set[Action] = set()

    if can_edit_baseline_fields(role, context.baseline_locked):
        actions.add(Action.EDIT_BASELINE)
    if can_edit_forecast(role):
        actions.add(Action.EDIT_FORECAST)
    if can_reset_baseline(role, context.baseline_locked):
        actions.add(Action.RESET_BASELINE)

    for signatory in SignatoryRole:
        if can_sign_baseline(
            role,
            signatory,
            context.baseline_signatures,
            context.baseline_locked,
            admin_may_sign,
        ):
            actions.add(_SIGN_BASELINE_ACTION[signatory])

        if context.certificate_signatures is not None and can_sign_certificate(
            role, signatory, context.certificate_signatures, admin_may_sign
        ):
            actions.add(_SIGN_CERTIFICATE_ACTION[signatory])

    if can_generate_certificate(
        role,
        context.milestone_status,
        context.certificate_signatures is not None,
    ):
        actions.add(Action.GENERATE_CERTIFICATE)

    return frozenset(actions)
