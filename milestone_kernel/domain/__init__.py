"""
Pure domain layer.

Status calculator, approval state machine, permission gate and the
immutable records that cross the service boundary, with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

Time comes in only through the Clock passed to services.
"""

from milestone_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    ApprovalKind,
    ApprovalState,
    Signature,
    SignatoryRole,
    SignatureOutcome,
    SignaturePair,
    check_generate,
    may_act_as,
    plan_reset,
    plan_signature,
)
from milestone_kernel.domain.clock import Clock, DeterministicClock, SystemClock
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
from milestone_kernel.domain.identity import Actor, IdentityProvider, Role, RoleResolver
from milestone_kernel.domain.permissions import Action, GateContext, allowed_actions
from milestone_kernel.domain.status import (
    BaselineStatus,
    CertificateStatus,
    DeliverableSnapshot,
    DeliverableStatus,
    MilestoneRollup,
    MilestoneStatus,
    Variance,
    derive_milestone_progress,
    derive_milestone_status,
    derive_rollup,
)

__all__ = [
    # Approval
    "APPROVAL_TRANSITIONS",
    "ApprovalKind",
    "ApprovalState",
    "Signature",
    "SignatoryRole",
    "SignatureOutcome",
    "SignaturePair",
    "check_generate",
    "may_act_as",
    "plan_reset",
    "plan_signature",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # DTOs
    "BaselineVersionRecord",
    "BaselineView",
    "BillableMilestone",
    "CertificateRecord",
    "CertificateView",
    "MilestoneRecord",
    "MilestoneView",
    "ProjectSummary",
    "ScheduleValues",
    # Identity
    "Actor",
    "IdentityProvider",
    "Role",
    "RoleResolver",
    # Permissions
    "Action",
    "GateContext",
    "allowed_actions",
    # Status
    "BaselineStatus",
    "CertificateStatus",
    "DeliverableSnapshot",
    "DeliverableStatus",
    "MilestoneRollup",
    "MilestoneStatus",
    "Variance",
    "derive_milestone_progress",
    "derive_milestone_status",
    "derive_rollup",
]
