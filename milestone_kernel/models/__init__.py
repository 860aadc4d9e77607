"""SQLAlchemy ORM models for the milestone kernel."""

from milestone_kernel.models.audit_event import AuditAction, AuditEvent
from milestone_kernel.models.baseline_version import MilestoneBaselineVersionModel
from milestone_kernel.models.certificate import AcceptanceCertificateModel
from milestone_kernel.models.deliverable import DeliverableModel
from milestone_kernel.models.milestone import MilestoneModel

__all__ = [
    "AcceptanceCertificateModel",
    "AuditAction",
    "AuditEvent",
    "DeliverableModel",
    "MilestoneBaselineVersionModel",
    "MilestoneModel",
]
