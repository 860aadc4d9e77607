"""Services for the milestone kernel (write side)."""

from milestone_kernel.services.auditor_service import (
    AuditorService,
    AuditTrace,
    AuditTraceEntry,
)
from milestone_kernel.services.milestone_service import MilestoneService

__all__ = [
    "AuditorService",
    "AuditTrace",
    "AuditTraceEntry",
    "MilestoneService",
]
