"""
Milestone Kernel

Two-party digital sign-off for project milestones:
- Baseline commitment, locked once supplier and customer have both signed
- Acceptance certificates for completed milestones, the billing trigger
- Status and progress derived from deliverables, never stored
- Versioned writes so concurrent signers cannot lose each other's signature
- Full auditability via a per-entity hash chain
"""

__version__ = "0.1.0"
