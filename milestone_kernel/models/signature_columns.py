"""
Module: milestone_kernel.models.signature_columns
Responsibility: Mapping between the ``Signature`` value object and the
    flattened ``<prefix><role>_signer_id / _signer_name / _signed_at``
    columns shared by milestones (prefix ``baseline_``) and acceptance
    certificates (no prefix).
Architecture position: Kernel > Models.  Used only by model classes; the
    only writers are the ``apply_*`` methods those classes expose to
    MilestoneService, which in turn only passes state-machine outcomes.

Invariants enforced:
    - A signature is written as a whole (id, name, timestamp) or cleared
      as a whole.  DB check constraints on each table back this up.
"""

from __future__ import annotations

from milestone_kernel.domain.approval import Signature, SignaturePair, SignatoryRole

SIGNATURE_FIELDS = ("signer_id", "signer_name", "signed_at")


def signature_columns(prefix: str = "") -> tuple[str, ...]:
    """All column names holding signature data for the given prefix."""
    return tuple(
        f"{prefix}{role.value}_{field}"
        for role in SignatoryRole
        for field in SIGNATURE_FIELDS
    )


def read_signature(obj, prefix: str, role: SignatoryRole) -> Signature | None:
    base = f"{prefix}{role.value}_"
    signed_at = getattr(obj, f"{base}signed_at")
    if signed_at is None:
        return None
    return Signature(
        role=role,
        signer_id=getattr(obj, f"{base}signer_id"),
        signer_name=getattr(obj, f"{base}signer_name"),
        signed_at=signed_at,
    )


def read_signature_pair(obj, prefix: str = "") -> SignaturePair:
    return SignaturePair(
        supplier=read_signature(obj, prefix, SignatoryRole.SUPPLIER),
        customer=read_signature(obj, prefix, SignatoryRole.CUSTOMER),
    )


def write_signature(obj, prefix: str, signature: Signature) -> None:
    base = f"{prefix}{signature.role.value}_"
    setattr(obj, f"{base}signer_id", signature.signer_id)
    setattr(obj, f"{base}signer_name", signature.signer_name)
    setattr(obj, f"{base}signed_at", signature.signed_at)


def clear_signatures(obj, prefix: str = "") -> None:
    for column in signature_columns(prefix):
        setattr(obj, column, None)


def signature_consistency_sql(prefix: str = "") -> str:
    """SQL for 'each signature is all-or-nothing' check constraints."""
    clauses = []
    for role in SignatoryRole:
        base = f"{prefix}{role.value}_"
        clauses.append(
            f"(({base}signer_id IS NULL AND {base}signer_name IS NULL "
            f"AND {base}signed_at IS NULL) OR ({base}signer_id IS NOT NULL "
            f"AND {base}signer_name IS NOT NULL AND {base}signed_at IS NOT NULL))"
        )
    return " AND ".join(clauses)
