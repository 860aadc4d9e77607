"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Signatures are commitment evidence and a signed certificate is a billing
record.  The state machine only ever writes them through the model's
``apply_*`` methods, but nothing stops other code from assigning a column
directly.  These listeners make such writes fail at flush time, before
any SQL reaches the database.

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                    | Rule
--------------------------|----------------------------------------------------
Milestone                 | baseline_* values frozen while locked; a written
                          | baseline signature changes only via admin reset
AcceptanceCertificate     | value snapshot never changes; written signatures
                          | never change; signed certificates never deleted
MilestoneBaselineVersion  | always immutable (listeners live on the model)
AuditEvent                | always immutable

updated_at / updated_by_id are audit metadata and may change on any row.

===============================================================================
USAGE
===============================================================================

    from milestone_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup, idempotent

Tests that need to plant corrupt data call unregister_immutability_listeners()
and register again afterwards.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from milestone_kernel.exceptions import ImmutabilityViolationError
from milestone_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _previous_value(target, field: str):
    """Value of ``field`` as loaded from the database, before this flush."""
    history = get_history(target, field)
    if history.deleted:
        return history.deleted[0]
    if history.added:
        # SQLAlchemy records no "deleted" entry when the old value was NULL
        return None
    return getattr(target, field)


def _changed(target, field: str) -> bool:
    history = get_history(target, field)
    return bool(history.deleted) or (bool(history.added) and not history.unchanged)


def _block(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_milestone_update(mapper, connection, target):
    """
    Freeze baseline values while locked; allow a written signature to be
    cleared only by the reset transition (locked -> unlocked, all cleared).
    """
    from milestone_kernel.models.milestone import BASELINE_PREFIX, BASELINE_VALUE_FIELDS
    from milestone_kernel.models.signature_columns import signature_columns

    was_locked = bool(_previous_value(target, "baseline_locked"))

    if was_locked:
        for field in BASELINE_VALUE_FIELDS:
            if _changed(target, field):
                _block(
                    "Milestone",
                    target.id,
                    "UPDATE",
                    f"{field} cannot change while the baseline is locked",
                )

    columns = signature_columns(BASELINE_PREFIX)
    is_reset = (
        was_locked
        and not target.baseline_locked
        and all(getattr(target, c) is None for c in columns)
    )
    if is_reset:
        return

    for column in columns:
        if _changed(target, column) and _previous_value(target, column) is not None:
            _block(
                "Milestone",
                target.id,
                "UPDATE",
                f"{column} is already signed and can only be cleared by a baseline reset",
            )


def _check_certificate_update(mapper, connection, target):
    from milestone_kernel.models.certificate import SNAPSHOT_FIELDS
    from milestone_kernel.models.signature_columns import signature_columns

    for field in SNAPSHOT_FIELDS:
        if _changed(target, field):
            _block(
                "AcceptanceCertificate",
                target.id,
                "UPDATE",
                f"{field} is part of the certificate snapshot and cannot change",
            )

    for column in signature_columns():
        if _changed(target, column) and _previous_value(target, column) is not None:
            _block(
                "AcceptanceCertificate",
                target.id,
                "UPDATE",
                f"{column} is already signed and cannot change",
            )

    if _changed(target, "status") and _previous_value(target, "status") == "signed":
        _block(
            "AcceptanceCertificate",
            target.id,
            "UPDATE",
            "signed certificates cannot change status",
        )


def _check_certificate_delete(mapper, connection, target):
    if target.status == "signed":
        _block(
            "AcceptanceCertificate",
            target.id,
            "DELETE",
            "signed certificates are financial records and cannot be deleted",
        )


def _check_audit_event_update(mapper, connection, target):
    _block(
        "AuditEvent",
        target.id,
        "UPDATE",
        "Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    _block(
        "AuditEvent",
        target.id,
        "DELETE",
        "Audit events are immutable and cannot be deleted",
    )


def _listeners():
    from milestone_kernel.models.audit_event import AuditEvent
    from milestone_kernel.models.certificate import AcceptanceCertificateModel
    from milestone_kernel.models.milestone import MilestoneModel

    return (
        (MilestoneModel, "before_update", _check_milestone_update),
        (AcceptanceCertificateModel, "before_update", _check_certificate_update),
        (AcceptanceCertificateModel, "before_delete", _check_certificate_delete),
        (AuditEvent, "before_update", _check_audit_event_update),
        (AuditEvent, "before_delete", _check_audit_event_delete),
    )


def register_immutability_listeners():
    """
    Register all immutability listeners.

    Idempotent.  Call after the models are importable and before any
    writes.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: only for tests that must plant data the listeners would block.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
