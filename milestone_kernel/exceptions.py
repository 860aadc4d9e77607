"""
Typed Exception Hierarchy for the Milestone Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The sign-off workflow has exactly four ways to fail an operation: the target
does not exist, the caller may not do it, the record is not in a state that
allows it, or the input is malformed. Callers (an HTTP layer, a CLI, a test)
must be able to tell these apart without parsing message strings.

Every exception in this module therefore:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA (milestone id, role, current status, ...)

Example:
    try:
        service.sign_baseline(milestone_id, SignatoryRole.SUPPLIER, actor)
    except AlreadySignedError as e:
        api_response(409, code=e.code, role=e.role)
    except ConflictError as e:
        # Stale view: re-fetch get_milestone_view() before retrying.
        api_response(409, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    MilestoneKernelError (base)
    |
    +-- NotFoundError
    |   +-- MilestoneNotFoundError
    |   +-- CertificateNotFoundError
    |
    +-- ForbiddenError
    |   +-- SigningRoleForbiddenError
    |   +-- AdminOnlyError
    |   +-- OperationForbiddenError
    |
    +-- ConflictError
    |   +-- AlreadySignedError
    |   +-- BaselineLockedError
    |   +-- BaselineNotLockedError
    |   +-- MilestoneNotCompletedError
    |   +-- CertificateAlreadyExistsError
    |   +-- InvalidApprovalTransitionError
    |   +-- ConcurrentModificationError
    |
    +-- ValidationError
    |   +-- UnknownRoleError
    |   +-- InvalidSignerError
    |   +-- InvalidFieldValueError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|---------------------------------
NotFound     | MILESTONE_NOT_FOUND           | Milestone id doesn't exist
             | CERTIFICATE_NOT_FOUND         | Certificate id doesn't exist
-------------|-------------------------------|---------------------------------
Forbidden    | SIGNING_ROLE_FORBIDDEN        | Caller cannot sign as that role
             | ADMIN_ONLY                    | Non-admin attempted reset
             | OPERATION_FORBIDDEN           | Permission gate denied the call
-------------|-------------------------------|---------------------------------
Conflict     | ALREADY_SIGNED                | Role's signature already present
             | BASELINE_LOCKED               | Baseline is locked
             | BASELINE_NOT_LOCKED           | Reset on an unlocked baseline
             | MILESTONE_NOT_COMPLETED       | Certificate for unfinished work
             | CERTIFICATE_ALREADY_EXISTS    | Second certificate for milestone
             | INVALID_APPROVAL_TRANSITION   | Edge not in the transition table
             | CONCURRENT_MODIFICATION       | Write lost repeatedly to others
-------------|-------------------------------|---------------------------------
Validation   | UNKNOWN_ROLE                  | Role string not recognised
             | INVALID_SIGNER                | Signer id/name missing
             | INVALID_FIELD_VALUE           | Bad date range, negative amount
-------------|-------------------------------|---------------------------------
Audit        | AUDIT_CHAIN_BROKEN            | Hash chain validation failed
-------------|-------------------------------|---------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Write to a frozen record/field

===============================================================================
HANDLING PATTERNS
===============================================================================

None of these are retried automatically. A ConflictError means the caller's
view is stale; it should call get_milestone_view() and decide again. The one
internal retry (re-deciding after a lost conditional write) lives in the
service and surfaces as ConcurrentModificationError once exhausted.
"""


class MilestoneKernelError(Exception):
    """
    Base exception for all milestone kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "MILESTONE_KERNEL_ERROR"


# NotFound


class NotFoundError(MilestoneKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class MilestoneNotFoundError(NotFoundError):
    """Milestone with given ID was not found."""

    code: str = "MILESTONE_NOT_FOUND"

    def __init__(self, milestone_id: str):
        self.milestone_id = milestone_id
        super().__init__(f"Milestone not found: {milestone_id}")


class CertificateNotFoundError(NotFoundError):
    """Acceptance certificate with given ID was not found."""

    code: str = "CERTIFICATE_NOT_FOUND"

    def __init__(self, certificate_id: str):
        self.certificate_id = certificate_id
        super().__init__(f"Acceptance certificate not found: {certificate_id}")


# Forbidden


class ForbiddenError(MilestoneKernelError):
    """Base exception for operations the caller's role does not permit."""

    code: str = "FORBIDDEN"


class SigningRoleForbiddenError(ForbiddenError):
    """
    Caller attempted to sign as a signatory role it does not hold.

    Admin does not gain signing rights for a role it does not hold unless
    the workflow is configured with admin_may_sign.
    """

    code: str = "SIGNING_ROLE_FORBIDDEN"

    def __init__(self, actor_role: str, signatory_role: str, approval_kind: str):
        self.actor_role = actor_role
        self.signatory_role = signatory_role
        self.approval_kind = approval_kind
        super().__init__(
            f"Role {actor_role} cannot sign {approval_kind} as {signatory_role}"
        )


class AdminOnlyError(ForbiddenError):
    """Operation is reserved for the administrative role."""

    code: str = "ADMIN_ONLY"

    def __init__(self, operation: str, actor_role: str):
        self.operation = operation
        self.actor_role = actor_role
        super().__init__(
            f"Operation {operation} requires admin, caller has role {actor_role}"
        )


class OperationForbiddenError(ForbiddenError):
    """The permission gate denied the operation for this role."""

    code: str = "OPERATION_FORBIDDEN"

    def __init__(self, operation: str, actor_role: str):
        self.operation = operation
        self.actor_role = actor_role
        super().__init__(f"Role {actor_role} may not perform {operation}")


# Conflict


class ConflictError(MilestoneKernelError):
    """
    Base exception for state-machine precondition violations.

    The caller's view is stale; re-fetch before retrying.
    """

    code: str = "CONFLICT"


class AlreadySignedError(ConflictError):
    """The role's signature is already present on the record."""

    code: str = "ALREADY_SIGNED"

    def __init__(self, approval_kind: str, entity_id: str, role: str):
        self.approval_kind = approval_kind
        self.entity_id = entity_id
        self.role = role
        super().__init__(
            f"{approval_kind} {entity_id} already signed by {role}"
        )


class BaselineLockedError(ConflictError):
    """The milestone baseline is locked."""

    code: str = "BASELINE_LOCKED"

    def __init__(self, milestone_id: str, operation: str):
        self.milestone_id = milestone_id
        self.operation = operation
        super().__init__(
            f"Baseline of milestone {milestone_id} is locked: cannot {operation}"
        )


class BaselineNotLockedError(ConflictError):
    """Reset requested on a baseline that is not locked."""

    code: str = "BASELINE_NOT_LOCKED"

    def __init__(self, milestone_id: str):
        self.milestone_id = milestone_id
        super().__init__(f"Baseline of milestone {milestone_id} is not locked")


class MilestoneNotCompletedError(ConflictError):
    """Certificate requested for a milestone whose derived status is not completed."""

    code: str = "MILESTONE_NOT_COMPLETED"

    def __init__(self, milestone_id: str, status: str):
        self.milestone_id = milestone_id
        self.status = status
        super().__init__(
            f"Milestone {milestone_id} is {status}, certificate requires completed"
        )


class CertificateAlreadyExistsError(ConflictError):
    """An acceptance certificate already exists for the milestone."""

    code: str = "CERTIFICATE_ALREADY_EXISTS"

    def __init__(self, milestone_id: str, certificate_id: str | None = None):
        self.milestone_id = milestone_id
        self.certificate_id = certificate_id
        super().__init__(
            f"Milestone {milestone_id} already has an acceptance certificate"
            + (f" ({certificate_id})" if certificate_id else "")
        )


class InvalidApprovalTransitionError(ConflictError):
    """Requested transition is not an edge of the approval state machine."""

    code: str = "INVALID_APPROVAL_TRANSITION"

    def __init__(self, entity_id: str, from_state: str, to_state: str):
        self.entity_id = entity_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid approval transition for {entity_id}: {from_state} -> {to_state}"
        )


class ConcurrentModificationError(ConflictError):
    """
    The conditional write kept losing to concurrent writers.

    Raised only after the service has re-read and re-decided
    max_write_attempts times.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, entity_id: str, attempts: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.attempts = attempts
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently; "
            f"gave up after {attempts} attempts"
        )


# Validation


class ValidationError(MilestoneKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class UnknownRoleError(ValidationError):
    """Role string is not one of the known roles."""

    code: str = "UNKNOWN_ROLE"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Unknown role: {role!r}")


class InvalidSignerError(ValidationError):
    """Signer identity is incomplete."""

    code: str = "INVALID_SIGNER"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid signer: {reason}")


class InvalidFieldValueError(ValidationError):
    """A schedule or financial field value is malformed."""

    code: str = "INVALID_FIELD_VALUE"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for {field} ({value!r}): {reason}")


# Audit


class AuditError(MilestoneKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Immutability


class ImmutabilityError(MilestoneKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record or field.

    Locked baseline fields, written signatures, certificate value snapshots,
    baseline versions and audit events are all protected.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
