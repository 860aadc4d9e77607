"""
Identity and role types (``milestone_kernel.domain.identity``).

Responsibility
--------------
The closed set of project roles, the caller identity passed explicitly into
every service call, and the boundary that turns an external role string
into a ``Role``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Authentication
and role lookup live outside the kernel behind ``IdentityProvider``.

Invariants enforced
-------------------
* Role is never ambient: every operation receives an ``Actor``.
* Unknown role strings are rejected with ``UnknownRoleError`` at the
  boundary rather than treated as a non-signing role.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Protocol
from uuid import UUID

from milestone_kernel.exceptions import InvalidSignerError, UnknownRoleError


class Role(str, Enum):
    """Project-level roles."""

    ADMIN = "admin"
    SUPPLIER_PM = "supplier_pm"
    SUPPLIER_FINANCE = "supplier_finance"
    CUSTOMER_PM = "customer_pm"
    CUSTOMER_FINANCE = "customer_finance"
    CONTRIBUTOR = "contributor"
    VIEWER = "viewer"


SUPPLIER_SIDE_ROLES: frozenset[Role] = frozenset({
    Role.SUPPLIER_PM,
    Role.SUPPLIER_FINANCE,
})

CUSTOMER_SIDE_ROLES: frozenset[Role] = frozenset({
    Role.CUSTOMER_PM,
    Role.CUSTOMER_FINANCE,
})

# Roles that may raise an acceptance certificate.
MANAGER_ROLES: frozenset[Role] = frozenset({
    Role.ADMIN,
    Role.SUPPLIER_PM,
    Role.CUSTOMER_PM,
})


@dataclass(frozen=True)
class Actor:
    """The caller of a service operation."""

    user_id: UUID
    user_name: str
    role: Role

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            raise UnknownRoleError(str(self.role))
        if self.user_id is None:
            raise InvalidSignerError("user_id is required")
        if not self.user_name or not self.user_name.strip():
            raise InvalidSignerError("user_name is required")

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class IdentityProvider(Protocol):
    """External collaborator yielding the current caller."""

    def current_actor(self) -> Actor:
        ...


class RoleResolver:
    """
    Maps external role strings onto ``Role``.

    Accepts the canonical values ("supplier_pm"), the enum names
    ("SUPPLIER_PM") and any configured aliases ("Supplier PM" ->
    supplier_pm).  Matching is case-insensitive and ignores surrounding
    whitespace.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None):
        table: dict[str, Role] = {}
        for role in Role:
            table[role.value] = role
            table[role.name.lower()] = role
        for alias, target in (aliases or {}).items():
            table[self._normalise(alias)] = self._canonical(target)
        self._table = MappingProxyType(table)

    @staticmethod
    def _normalise(value: str) -> str:
        return value.strip().lower()

    @staticmethod
    def _canonical(value: str) -> Role:
        try:
            return Role(value.strip().lower())
        except ValueError:
            raise UnknownRoleError(value) from None

    def resolve(self, value: str | Role) -> Role:
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            raise UnknownRoleError(repr(value))
        role = self._table.get(self._normalise(value))
        if role is None:
            raise UnknownRoleError(value)
        return role

    def actor(self, user_id: UUID, user_name: str, role: str | Role) -> Actor:
        """Build an ``Actor`` from raw identity-provider output."""
        return Actor(user_id=user_id, user_name=user_name, role=self.resolve(role))
