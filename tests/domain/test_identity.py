"""Tests for roles, actors and RoleResolver (``milestone_kernel.domain.identity``)."""

from uuid import uuid4

import pytest

from milestone_kernel.domain.identity import (
    CUSTOMER_SIDE_ROLES,
    MANAGER_ROLES,
    SUPPLIER_SIDE_ROLES,
    Actor,
    Role,
    RoleResolver,
)
from milestone_kernel.exceptions import InvalidSignerError, UnknownRoleError, ValidationError


class TestRoleGroups:

    def test_sides_are_disjoint(self):
        assert not SUPPLIER_SIDE_ROLES & CUSTOMER_SIDE_ROLES
        assert Role.ADMIN not in SUPPLIER_SIDE_ROLES | CUSTOMER_SIDE_ROLES

    def test_managers(self):
        assert MANAGER_ROLES == {Role.ADMIN, Role.SUPPLIER_PM, Role.CUSTOMER_PM}


class TestActor:

    def test_valid(self):
        a = Actor(user_id=uuid4(), user_name="Sam", role=Role.SUPPLIER_PM)
        assert not a.is_admin

    def test_string_role_rejected(self):
        with pytest.raises(UnknownRoleError):
            Actor(user_id=uuid4(), user_name="Sam", role="supplier_pm")

    def test_blank_name_rejected(self):
        with pytest.raises(InvalidSignerError):
            Actor(user_id=uuid4(), user_name="  ", role=Role.VIEWER)


class TestRoleResolver:

    def test_canonical_values_and_names(self):
        resolver = RoleResolver()
        assert resolver.resolve("supplier_pm") is Role.SUPPLIER_PM
        assert resolver.resolve("CUSTOMER_FINANCE") is Role.CUSTOMER_FINANCE
        assert resolver.resolve(Role.ADMIN) is Role.ADMIN

    def test_aliases_case_insensitive(self):
        resolver = RoleResolver({"Supplier PM": "supplier_pm"})
        assert resolver.resolve("  supplier pm ") is Role.SUPPLIER_PM

    def test_unknown_role_is_validation_error(self):
        with pytest.raises(UnknownRoleError) as exc_info:
            RoleResolver().resolve("auditor")
        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.code == "UNKNOWN_ROLE"

    def test_alias_to_unknown_role_rejected(self):
        with pytest.raises(UnknownRoleError):
            RoleResolver({"Boss": "overlord"})

    def test_builds_actor(self):
        uid = uuid4()
        a = RoleResolver({"Customer PM": "customer_pm"}).actor(uid, "Cat", "Customer PM")
        assert a == Actor(uid, "Cat", Role.CUSTOMER_PM)
