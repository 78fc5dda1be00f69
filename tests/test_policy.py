"""Tests for the pure role/ownership decisions."""
from __future__ import annotations

import pytest

from massagebook.policy import (Decision, Role, can_view_all_appointments, can_view_appointment,
                                decide_mutation, decide_shop_creation)


@pytest.mark.parametrize("is_owner", [True, False])
@pytest.mark.parametrize("has_owner", [True, False])
def test_admin_may_always_mutate(is_owner, has_owner):
    assert decide_mutation(Role.ADMIN, is_owner, has_owner) is Decision.ALLOW


@pytest.mark.parametrize("role", [Role.USER, Role.STAFF])
def test_owner_may_mutate(role):
    assert decide_mutation(role, is_owner=True, has_owner=True) is Decision.ALLOW


@pytest.mark.parametrize("role", [Role.USER, Role.STAFF])
def test_non_owner_is_denied(role):
    assert decide_mutation(role, is_owner=False, has_owner=True) is Decision.DENY


def test_ownerless_resource_reports_no_owner_for_non_admin():
    assert decide_mutation(Role.USER, is_owner=False, has_owner=False) is Decision.NO_OWNER
    assert decide_mutation(Role.STAFF, is_owner=False, has_owner=False) is Decision.NO_OWNER


def test_appointment_visibility():
    assert can_view_all_appointments(Role.ADMIN)
    assert can_view_all_appointments(Role.STAFF)
    assert not can_view_all_appointments(Role.USER)

    assert can_view_appointment(Role.USER, is_owner=True)
    assert not can_view_appointment(Role.USER, is_owner=False)
    assert can_view_appointment(Role.STAFF, is_owner=False)


def test_shop_creation_admin_policy():
    assert decide_shop_creation(Role.ADMIN, "admin") is Decision.ALLOW
    assert decide_shop_creation(Role.USER, "admin") is Decision.DENY
    assert decide_shop_creation(Role.STAFF, "admin") is Decision.DENY


def test_shop_creation_authenticated_policy():
    for role in Role:
        assert decide_shop_creation(role, "authenticated") is Decision.ALLOW


def test_shop_creation_rejects_unknown_policy():
    with pytest.raises(ValueError):
        decide_shop_creation(Role.ADMIN, "everyone")


def test_role_parse():
    assert Role.parse("staff") is Role.STAFF
    with pytest.raises(ValueError, match="unknown role"):
        Role.parse("vendor")
