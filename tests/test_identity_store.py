"""
Tests for role resolution and the team editor backend.
"""
import pytest
from django.contrib.auth.models import AnonymousUser, User

from aws_config import PROFILES_TABLE
from pos.exceptions import InvalidInput, NotFound, StoreError


def user(pk=7):
    return User(pk=pk, username=f"user{pk}", email=f"user{pk}@example.com")


def test_anonymous_user_is_guest(identity):
    assert identity.resolve_role(AnonymousUser()) == "guest"


def test_missing_profile_defaults_to_customer(identity):
    assert identity.resolve_role(user()) == "customer"


def test_profile_role_is_used(identity, backend):
    backend.set_profile(7, "manager")
    assert identity.resolve_role(user()) == "manager"


def test_lookup_error_falls_back_to_customer(identity, backend):
    backend.set_profile(7, "admin")
    backend.ddb.failing.add("get")

    assert identity.resolve_role(user()) == identity.FALLBACK_ROLE == "customer"


def test_blank_role_falls_back_to_customer(identity, backend):
    backend.set_profile(7, "")
    assert identity.resolve_role(user()) == "customer"


def test_ensure_profile_creates_customer_once(identity, backend):
    identity.ensure_profile(user())
    backend.set_profile(7, "kitchen", "user7@example.com")

    identity.ensure_profile(user())

    [profile] = backend.ddb.rows(PROFILES_TABLE)
    assert profile["role"] == "kitchen"


def test_ensure_profile_never_raises(identity, backend):
    backend.ddb.failing.add("put")
    identity.ensure_profile(user())
    assert backend.ddb.rows(PROFILES_TABLE) == []


def test_list_and_set_role(identity, backend):
    backend.set_profile(1, "customer", "zeca@example.com")
    backend.set_profile(2, "admin", "ana@example.com")

    identity.set_role(1, "kitchen")

    profiles = identity.list_profiles()
    assert [p.email for p in profiles] == ["ana@example.com", "zeca@example.com"]
    assert profiles[1].role == "kitchen"


def test_set_role_rejects_unknown_roles(identity, backend):
    backend.set_profile(1, "customer")
    with pytest.raises(InvalidInput):
        identity.set_role(1, "owner")


def test_set_role_for_missing_profile(identity):
    with pytest.raises(NotFound):
        identity.set_role(99, "admin")


def test_list_profiles_failure_is_a_store_error(identity, backend):
    backend.ddb.failing.add("scan")
    with pytest.raises(StoreError):
        identity.list_profiles()


def test_assign_role_creates_missing_profile(identity, backend):
    profile = identity.assign_role(user(), "admin")

    assert profile.role == "admin"
    assert backend.ddb.rows(PROFILES_TABLE) == [
        {"id": "7", "email": "user7@example.com", "role": "admin"},
    ]
    assert identity.resolve_role(user()) == "admin"


def test_assign_role_overwrites_existing_role(identity, backend):
    backend.set_profile(7, "customer", "user7@example.com")
    identity.assign_role(user(), "kitchen")
    assert identity.resolve_role(user()) == "kitchen"


def test_assign_role_rejects_unknown_roles(identity, backend):
    with pytest.raises(InvalidInput):
        identity.assign_role(user(), "owner")
    assert backend.ddb.rows(PROFILES_TABLE) == []
