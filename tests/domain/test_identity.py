"""Tests for guest identity derivation."""
import pytest

from app.domain.value_objects.identity import (
    MobileIdentity,
    SessionIdentity,
    derive_identity,
    normalize_mobile,
)


@pytest.mark.parametrize("raw, expected", [
    ("9876543210", "9876543210"),
    ("+91 98765-43210", "919876543210"),
    ("(987) 654 3210", "9876543210"),
    ("no digits", None),
    ("", None),
    (None, None),
])
def test_normalize_mobile(raw, expected):
    assert normalize_mobile(raw) == expected


def test_mobile_wins_over_session_token():
    identity = derive_identity("9876543210", "token-1")
    assert isinstance(identity, MobileIdentity)
    assert identity.storage_key("g1") == "g1:m:9876543210"


def test_session_token_is_the_fallback():
    identity = derive_identity(None, "token-1")
    assert isinstance(identity, SessionIdentity)
    assert identity.storage_key("g1") == "g1:s:token-1"


def test_no_identity():
    assert derive_identity(None, None) is None
    assert derive_identity("", "") is None


def test_mobile_and_session_keys_never_collide():
    assert MobileIdentity(mobile="123").storage_key("g") != SessionIdentity(token="123").storage_key("g")
