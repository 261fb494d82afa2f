"""Field Policy — verifies split, merge and redaction rules for sensitive fields."""

import pytest

from recordvault.core.domain_types import REDACTED
from recordvault.core.errors import ValidationError
from recordvault.core.field_policy import (
    DEFAULT_SENSITIVE_FIELDS, SensitiveFieldPolicy, audit_view, ensure_mapping,
    merge_ciphertexts,
)


@pytest.fixture
def policy():
    return SensitiveFieldPolicy.from_names(DEFAULT_SENSITIVE_FIELDS)


def test_split_is_disjoint_and_complete(policy):
    payload = {"username": "bob", "password": "pw", "Token": "t", "note": "hi"}

    cleartext, sensitive = policy.split(payload)

    assert cleartext == {"username": "bob", "note": "hi"}
    assert sensitive == {"password": "pw", "Token": "t"}
    assert set(cleartext) | set(sensitive) == set(payload)
    assert not set(cleartext) & set(sensitive)


def test_matching_is_exact_not_substring(policy):
    assert policy.is_sensitive("SECRET")
    assert not policy.is_sensitive("secret_question")
    assert not policy.is_sensitive("pass")


def test_custom_policy_names_are_lowercased():
    policy = SensitiveFieldPolicy.from_names(["ApiKey"])
    assert policy.is_sensitive("apikey")
    assert not policy.is_sensitive("password")


def test_ensure_mapping_rejects_lists_and_non_str_keys():
    with pytest.raises(ValidationError):
        ensure_mapping([("a", 1)], "payload")
    with pytest.raises(ValidationError):
        ensure_mapping({1: "a"}, "payload")
    assert ensure_mapping({"a": 1}, "payload") == {"a": 1}


def test_merge_keeps_prior_ciphertexts_not_resubmitted():
    merged = merge_ciphertexts(
        {"password": "old-p", "token": "old-t"}, {"password": "new-p"}, ["username"],
    )
    assert merged == {"password": "new-p", "token": "old-t"}


def test_merge_drops_ciphertext_resubmitted_as_cleartext():
    merged = merge_ciphertexts({"secret": "c"}, {}, ["secret"])
    assert merged == {}


def test_merge_with_no_prior():
    assert merge_ciphertexts(None, {"token": "c"}, []) == {"token": "c"}


def test_audit_view_redacts_encrypted_names():
    view = audit_view({"username": "bob"}, ["password"])
    assert view == {"username": "bob", "password": REDACTED}
