"""Sensitive Field Policy — pure split/merge/redaction rules for field-level encryption.

Invariants:
    - split() returns disjoint cleartext and sensitive maps whose union is the input
    - Name matching is case-insensitive and exact (no substring matching)
    - merge_ciphertexts() keeps prior ciphertexts for fields not resubmitted,
      and drops a prior ciphertext when the same field arrives as cleartext
    - audit_view() never contains a sensitive value

Design Decisions:
    - Policy is evaluated at write time: records written under an older policy
      keep their stored split until they are updated
    - Pure module: encryption itself is the cipher's job (services/record_store.py)
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from recordvault.core.domain_types import REDACTED, Ciphertexts, Payload
from recordvault.core.errors import ValidationError

DEFAULT_SENSITIVE_FIELDS = ("password", "token", "secret")


@dataclass(frozen=True)
class SensitiveFieldPolicy:
    """Which field names are stored encrypted."""
    names: frozenset[str]

    @classmethod
    def from_names(cls, names: Iterable[str] = DEFAULT_SENSITIVE_FIELDS) -> "SensitiveFieldPolicy":
        return cls(names=frozenset(n.lower() for n in names))

    def is_sensitive(self, field_name: str) -> bool:
        return field_name.lower() in self.names

    def split(self, payload: Payload) -> tuple[Payload, Payload]:
        """Split a payload into (cleartext, sensitive) preserving field order."""
        cleartext: Payload = {}
        sensitive: Payload = {}
        for key, value in payload.items():
            if self.is_sensitive(key):
                sensitive[key] = value
            else:
                cleartext[key] = value
        return cleartext, sensitive


def ensure_mapping(value: Any, field: str) -> Payload:
    """Reject anything that is not a str-keyed mapping."""
    if not isinstance(value, Mapping):
        raise ValidationError(
            f"{field} must be an object of field/value pairs", field=field,
        )
    bad_keys = [k for k in value if not isinstance(k, str)]
    if bad_keys:
        raise ValidationError(f"{field} keys must be strings", field=field)
    return dict(value)


def merge_ciphertexts(
    prior: Ciphertexts | None, incoming: Ciphertexts, cleartext_keys: Iterable[str],
) -> Ciphertexts:
    """Partial-update merge of stored ciphertexts."""
    cleartext = set(cleartext_keys)
    merged = {k: v for k, v in (prior or {}).items() if k not in cleartext}
    merged.update(incoming)
    return merged


def audit_view(cleartext: Payload, encrypted_names: Iterable[str]) -> Payload:
    """Full logical field set with sensitive values replaced by a marker."""
    view = dict(cleartext)
    for name in encrypted_names:
        view[name] = REDACTED
    return view
