"""Search Matching — pure case-insensitive substring matching over decrypted record views.

Invariants:
    - Every criterion must match (logical AND); an empty criteria map matches everything
    - A criterion on a field the record lacks never matches
    - Matching is on the string form of the value, case-insensitive; needles
      and stored values share one rendering (value_text)

Design Decisions:
    - Applied after decryption, not in SQL: sensitive fields only exist as
      ciphertext in the store, and one matcher keeps both kinds consistent
    - Nested values compared on their JSON text, booleans as JSON literals
"""

import json
from collections.abc import Mapping
from typing import Any

from recordvault.core.errors import ValidationError


def normalize_criteria(criteria: Mapping[str, Any] | None) -> dict[str, str]:
    """Validate criteria shape and render needles the way stored values are rendered."""
    if criteria is None:
        return {}
    if not isinstance(criteria, Mapping):
        raise ValidationError("criteria must be an object of field/substring pairs", field="criteria")
    normalized = {}
    for key, needle in criteria.items():
        if not isinstance(key, str) or not key:
            raise ValidationError("criteria keys must be non-empty strings", field="criteria")
        normalized[key] = value_text(needle)
    return normalized


def value_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def matches_criteria(view: Mapping[str, Any], criteria: Mapping[str, str]) -> bool:
    """True when every criterion is a case-insensitive substring of its field."""
    for key, needle in criteria.items():
        if key not in view:
            return False
        if needle.lower() not in value_text(view[key]).lower():
            return False
    return True
