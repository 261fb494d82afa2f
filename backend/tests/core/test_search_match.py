"""Search Match — verifies AND semantics and value stringification."""

import pytest

from recordvault.core.errors import ValidationError
from recordvault.core.search_match import matches_criteria, normalize_criteria, value_text


def test_empty_criteria_matches_everything():
    assert matches_criteria({"a": 1}, {})
    assert matches_criteria({}, {})


def test_every_criterion_must_match():
    view = {"name": "Hammer", "category": "Tools"}
    assert matches_criteria(view, {"name": "ham", "category": "tool"})
    assert not matches_criteria(view, {"name": "ham", "category": "food"})


def test_missing_field_never_matches():
    assert not matches_criteria({"name": "x"}, {"colour": ""})


def test_numbers_and_nested_values_match_on_text():
    assert matches_criteria({"value": 42}, {"value": "4"})
    assert matches_criteria({"tags": ["Red", "blue"]}, {"tags": "red"})
    assert matches_criteria({"active": True}, {"active": "TRUE"})


def test_value_text_forms():
    assert value_text(None) == ""
    assert value_text(False) == "false"
    assert value_text({"a": 1}) == '{"a": 1}'
    assert value_text(1.5) == "1.5"


def test_normalize_coerces_needles_to_strings():
    assert normalize_criteria({"value": 42}) == {"value": "42"}
    assert normalize_criteria(None) == {}


def test_normalize_rejects_bad_shapes():
    with pytest.raises(ValidationError):
        normalize_criteria("name=x")
    with pytest.raises(ValidationError):
        normalize_criteria({"": "x"})


def test_needles_render_like_stored_values():
    assert normalize_criteria({"active": True, "note": None}) == {"active": "true", "note": ""}
    assert matches_criteria({"note": None}, normalize_criteria({"note": None}))
    assert not matches_criteria({}, normalize_criteria({"note": None}))
