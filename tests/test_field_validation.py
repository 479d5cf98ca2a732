"""
Unit tests for dynamic field validation (no HTTP).

Field definitions are built in memory; nothing is flushed.
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.models.template import FieldDefinition, FieldOption, Template
from app.services.field_validation import (
    normalise_input,
    validate_field_definition_rules,
    validate_field_values,
)


def _template(*fields):
    t = Template(name="T", decision_board_id="b")
    for f in fields:
        t.field_definitions.append(f)
    return t


def _field(name, field_type="text", required=False, rules=None, options=(), active=True):
    f = FieldDefinition(
        field_name=name, field_type=field_type, is_required=required,
        validation_rules=rules, is_active=active,
    )
    for value in options:
        f.options.append(FieldOption(value=value, label=value, is_active=True))
    return f


def _details(exc_info):
    return exc_info.value.details


class TestNormaliseInput:

    def test_mapping_and_list_shapes(self):
        assert normalise_input({"a": 1}) == [("a", {"value": 1})]
        assert normalise_input([{"field_name": " a ", "value": 1}]) == [
            ("a", {"field_name": " a ", "value": 1}),
        ]
        assert normalise_input(None) == []

    def test_entry_without_name_rejected(self):
        with pytest.raises(ValidationError):
            normalise_input([{"value": 1}])

    def test_scalar_rejected(self):
        with pytest.raises(ValidationError):
            normalise_input("budget=1")

    @pytest.mark.parametrize("name", [5, ["a"], {"a": 1}, True])
    def test_non_string_name_rejected(self, name):
        with pytest.raises(ValidationError) as exc:
            normalise_input([{"field_name": name, "value": "x"}])
        assert _details(exc) == {"field_values[0]": "field_name is required"}


class TestCoercion:

    def test_text_rules(self):
        t = _template(_field("code", rules={"min_length": 2, "max_length": 4, "pattern": "^[A-Z]+$",
                                            "pattern_message": "Upper case only"}))
        assert validate_field_values(t, {"code": "ABC"})[0].text_value == "ABC"
        for bad, msg in (("A", "at least"), ("ABCDE", "exceed"), ("ab", "Upper case only")):
            with pytest.raises(ValidationError) as exc:
                validate_field_values(t, {"code": bad})
            assert msg in _details(exc)["code"]

    def test_email(self):
        t = _template(_field("mail", "email"))
        assert validate_field_values(t, {"mail": "a.b@acme.org"})[0].text_value == "a.b@acme.org"
        with pytest.raises(ValidationError) as exc:
            validate_field_values(t, {"mail": "not-an-email"})
        assert _details(exc)["mail"].startswith("Invalid email address")

    def test_number(self):
        t = _template(_field("n", "number", rules={"min": 1, "max": 10}))
        assert validate_field_values(t, {"n": "2.5"})[0].number_value == Decimal("2.5")
        for bad in ("abc", 0, 11, True, "NaN"):
            with pytest.raises(ValidationError):
                validate_field_values(t, {"n": bad})

    def test_date_formats(self):
        t = _template(_field("d", "date"))
        assert validate_field_values(t, {"d": "2026-05-01"})[0].date_value == date(2026, 5, 1)
        assert validate_field_values(t, {"d": "01.05.2026"})[0].date_value == date(2026, 5, 1)
        with pytest.raises(ValidationError):
            validate_field_values(t, {"d": "May first"})

    def test_boolean_must_be_bool(self):
        t = _template(_field("b", "boolean"))
        assert validate_field_values(t, {"b": False})[0].boolean_value is False
        with pytest.raises(ValidationError):
            validate_field_values(t, {"b": "yes"})

    def test_choice(self):
        t = _template(_field("c", "radio", options=("x", "y")))
        assert validate_field_values(t, {"c": "y"})[0].text_value == "y"
        with pytest.raises(ValidationError):
            validate_field_values(t, {"c": "z"})

    def test_multiselect_dedupes_and_accepts_json(self):
        t = _template(_field("m", "multiselect", options=("a", "b", "c")))
        parsed = validate_field_values(t, {"m": ["a", "b", "a"]})[0]
        assert json.loads(parsed.json_value) == ["a", "b"]
        parsed = validate_field_values(t, {"m": '["c"]'})[0]
        assert json.loads(parsed.json_value) == ["c"]
        with pytest.raises(ValidationError):
            validate_field_values(t, {"m": ["a", "zzz"]})

    def test_typed_keys(self):
        t = _template(_field("n", "number"), _field("b", "boolean"))
        parsed = validate_field_values(t, [
            {"field_name": "n", "number_value": 7},
            {"field_name": "b", "boolean_value": True},
        ])
        assert parsed[0].number_value == Decimal("7")
        assert parsed[1].boolean_value is True


class TestRequiredAndUnknown:

    def test_required_missing_on_create_only(self):
        t = _template(_field("r", required=True), _field("o"))
        with pytest.raises(ValidationError) as exc:
            validate_field_values(t, {"o": "x"}, require_all=True)
        assert _details(exc) == {"r": "This field is required"}
        assert len(validate_field_values(t, {"o": "x"}, require_all=False)) == 1

    def test_empty_optional_value_clears(self):
        t = _template(_field("o"))
        parsed = validate_field_values(t, {"o": ""})[0]
        assert all(v is None for v in parsed.columns.values())

    def test_empty_required_value_rejected(self):
        t = _template(_field("r", required=True))
        with pytest.raises(ValidationError):
            validate_field_values(t, {"r": "   "}, require_all=False)

    def test_unknown_inactive_and_duplicate(self):
        t = _template(_field("a"), _field("old", active=False))
        with pytest.raises(ValidationError) as exc:
            validate_field_values(t, [
                {"field_name": "nope", "value": "x"},
                {"field_name": "old", "value": "x"},
                {"field_name": "a", "value": "1"},
                {"field_name": "a", "value": "2"},
            ])
        details = _details(exc)
        assert details["nope"] == "Unknown field"
        assert details["old"].startswith("Field is deactivated")
        assert details["a"] == "Field supplied more than once"

    def test_values_without_template(self):
        assert validate_field_values(None, None) == []
        with pytest.raises(ValidationError):
            validate_field_values(None, {"a": 1})


class TestDefinitionRules:

    def test_valid_rules_returned(self):
        assert validate_field_definition_rules("text", {"max_length": 10}) == {"max_length": 10}
        assert validate_field_definition_rules("number", None) is None

    @pytest.mark.parametrize("field_type,rules", [
        ("text", {"colour": "red"}),
        ("text", {"max_length": -1}),
        ("number", {"pattern": "x"}),
        ("date", {"min": 1}),
        ("number", {"min": 5, "max": 1}),
        ("text", {"min_length": 5, "max_length": 1}),
        ("text", "not-a-dict"),
    ])
    def test_invalid_rules(self, field_type, rules):
        with pytest.raises(ValidationError):
            validate_field_definition_rules(field_type, rules)

    def test_unknown_type(self):
        with pytest.raises(ValidationError):
            validate_field_definition_rules("colour", None)

    @pytest.mark.parametrize("field_type", [["text"], {"type": "text"}, 3, None])
    def test_non_string_type_rejected(self, field_type):
        with pytest.raises(ValidationError) as exc:
            validate_field_definition_rules(field_type, None)
        assert "field_type" in _details(exc)
