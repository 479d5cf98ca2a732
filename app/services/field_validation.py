"""
Dynamic field validation against a template's field definitions.

Input shapes accepted for ``field_values``:
    [{"field_name": "budget", "value": 1200}]
    [{"field_name": "budget", "number_value": 1200}]       # typed keys
    {"budget": 1200, "region": "EMEA"}                      # mapping

Every entry is validated and coerced into the typed columns of
``MeetingItemFieldValue`` (text / number / date / boolean / json).
Errors are collected per field name and raised together as one
``ValidationError`` with ``details = {field_name: message}``.
"""

import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ValidationError
from app.models.template import FIELD_TYPES, OPTION_FIELD_TYPES, TEXT_FIELD_TYPES, VALIDATION_RULE_KEYS
from app.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

# Typed input key per field type when no generic "value" is given.
_TYPED_KEYS = {
    "text": "text_value",
    "textarea": "text_value",
    "email": "text_value",
    "dropdown": "text_value",
    "radio": "text_value",
    "number": "number_value",
    "date": "date_value",
    "boolean": "boolean_value",
    "multiselect": "json_value",
}


@dataclass
class ParsedFieldValue:
    """A validated value ready for ``MeetingItemFieldValue.set_value``."""

    field: object
    text_value: str | None = None
    number_value: Decimal | None = None
    date_value: object = None
    boolean_value: bool | None = None
    json_value: str | None = None

    @property
    def columns(self):
        return {
            "text_value": self.text_value,
            "number_value": self.number_value,
            "date_value": self.date_value,
            "boolean_value": self.boolean_value,
            "json_value": self.json_value,
        }


def _is_empty(value):
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def normalise_input(field_values):
    """Turn the accepted input shapes into ``[(field_name, entry_dict)]``."""
    if field_values is None:
        return []
    if isinstance(field_values, dict):
        return [(name, {"value": value}) for name, value in field_values.items()]
    if not isinstance(field_values, list):
        raise ValidationError(
            "field_values must be a list or an object",
            details={"field_values": "Expected a list of {field_name, value} entries"},
        )
    out = []
    for idx, entry in enumerate(field_values):
        name = entry.get("field_name") if isinstance(entry, dict) else None
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(
                "Invalid field value entry",
                details={f"field_values[{idx}]": "field_name is required"},
            )
        out.append((name.strip(), entry))
    return out


def _raw_value(field, entry):
    if "value" in entry:
        return entry["value"]
    return entry.get(_TYPED_KEYS.get(field.field_type, "text_value"))


# ── Per-type coercion (raise ValueError with a user-facing message) ──────────


def _coerce_text(field, value):
    if not isinstance(value, str):
        raise ValueError("Must be a string")
    rules = field.rules
    if "min_length" in rules and len(value) < int(rules["min_length"]):
        raise ValueError(f"Must be at least {rules['min_length']} characters")
    if "max_length" in rules and len(value) > int(rules["max_length"]):
        raise ValueError(f"Must not exceed {rules['max_length']} characters")
    if rules.get("pattern") and not re.search(rules["pattern"], value):
        raise ValueError(rules.get("pattern_message") or "Invalid format")
    if field.field_type == "email":
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError as exc:
            raise ValueError(f"Invalid email address: {exc}") from exc
    return ParsedFieldValue(field=field, text_value=value)


def _coerce_number(field, value):
    if isinstance(value, bool):
        raise ValueError("Must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError("Must be a number") from None
    if not number.is_finite():
        raise ValueError("Must be a number")
    rules = field.rules
    if "min" in rules and number < Decimal(str(rules["min"])):
        raise ValueError(f"Must be at least {rules['min']}")
    if "max" in rules and number > Decimal(str(rules["max"])):
        raise ValueError(f"Must not exceed {rules['max']}")
    return ParsedFieldValue(field=field, number_value=number)


def _coerce_date(field, value):
    try:
        parsed = parse_date_input(value)
    except (ValueError, TypeError) as exc:
        raise ValueError(str(exc) or "Invalid date") from exc
    return ParsedFieldValue(field=field, date_value=parsed)


def _coerce_boolean(field, value):
    if not isinstance(value, bool):
        raise ValueError("Must be true or false")
    return ParsedFieldValue(field=field, boolean_value=value)


def _coerce_choice(field, value):
    if not isinstance(value, str):
        raise ValueError("Must be a string")
    if value not in field.active_option_values:
        raise ValueError(f"'{value}' is not an active option")
    return ParsedFieldValue(field=field, text_value=value)


def _coerce_multiselect(field, value):
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ValueError("Must be a list of option values") from None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError("Must be a list of option values")
    allowed = set(field.active_option_values)
    invalid = [v for v in value if v not in allowed]
    if invalid:
        raise ValueError(f"Not active options: {', '.join(invalid)}")
    selected = list(dict.fromkeys(value))
    return ParsedFieldValue(field=field, json_value=json.dumps(selected))


_COERCERS = {
    "text": _coerce_text,
    "textarea": _coerce_text,
    "email": _coerce_text,
    "number": _coerce_number,
    "date": _coerce_date,
    "boolean": _coerce_boolean,
    "dropdown": _coerce_choice,
    "radio": _coerce_choice,
    "multiselect": _coerce_multiselect,
}


def validate_field_values(template, field_values, *, require_all=True):
    """Validate *field_values* against *template*.

    Args:
        template:     Template whose field definitions apply (may be None).
        field_values: Input in any accepted shape.
        require_all:  When True every required active field must be present
                      with a non-empty value (create).  When False only the
                      supplied entries are checked (update).

    Returns:
        list[ParsedFieldValue], one per supplied field.  Empty optional
        values are returned with all columns None so callers can clear them.

    Raises:
        ValidationError: details maps field names to messages.
    """
    entries = normalise_input(field_values)
    if template is None:
        if entries:
            raise ValidationError(
                "Field values require a template",
                details={"template_id": "A template is required to store field values"},
            )
        return []

    errors = {}
    parsed = []
    seen = set()

    for name, entry in entries:
        if name in seen:
            errors[name] = "Field supplied more than once"
            continue
        seen.add(name)

        field = template.field_by_name(name)
        if field is None:
            errors[name] = "Unknown field"
            continue
        if not field.is_active:
            errors[name] = "Field is deactivated and no longer accepts values"
            continue

        value = _raw_value(field, entry)
        if _is_empty(value):
            if field.is_required:
                errors[name] = "This field is required"
            else:
                parsed.append(ParsedFieldValue(field=field))
            continue

        try:
            parsed.append(_COERCERS[field.field_type](field, value))
        except ValueError as exc:
            errors[name] = str(exc)

    if require_all:
        for field in template.active_fields:
            if field.is_required and field.field_name not in seen:
                errors.setdefault(field.field_name, "This field is required")

    if errors:
        raise ValidationError("Dynamic field validation failed", details=errors)
    return parsed


def missing_required_fields(item):
    """Names of required active template fields with no stored value on *item*."""
    if item.template is None:
        return []
    missing = []
    for field in item.template.active_fields:
        if not field.is_required:
            continue
        fv = item.field_value_for(field.id)
        if fv is None or _is_empty(fv.display_value()):
            missing.append(field.field_name)
    return missing


# ── Definition-time checks (templates) ───────────────────────────────────────


def validate_field_definition_rules(field_type, rules):
    """Check a field definition's type and validation rules.

    Returns the cleaned rules dict (or None).  Raises ValidationError.
    """
    if not isinstance(field_type, str) or field_type not in FIELD_TYPES:
        raise ValidationError(
            "Invalid field type",
            details={"field_type": f"Must be one of: {', '.join(sorted(FIELD_TYPES))}"},
        )
    if not rules:
        return None
    if not isinstance(rules, dict):
        raise ValidationError("Invalid validation rules", details={"validation_rules": "Must be an object"})

    unknown = set(rules) - VALIDATION_RULE_KEYS
    if unknown:
        raise ValidationError(
            "Invalid validation rules",
            details={"validation_rules": f"Unknown keys: {', '.join(sorted(unknown))}"},
        )

    errors = {}
    for key in ("min_length", "max_length"):
        if key in rules:
            val = rules[key]
            if isinstance(val, bool) or not isinstance(val, int) or val < 0:
                errors[key] = "Must be a non-negative integer"
            elif field_type not in TEXT_FIELD_TYPES:
                errors[key] = f"Not applicable to {field_type} fields"
    for key in ("min", "max"):
        if key in rules:
            val = rules[key]
            if isinstance(val, bool) or not isinstance(val, (int, float)):
                errors[key] = "Must be a number"
            elif field_type != "number":
                errors[key] = f"Not applicable to {field_type} fields"
    if "pattern" in rules:
        if field_type not in TEXT_FIELD_TYPES:
            errors["pattern"] = f"Not applicable to {field_type} fields"
        else:
            try:
                re.compile(str(rules["pattern"]))
            except re.error as exc:
                errors["pattern"] = f"Invalid regular expression: {exc}"

    if not errors:
        if "min_length" in rules and "max_length" in rules and rules["min_length"] > rules["max_length"]:
            errors["min_length"] = "Must not exceed max_length"
        if "min" in rules and "max" in rules and rules["min"] > rules["max"]:
            errors["min"] = "Must not exceed max"

    if errors:
        raise ValidationError("Invalid validation rules", details=errors)
    return dict(rules)


def requires_options(field_type):
    return isinstance(field_type, str) and field_type in OPTION_FIELD_TYPES
