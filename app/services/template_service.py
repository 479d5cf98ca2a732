"""Template & field definition service layer.

Templates define the dynamic fields of the meeting item form of a decision
board.  Field definitions are never hard-deleted: deactivation keeps the
values already stored on meeting items, which are then shown as
historical fields.

Rules:
  - field_name is unique per template and immutable once created.
  - field_type is immutable once created.
  - Option lists are upserted by value; options left out of an update are
    deactivated rather than removed.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.audit import diff_fields, write_audit
from app.models.decision_board import DecisionBoard
from app.models.template import DEFAULT_CATEGORY, FieldDefinition, FieldOption, Template
from app.services.field_validation import requires_options, validate_field_definition_rules
from app.utils.helpers import db_commit_or_raise, get_or_404

logger = logging.getLogger(__name__)

MAX_TEMPLATE_NAME = 200
MAX_FIELD_NAME = 100
MAX_LABEL = 200
MAX_CATEGORY = 100
MAX_HELP_TEXT = 500
MAX_PLACEHOLDER = 200
MAX_DEACTIVATION_REASON = 500

_EDITABLE_FIELD_ATTRS = (
    "label", "category", "display_order", "is_required", "help_text", "placeholder_text",
)


# ── Input helpers ────────────────────────────────────────────────────────────


def _text(data, key, max_length, errors, *, required=False, prefix=""):
    raw = data.get(key)
    if raw is not None and not isinstance(raw, str):
        errors[f"{prefix}{key}"] = "Must be a string"
        return None
    value = (raw or "").strip()
    if required and not value:
        errors[f"{prefix}{key}"] = "This field is required"
    elif len(value) > max_length:
        errors[f"{prefix}{key}"] = f"Must not exceed {max_length} characters"
    return value or None


def _int(data, key, errors, default=0, prefix=""):
    raw = data.get(key, default)
    if raw is None:
        return default
    if isinstance(raw, bool):
        errors[f"{prefix}{key}"] = "Must be an integer"
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        errors[f"{prefix}{key}"] = "Must be an integer"
        return default


def _parse_options(raw_options, errors, prefix=""):
    if raw_options is None:
        return []
    if not isinstance(raw_options, list):
        errors[f"{prefix}options"] = "Must be a list"
        return []
    parsed, seen = [], set()
    for idx, opt in enumerate(raw_options):
        p = f"{prefix}options[{idx}]."
        if isinstance(opt, str):
            opt = {"value": opt}
        if not isinstance(opt, dict):
            errors[f"{prefix}options[{idx}]"] = "Must be an object"
            continue
        value = _text(opt, "value", 200, errors, required=True, prefix=p)
        if value is None:
            continue
        if value in seen:
            errors[f"{p}value"] = "Duplicate option value"
            continue
        seen.add(value)
        parsed.append({
            "value": value,
            "label": _text(opt, "label", 200, errors, prefix=p) or value,
            "display_order": _int(opt, "display_order", errors, default=idx, prefix=p),
            "is_default": bool(opt.get("is_default", False)),
            "is_active": bool(opt.get("is_active", True)),
        })
    return parsed


def _parse_field(data, errors, prefix=""):
    """Validate a field definition payload; returns a plain dict."""
    field_name = _text(data, "field_name", MAX_FIELD_NAME, errors, required=True, prefix=prefix)
    field_type = (data.get("field_type") or "text")
    field_type = field_type.strip().lower() if isinstance(field_type, str) else field_type
    try:
        rules = validate_field_definition_rules(field_type, data.get("validation_rules"))
    except ValidationError as exc:
        errors.update({f"{prefix}{k}": v for k, v in exc.details.items()})
        rules = None
    options = _parse_options(data.get("options"), errors, prefix=prefix)
    if field_type in ("dropdown", "radio", "multiselect") and not options:
        errors[f"{prefix}options"] = f"{field_type} fields need at least one option"
    elif options and not requires_options(field_type):
        errors[f"{prefix}options"] = f"Options are not applicable to {field_type} fields"

    return {
        "field_name": field_name,
        "label": _text(data, "label", MAX_LABEL, errors, prefix=prefix) or field_name or "",
        "field_type": field_type,
        "category": _text(data, "category", MAX_CATEGORY, errors, prefix=prefix) or DEFAULT_CATEGORY,
        "display_order": _int(data, "display_order", errors, prefix=prefix),
        "is_required": bool(data.get("is_required", False)),
        "help_text": _text(data, "help_text", MAX_HELP_TEXT, errors, prefix=prefix),
        "placeholder_text": _text(data, "placeholder_text", MAX_PLACEHOLDER, errors, prefix=prefix),
        "validation_rules": rules,
        "options": options,
    }


def _build_field(parsed):
    field = FieldDefinition(**{k: v for k, v in parsed.items() if k != "options"})
    for opt in parsed["options"]:
        field.options.append(FieldOption(**opt))
    return field


def _sync_options(field, options):
    """Upsert options by value; deactivate those not listed."""
    by_value = {o.value: o for o in field.options}
    listed = set()
    for opt in options:
        listed.add(opt["value"])
        existing = by_value.get(opt["value"])
        if existing is None:
            field.options.append(FieldOption(**opt))
            continue
        for key in ("label", "display_order", "is_default", "is_active"):
            setattr(existing, key, opt[key])
    for value, existing in by_value.items():
        if value not in listed:
            existing.is_active = False


# ── Templates ────────────────────────────────────────────────────────────────


def get_template(template_id: str) -> Template:
    return get_or_404(Template, template_id, "Template")


def list_templates(decision_board_id: str | None = None) -> list[dict]:
    stmt = select(Template).order_by(Template.created_at)
    if decision_board_id:
        stmt = stmt.where(Template.decision_board_id == decision_board_id)
    return [t.to_dict(include_fields=False) for t in db.session.execute(stmt).scalars()]


def create_template(data: dict, actor: str) -> dict:
    """Create a template with nested field definitions and options.

    Body: {decision_board_id, name, description?, is_active?, set_as_default?,
           field_definitions?: [{field_name, field_type, label, ..., options}]}

    The template becomes the board's default when the board has none yet or
    when ``set_as_default`` is true.
    """
    errors: dict = {}
    board_id = data.get("decision_board_id")
    if not board_id:
        errors["decision_board_id"] = "This field is required"
    name = _text(data, "name", MAX_TEMPLATE_NAME, errors, required=True)

    raw_fields = data.get("field_definitions") or []
    if not isinstance(raw_fields, list):
        errors["field_definitions"] = "Must be a list"
        raw_fields = []
    parsed_fields = [
        _parse_field(f if isinstance(f, dict) else {}, errors, prefix=f"field_definitions[{i}].")
        for i, f in enumerate(raw_fields)
    ]
    names = [f["field_name"] for f in parsed_fields if f["field_name"]]
    dupes = {n for n in names if names.count(n) > 1}
    if dupes:
        errors["field_definitions"] = f"Duplicate field names: {', '.join(sorted(dupes))}"
    if errors:
        raise ValidationError("Validation failed", details=errors)

    board = get_or_404(DecisionBoard, board_id, "DecisionBoard")
    exists = db.session.execute(
        select(Template.id).where(Template.decision_board_id == board.id, Template.name == name)
    ).first()
    if exists:
        raise ConflictError("Template", "name", name)

    template = Template(
        decision_board_id=board.id,
        name=name,
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
        created_by=actor,
    )
    for parsed in parsed_fields:
        template.field_definitions.append(_build_field(parsed))
    db.session.add(template)
    db.session.flush()

    if data.get("set_as_default") or not board.default_template_id:
        board.default_template_id = template.id

    write_audit(entity_type="template", entity_id=template.id, action="create",
                actor=actor, diff={"name": name, "fields": names})
    db_commit_or_raise()
    logger.info(
        "Template created id=%s board=%s fields=%d", template.id, board.id, len(parsed_fields),
    )
    return template.to_dict()


def update_template(template_id: str, data: dict, actor: str) -> dict:
    template = get_template(template_id)
    errors: dict = {}
    changes: dict = {}
    if "name" in data:
        changes["name"] = _text(data, "name", MAX_TEMPLATE_NAME, errors, required=True)
    if "description" in data:
        changes["description"] = data.get("description")
    if "is_active" in data:
        changes["is_active"] = bool(data["is_active"])
    if errors:
        raise ValidationError("Validation failed", details=errors)

    if changes.get("name") and changes["name"] != template.name:
        clash = db.session.execute(
            select(Template.id).where(
                Template.decision_board_id == template.decision_board_id,
                Template.name == changes["name"],
                Template.id != template.id,
            )
        ).first()
        if clash:
            raise ConflictError("Template", "name", changes["name"])

    diff = diff_fields(template, changes)
    for key, value in changes.items():
        setattr(template, key, value)
    template.updated_by = actor
    if diff:
        write_audit(entity_type="template", entity_id=template.id, action="update",
                    actor=actor, diff=diff)
    db_commit_or_raise()
    return template.to_dict()


def get_template_by_decision_board(board_id: str) -> dict:
    """Form template for a board: active fields and active options only.

    Uses the board's default template when it is active, otherwise the
    oldest active template of the board.
    """
    board = get_or_404(DecisionBoard, board_id, "DecisionBoard")
    template = board.default_template
    if template is None or not template.is_active:
        template = db.session.execute(
            select(Template)
            .where(Template.decision_board_id == board.id, Template.is_active.is_(True))
            .order_by(Template.created_at)
            .limit(1)
        ).scalar_one_or_none()
    if template is None:
        raise NotFoundError(resource="Template for DecisionBoard", resource_id=board.id)
    return template.to_dict(active_only=True)


# ── Field definitions ────────────────────────────────────────────────────────


def get_field(field_id: str) -> FieldDefinition:
    return get_or_404(FieldDefinition, field_id, "FieldDefinition")


def add_field(template_id: str, data: dict, actor: str) -> dict:
    template = get_template(template_id)
    errors: dict = {}
    parsed = _parse_field(data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)
    if template.field_by_name(parsed["field_name"]):
        raise ConflictError("FieldDefinition", "field_name", parsed["field_name"])

    field = _build_field(parsed)
    template.field_definitions.append(field)
    template.updated_by = actor
    db.session.flush()
    write_audit(entity_type="field_definition", entity_id=field.id, action="create",
                actor=actor, diff={"template_id": template.id, "field_name": field.field_name})
    db_commit_or_raise()
    logger.info("Field %s added to template %s", field.field_name, template.id)
    return field.to_dict()


def update_field(field_id: str, data: dict, actor: str) -> dict:
    """Update label, layout, required flag, rules and options of a field."""
    field = get_field(field_id)
    errors: dict = {}

    if "field_name" in data and data["field_name"] != field.field_name:
        errors["field_name"] = "Field name cannot be changed"
    if "field_type" in data and data["field_type"] != field.field_type:
        errors["field_type"] = "Field type cannot be changed"

    merged = field.to_dict()
    merged.update({k: data[k] for k in data if k in _EDITABLE_FIELD_ATTRS + ("validation_rules", "options")})
    if "options" not in data:
        merged["options"] = [o for o in merged["options"] if o["is_active"]]
    parsed = _parse_field(merged, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    changes = {k: parsed[k] for k in _EDITABLE_FIELD_ATTRS if k in data}
    if "validation_rules" in data:
        changes["validation_rules"] = parsed["validation_rules"]
    diff = diff_fields(field, changes)
    for key, value in changes.items():
        setattr(field, key, value)
    if "options" in data:
        _sync_options(field, parsed["options"])
        diff["options"] = [o["value"] for o in parsed["options"]]

    if diff:
        write_audit(entity_type="field_definition", entity_id=field.id, action="update",
                    actor=actor, diff=diff)
    db_commit_or_raise()
    return field.to_dict()


def deactivate_field(field_id: str, reason: str | None, actor: str) -> dict:
    """Deactivate a field. Existing values stay on items as historical fields."""
    field = get_field(field_id)
    if reason is not None and (not isinstance(reason, str) or len(reason) > MAX_DEACTIVATION_REASON):
        raise ValidationError(
            "Validation failed",
            details={"reason": f"Must be a string of at most {MAX_DEACTIVATION_REASON} characters"},
        )
    if not field.is_active:
        raise ValidationError("Field is already deactivated", details={"field_id": field.id})

    field.deactivate(reason)
    write_audit(entity_type="field_definition", entity_id=field.id,
                action="field_definition.deactivate", actor=actor, diff={"reason": reason})
    db_commit_or_raise()
    logger.info("Field %s deactivated (template=%s)", field.field_name, field.template_id)
    return field.to_dict()


def reactivate_field(field_id: str, actor: str) -> dict:
    field = get_field(field_id)
    if field.is_active:
        raise ValidationError("Field is already active", details={"field_id": field.id})
    field.reactivate()
    write_audit(entity_type="field_definition", entity_id=field.id,
                action="field_definition.reactivate", actor=actor)
    db_commit_or_raise()
    logger.info("Field %s reactivated (template=%s)", field.field_name, field.template_id)
    return field.to_dict()
