"""
Template & dynamic field models.

Models:
    - Template: a set of field definitions attached to a decision board.
    - FieldDefinition: one dynamic form field with type, validation rules and
      an active flag. Deactivated fields keep their historical values on
      existing meeting items.
    - FieldOption: selectable value for dropdown / radio / multiselect fields.
"""

from app.models import db
from app.models.base import _iso, _utcnow, _uuid

# ── Constants ────────────────────────────────────────────────────────────────

TEXT_FIELD_TYPES = frozenset({"text", "textarea", "email"})
OPTION_FIELD_TYPES = frozenset({"dropdown", "radio", "multiselect"})

FIELD_TYPES = TEXT_FIELD_TYPES | OPTION_FIELD_TYPES | frozenset({"number", "date", "boolean"})

VALIDATION_RULE_KEYS = frozenset({
    "min_length", "max_length", "min", "max", "pattern", "pattern_message",
})

DEFAULT_CATEGORY = "General"


class Template(db.Model):
    """Dynamic form template owned by a decision board."""

    __tablename__ = "templates"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    decision_board_id = db.Column(
        db.String(36),
        db.ForeignKey("decision_boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.String(50), nullable=False, default="system")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_by = db.Column(db.String(50), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    decision_board = db.relationship(
        "DecisionBoard",
        back_populates="templates",
        foreign_keys=[decision_board_id],
    )
    field_definitions = db.relationship(
        "FieldDefinition",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="FieldDefinition.display_order",
    )

    __table_args__ = (
        db.UniqueConstraint("decision_board_id", "name", name="uq_template_board_name"),
    )

    def field_by_name(self, field_name):
        for field in self.field_definitions:
            if field.field_name == field_name:
                return field
        return None

    @property
    def active_fields(self):
        return [f for f in self.field_definitions if f.is_active]

    def to_dict(self, include_fields=True, active_only=False):
        d = {
            "id": self.id,
            "decision_board_id": self.decision_board_id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_by": self.updated_by,
            "updated_at": _iso(self.updated_at),
        }
        if include_fields:
            fields = self.active_fields if active_only else self.field_definitions
            fields = sorted(fields, key=lambda f: (f.category or "", f.display_order or 0))
            d["field_definitions"] = [f.to_dict(active_options_only=active_only) for f in fields]
        return d

    def __repr__(self):
        return f"<Template {self.name}>"


class FieldDefinition(db.Model):
    """A single dynamic field of a template."""

    __tablename__ = "field_definitions"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    template_id = db.Column(
        db.String(36),
        db.ForeignKey("templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_name = db.Column(db.String(100), nullable=False)
    label = db.Column(db.String(200), nullable=False, default="")
    field_type = db.Column(
        db.String(20), nullable=False, default="text",
        comment="text | textarea | email | number | date | boolean | dropdown | radio | multiselect",
    )
    category = db.Column(db.String(100), nullable=False, default=DEFAULT_CATEGORY)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    help_text = db.Column(db.String(500), nullable=True)
    placeholder_text = db.Column(db.String(200), nullable=True)
    validation_rules = db.Column(
        db.JSON, nullable=True,
        comment="{min_length, max_length, min, max, pattern, pattern_message}",
    )
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deactivation_reason = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    template = db.relationship("Template", back_populates="field_definitions")
    options = db.relationship(
        "FieldOption",
        back_populates="field_definition",
        cascade="all, delete-orphan",
        order_by="FieldOption.display_order",
    )

    __table_args__ = (
        db.UniqueConstraint("template_id", "field_name", name="uq_field_template_name"),
    )

    @property
    def rules(self):
        return self.validation_rules or {}

    @property
    def active_option_values(self):
        return [o.value for o in self.options if o.is_active]

    def deactivate(self, reason=None):
        self.is_active = False
        self.deactivated_at = _utcnow()
        self.deactivation_reason = reason

    def reactivate(self):
        self.is_active = True
        self.deactivated_at = None
        self.deactivation_reason = None

    def to_dict(self, active_options_only=False):
        options = [o for o in self.options if o.is_active] if active_options_only else self.options
        return {
            "id": self.id,
            "template_id": self.template_id,
            "field_name": self.field_name,
            "label": self.label,
            "field_type": self.field_type,
            "category": self.category,
            "display_order": self.display_order,
            "is_required": self.is_required,
            "is_active": self.is_active,
            "help_text": self.help_text,
            "placeholder_text": self.placeholder_text,
            "validation_rules": self.validation_rules or None,
            "deactivated_at": _iso(self.deactivated_at),
            "deactivation_reason": self.deactivation_reason,
            "options": [o.to_dict() for o in options],
        }

    def __repr__(self):
        return f"<FieldDefinition {self.field_name} ({self.field_type})>"


class FieldOption(db.Model):
    """Selectable option of a dropdown / radio / multiselect field."""

    __tablename__ = "field_options"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    field_definition_id = db.Column(
        db.String(36),
        db.ForeignKey("field_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    value = db.Column(db.String(200), nullable=False)
    label = db.Column(db.String(200), nullable=False, default="")
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    field_definition = db.relationship("FieldDefinition", back_populates="options")

    def to_dict(self):
        return {
            "id": self.id,
            "value": self.value,
            "label": self.label,
            "display_order": self.display_order,
            "is_default": self.is_default,
            "is_active": self.is_active,
        }
