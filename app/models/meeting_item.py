"""
Meeting item domain models.

Models:
    - MeetingItem: a request submitted to a decision board.
    - MeetingItemFieldValue: typed value of one dynamic field on one item.
    - MeetingItemStatusHistory: append-only trail of status transitions.

Status workflow:
    Draft ──submit──▶ Submitted
    Submitted → Proposed | Denied
    Proposed  → Planned  | Denied
    Planned   → Discussed | Denied
    Discussed, Denied: terminal
"""

import json

from app.models import db
from app.models.base import _iso, _utcnow, _uuid

# ── Constants ────────────────────────────────────────────────────────────────

OUTCOMES = ("Decision", "Discussion", "Information")

STATUS_DRAFT = "Draft"
STATUS_SUBMITTED = "Submitted"
STATUS_PROPOSED = "Proposed"
STATUS_PLANNED = "Planned"
STATUS_DISCUSSED = "Discussed"
STATUS_DENIED = "Denied"

STATUSES = (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_PROPOSED,
    STATUS_PLANNED,
    STATUS_DISCUSSED,
    STATUS_DENIED,
)

# Board-driven transitions (PATCH /status). Draft → Submitted is a separate
# requestor action, see ``submit``.
STATUS_TRANSITIONS = {
    STATUS_SUBMITTED: [STATUS_PROPOSED, STATUS_DENIED],
    STATUS_PROPOSED: [STATUS_PLANNED, STATUS_DENIED],
    STATUS_PLANNED: [STATUS_DISCUSSED, STATUS_DENIED],
    STATUS_DISCUSSED: [],
    STATUS_DENIED: [],
}

# Statuses a board member may move an item into.
BOARD_STATUSES = (
    STATUS_SUBMITTED,
    STATUS_PROPOSED,
    STATUS_PLANNED,
    STATUS_DISCUSSED,
    STATUS_DENIED,
)

TERMINAL_STATUSES = frozenset({STATUS_DISCUSSED, STATUS_DENIED})

MIN_DURATION_MINUTES = 1
MAX_DURATION_MINUTES = 480


def validate_status_transition(old_status, new_status):
    """Return True if old_status → new_status is a legal board transition."""
    return new_status in STATUS_TRANSITIONS.get(old_status, [])


# ═════════════════════════════════════════════════════════════════════════════
# MeetingItem
# ═════════════════════════════════════════════════════════════════════════════


class MeetingItem(db.Model):
    __tablename__ = "meeting_items"
    __table_args__ = (
        db.Index("ix_meeting_items_board_status", "decision_board_id", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    decision_board_id = db.Column(
        db.String(36),
        db.ForeignKey("decision_boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    template_id = db.Column(
        db.String(36),
        db.ForeignKey("templates.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # General information
    topic = db.Column(db.String(200), nullable=False)
    purpose = db.Column(db.String(2000), nullable=False)
    outcome = db.Column(db.String(20), nullable=False, comment="Decision | Discussion | Information")
    duration_minutes = db.Column(db.Integer, nullable=False)
    digital_product = db.Column(db.String(200), nullable=False)

    # Participants
    requestor = db.Column(db.String(50), nullable=False, index=True)
    owner_presenter = db.Column(db.String(50), nullable=False)
    sponsor = db.Column(db.String(50), nullable=True)

    # Workflow
    status = db.Column(db.String(20), nullable=False, default=STATUS_DRAFT, index=True)
    submission_date = db.Column(db.DateTime(timezone=True), nullable=True)
    denial_reason = db.Column(db.String(1000), nullable=True)

    # Audit
    created_by = db.Column(db.String(50), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_by = db.Column(db.String(50), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    decision_board = db.relationship("DecisionBoard")
    template = db.relationship("Template")
    documents = db.relationship(
        "Document",
        back_populates="meeting_item",
        cascade="all, delete-orphan",
        order_by="Document.uploaded_at",
    )
    field_values = db.relationship(
        "MeetingItemFieldValue",
        back_populates="meeting_item",
        cascade="all, delete-orphan",
    )
    status_history = db.relationship(
        "MeetingItemStatusHistory",
        back_populates="meeting_item",
        cascade="all, delete-orphan",
        order_by="MeetingItemStatusHistory.id",
    )

    # ── Domain methods ───────────────────────────────────────────────────

    def is_participant(self, user_id):
        return bool(user_id) and user_id in (self.requestor, self.owner_presenter)

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def update_details(self, *, updated_by, **fields):
        """Apply static-field changes; unknown keys are ignored."""
        for attr in (
            "topic", "purpose", "outcome", "digital_product",
            "duration_minutes", "owner_presenter", "sponsor",
        ):
            if attr in fields:
                setattr(self, attr, fields[attr])
        self.touch(updated_by)

    def touch(self, updated_by):
        self.updated_by = updated_by
        self.updated_at = _utcnow()

    def change_status(self, new_status, changed_by, comment=None, denial_reason=None):
        """Move to *new_status* and append a history row.

        Legality is checked by the caller; this only records the change.
        """
        previous = self.status
        self.status = new_status
        if new_status == STATUS_SUBMITTED and self.submission_date is None:
            self.submission_date = _utcnow()
        if new_status == STATUS_DENIED:
            self.denial_reason = denial_reason
        self.touch(changed_by)

        entry = MeetingItemStatusHistory(
            from_status=previous,
            to_status=new_status,
            comment=comment,
            denial_reason=denial_reason if new_status == STATUS_DENIED else None,
            changed_by=changed_by,
        )
        self.status_history.append(entry)
        return entry

    def field_value_for(self, field_definition_id):
        for fv in self.field_values:
            if fv.field_definition_id == field_definition_id:
                return fv
        return None

    @property
    def active_documents(self):
        return [d for d in self.documents if not d.is_deleted]

    # ── Serialisation ────────────────────────────────────────────────────

    def to_dict(self):
        return {
            "id": self.id,
            "decision_board_id": self.decision_board_id,
            "template_id": self.template_id,
            "topic": self.topic,
            "purpose": self.purpose,
            "outcome": self.outcome,
            "duration_minutes": self.duration_minutes,
            "digital_product": self.digital_product,
            "requestor": self.requestor,
            "owner_presenter": self.owner_presenter,
            "sponsor": self.sponsor,
            "status": self.status,
            "submission_date": _iso(self.submission_date),
            "denial_reason": self.denial_reason,
            "document_count": len(self.active_documents),
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_by": self.updated_by,
            "updated_at": _iso(self.updated_at),
        }

    def to_detail_dict(self):
        """Full view: static fields, active/historical field values, documents, history."""
        d = self.to_dict()
        d["decision_board_name"] = self.decision_board.name if self.decision_board else ""
        d["template_name"] = self.template.name if self.template else ""

        active, historical = [], []
        for fv in self.field_values:
            fdef = fv.field_definition
            if fdef.is_active:
                active.append(fv.to_dict())
            else:
                historical.append({
                    "field_name": fdef.field_name,
                    "label": fdef.label,
                    "field_type": fdef.field_type,
                    "value": fv.display_value(),
                    "deactivated_at": _iso(fdef.deactivated_at),
                    "deactivation_reason": fdef.deactivation_reason,
                })
        d["active_fields"] = sorted(
            active, key=lambda f: (f["category"] or "", f["display_order"] or 0)
        )
        d["historical_fields"] = historical
        d["documents"] = [doc.to_dict() for doc in self.active_documents]
        d["status_history"] = [h.to_dict() for h in self.status_history]
        return d

    def __repr__(self):
        return f"<MeetingItem {self.id[:8]} [{self.status}] {self.topic[:30]}>"


# ═════════════════════════════════════════════════════════════════════════════
# MeetingItemFieldValue
# ═════════════════════════════════════════════════════════════════════════════


class MeetingItemFieldValue(db.Model):
    """One typed value per (meeting item, field definition)."""

    __tablename__ = "meeting_item_field_values"
    __table_args__ = (
        db.UniqueConstraint(
            "meeting_item_id", "field_definition_id", name="uq_field_value_item_field",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    meeting_item_id = db.Column(
        db.String(36),
        db.ForeignKey("meeting_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    field_definition_id = db.Column(
        db.String(36),
        db.ForeignKey("field_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text_value = db.Column(db.Text, nullable=True)
    number_value = db.Column(db.Numeric(18, 4), nullable=True)
    date_value = db.Column(db.Date, nullable=True)
    boolean_value = db.Column(db.Boolean, nullable=True)
    json_value = db.Column(db.Text, nullable=True, comment="JSON-encoded list for multiselect")
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    meeting_item = db.relationship("MeetingItem", back_populates="field_values")
    field_definition = db.relationship("FieldDefinition")

    def set_value(self, *, text_value=None, number_value=None, date_value=None,
                  boolean_value=None, json_value=None):
        self.text_value = text_value
        self.number_value = number_value
        self.date_value = date_value
        self.boolean_value = boolean_value
        self.json_value = json_value

    def display_value(self) -> str:
        """String rendering used for historical (deactivated) fields."""
        ftype = self.field_definition.field_type if self.field_definition else None
        if ftype == "number":
            return "" if self.number_value is None else _format_number(self.number_value)
        if ftype == "date":
            return self.date_value.isoformat() if self.date_value else ""
        if ftype == "boolean":
            return "" if self.boolean_value is None else str(self.boolean_value)
        if ftype == "multiselect":
            return self.json_value or ""
        return self.text_value or ""

    @property
    def selected_values(self):
        try:
            return json.loads(self.json_value) if self.json_value else []
        except (json.JSONDecodeError, TypeError):
            return []

    def to_dict(self):
        fdef = self.field_definition
        return {
            "id": self.id,
            "field_definition_id": self.field_definition_id,
            "field_name": fdef.field_name if fdef else None,
            "label": fdef.label if fdef else None,
            "field_type": fdef.field_type if fdef else None,
            "category": fdef.category if fdef else None,
            "display_order": fdef.display_order if fdef else 0,
            "is_required": fdef.is_required if fdef else False,
            "text_value": self.text_value,
            "number_value": None if self.number_value is None else float(self.number_value),
            "date_value": _iso(self.date_value),
            "boolean_value": self.boolean_value,
            "json_value": self.json_value,
        }


def _format_number(value):
    as_float = float(value)
    return str(int(as_float)) if as_float.is_integer() else str(as_float)


# ═════════════════════════════════════════════════════════════════════════════
# MeetingItemStatusHistory
# ═════════════════════════════════════════════════════════════════════════════


class MeetingItemStatusHistory(db.Model):
    """
    Append-only status trail.

    Rows are never updated or deleted by the application. Items in Draft have
    no rows; afterwards the most recent row matches ``MeetingItem.status``.
    """

    __tablename__ = "meeting_item_status_history"

    id = db.Column(db.Integer, primary_key=True)
    meeting_item_id = db.Column(
        db.String(36),
        db.ForeignKey("meeting_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_status = db.Column(db.String(20), nullable=False)
    to_status = db.Column(db.String(20), nullable=False)
    comment = db.Column(db.String(1000), nullable=True)
    denial_reason = db.Column(db.String(1000), nullable=True)
    changed_by = db.Column(db.String(50), nullable=False)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    meeting_item = db.relationship("MeetingItem", back_populates="status_history")

    def to_dict(self):
        return {
            "id": self.id,
            "meeting_item_id": self.meeting_item_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "comment": self.comment,
            "denial_reason": self.denial_reason,
            "changed_by": self.changed_by,
            "changed_at": _iso(self.changed_at),
        }

    def __repr__(self):
        return f"<StatusHistory {self.meeting_item_id[:8]} {self.from_status}→{self.to_status}>"
