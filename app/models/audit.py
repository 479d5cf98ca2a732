"""
Meeting Items Platform
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for lifecycle events.
"""

import json
from datetime import UTC, datetime

from app.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {
    "meeting_item", "document", "template", "field_definition", "decision_board",
}

AUDIT_ACTIONS = {
    # Meeting item lifecycle
    "meeting_item.create",
    "meeting_item.update",
    "meeting_item.submit",
    "meeting_item.status_change",
    # Documents
    "document.upload",
    "document.new_version",
    "document.delete",
    # Templates
    "field_definition.deactivate",
    "field_definition.reactivate",
    # Generic
    "create",
    "update",
    "delete",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every lifecycle event.

    One row per action.  ``diff_json`` carries an old→new snapshot for
    field-level changes or a small payload describing the event.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_actor", "actor"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="meeting_item | document | template | field_definition | …",
    )
    entity_id = db.Column(db.String(36), nullable=False)

    # What happened
    action = db.Column(
        db.String(60), nullable=False,
        comment="meeting_item.create | document.delete | …",
    )
    actor = db.Column(db.String(150), nullable=False, default="system")
    request_id = db.Column(db.String(32), nullable=True)

    # Change payload
    diff_json = db.Column(db.Text, default="{}")

    # Timestamp (immutable)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor: str = "system",
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditLog instance.
    """
    from flask import g, has_request_context

    request_id = getattr(g, "request_id", None) if has_request_context() else None

    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor or "system",
        request_id=request_id,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log


def diff_fields(obj, changes: dict) -> dict:
    """Build a ``{field: {old, new}}`` dict for attributes that actually change."""
    out = {}
    for key, new in changes.items():
        old = getattr(obj, key, None)
        if old != new:
            out[key] = {"old": old, "new": new}
    return out
