"""Meeting item service layer.

All business logic for creating, updating and moving meeting items through
the board workflow lives here.

Status workflow:
    Draft ──submit──▶ Submitted ──▶ Proposed ──▶ Planned ──▶ Discussed
                         │             │            │
                         └─────────────┴────────────┴──▶ Denied

Rules:
  - actor and roles are explicit parameters (never read from g).
  - Only the requestor or owner/presenter may edit or submit an item.
  - Only board roles (STATUS_ROLES) may change status after submission.
  - db.session.commit() happens once per operation; operations that write
    blobs commit through BlobBatch so a failed commit removes them.
"""

from __future__ import annotations

import logging

from flask import current_app
from sqlalchemy import func, select

from app.auth import has_status_role
from app.core.exceptions import ForbiddenError, StateTransitionError, ValidationError
from app.models import db
from app.models.audit import diff_fields, write_audit
from app.models.decision_board import DecisionBoard
from app.models.meeting_item import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    OUTCOMES,
    STATUS_DENIED,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUSES,
    MeetingItem,
    MeetingItemFieldValue,
    validate_status_transition,
)
from app.models.template import Template
from app.services import document_service
from app.services.field_validation import missing_required_fields, validate_field_values
from app.utils.helpers import db_commit_or_raise, get_or_404

logger = logging.getLogger(__name__)

MAX_TOPIC = 200
MIN_PURPOSE = 10
MAX_PURPOSE = 2000
MAX_DIGITAL_PRODUCT = 200
MAX_USER_REF = 50
MAX_COMMENT = 1000


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════


def _string(data, key, errors, *, required, min_length=0, max_length):
    raw = data.get(key)
    if raw is not None and not isinstance(raw, str):
        errors[key] = "Must be a string"
        return None
    value = (raw or "").strip()
    if not value:
        if required:
            errors[key] = "This field is required"
        return None
    if len(value) < min_length:
        errors[key] = f"Must be at least {min_length} characters"
    elif len(value) > max_length:
        errors[key] = f"Must not exceed {max_length} characters"
    return value


def _duration(data, errors):
    raw = data.get("duration_minutes")
    if raw is None or raw == "":
        errors["duration_minutes"] = "This field is required"
        return None
    if isinstance(raw, bool):
        errors["duration_minutes"] = "Must be an integer"
        return None
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        raw = int(raw.strip())
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    if not isinstance(raw, int):
        errors["duration_minutes"] = "Must be an integer"
        return None
    if not MIN_DURATION_MINUTES <= raw <= MAX_DURATION_MINUTES:
        errors["duration_minutes"] = (
            f"Must be between {MIN_DURATION_MINUTES} and {MAX_DURATION_MINUTES} minutes"
        )
    return raw


def validate_static_fields(data: dict, *, partial: bool = False) -> dict:
    """Validate the fixed meeting item fields.

    With ``partial=True`` only keys present in *data* are checked and
    returned (update).  Raises ValidationError with per-field details.
    """
    errors: dict = {}
    out: dict = {}

    def wanted(key):
        return not partial or key in data

    if wanted("topic"):
        out["topic"] = _string(data, "topic", errors, required=True, max_length=MAX_TOPIC)
    if wanted("purpose"):
        out["purpose"] = _string(
            data, "purpose", errors, required=True, min_length=MIN_PURPOSE, max_length=MAX_PURPOSE,
        )
    if wanted("outcome"):
        outcome = data.get("outcome")
        if not outcome:
            errors["outcome"] = "This field is required"
        elif outcome not in OUTCOMES:
            errors["outcome"] = f"Must be one of: {', '.join(OUTCOMES)}"
        out["outcome"] = outcome
    if wanted("digital_product"):
        out["digital_product"] = _string(
            data, "digital_product", errors, required=True, max_length=MAX_DIGITAL_PRODUCT,
        )
    if wanted("duration_minutes"):
        out["duration_minutes"] = _duration(data, errors)
    if wanted("owner_presenter"):
        out["owner_presenter"] = _string(
            data, "owner_presenter", errors, required=True, max_length=MAX_USER_REF,
        )
    if wanted("sponsor"):
        out["sponsor"] = _string(data, "sponsor", errors, required=False, max_length=MAX_USER_REF)

    if errors:
        raise ValidationError("Validation failed", details=errors)
    return out


def _optional_text(value, key, max_length):
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("Validation failed", details={key: "Must be a string"})
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(
            "Validation failed", details={key: f"Must not exceed {max_length} characters"},
        )
    return value or None


def _resolve_board_and_template(board_id, template_id):
    """Cross-entity checks for creation; returns (board, template|None)."""
    if not board_id:
        raise ValidationError(
            "Validation failed", details={"decision_board_id": "This field is required"},
        )
    board = db.session.get(DecisionBoard, board_id)
    if board is None:
        raise ValidationError(
            "Validation failed", details={"decision_board_id": "Decision board not found"},
        )
    if not board.is_active:
        raise ValidationError(
            "Validation failed", details={"decision_board_id": "Decision board is not active"},
        )

    if not template_id:
        template = board.default_template
        return board, template if template is not None and template.is_active else None

    template = db.session.get(Template, template_id)
    if template is None:
        raise ValidationError("Validation failed", details={"template_id": "Template not found"})
    if not template.is_active:
        raise ValidationError("Validation failed", details={"template_id": "Template is not active"})
    if template.decision_board_id != board.id:
        raise ValidationError(
            "Validation failed",
            details={"template_id": "Template does not belong to the decision board"},
        )
    return board, template


def _document_list(data, key):
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("Validation failed", details={key: "Must be a list"})
    return value


def _check_inline_document_count(**lists):
    """Inline uploads per request are capped so the body limit always fits them."""
    limit = current_app.config["MAX_DOCUMENTS_PER_REQUEST"]
    if sum(len(v) for v in lists.values()) > limit:
        raise ValidationError(
            "Too many documents",
            details={key: f"At most {limit} documents per request" for key, v in lists.items() if v},
        )


def _apply_field_values(item: MeetingItem, parsed_values) -> None:
    for parsed in parsed_values:
        fv = item.field_value_for(parsed.field.id)
        if fv is None:
            fv = MeetingItemFieldValue(field_definition=parsed.field)
            item.field_values.append(fv)
        fv.set_value(**parsed.columns)


def _ensure_participant(item: MeetingItem, actor: str, action: str) -> None:
    if not item.is_participant(actor):
        raise ForbiddenError(f"Only the requestor or owner/presenter can {action} this meeting item")


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


def get_meeting_item(item_id: str) -> dict:
    """Detail view: static fields, active and historical field values,
    non-deleted documents and the status history."""
    return get_or_404(MeetingItem, item_id, "MeetingItem").to_detail_dict()


def list_meeting_items(
    decision_board_id: str | None = None,
    status: str | None = None,
    limit: int = 200,
    offset: int = 0,
) -> dict:
    if status and status not in STATUSES:
        raise ValidationError(
            "Invalid status filter", details={"status": f"Must be one of: {', '.join(STATUSES)}"},
        )
    stmt = select(MeetingItem)
    if decision_board_id:
        stmt = stmt.where(MeetingItem.decision_board_id == decision_board_id)
    if status:
        stmt = stmt.where(MeetingItem.status == status)

    total = db.session.execute(
        select(func.count()).select_from(stmt.subquery())
    ).scalar_one()
    items = db.session.execute(
        stmt.order_by(MeetingItem.created_at.desc()).limit(limit).offset(offset)
    ).scalars().all()
    return {
        "items": [i.to_dict() for i in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def list_by_decision_board(board_id: str) -> list[dict]:
    board = get_or_404(DecisionBoard, board_id, "DecisionBoard")
    items = db.session.execute(
        select(MeetingItem)
        .where(MeetingItem.decision_board_id == board.id)
        .order_by(MeetingItem.created_at.desc())
    ).scalars()
    return [i.to_dict() for i in items]


def get_status_history(item_id: str) -> list[dict]:
    item = get_or_404(MeetingItem, item_id, "MeetingItem")
    return [h.to_dict() for h in item.status_history]


# ═════════════════════════════════════════════════════════════════════════════
# Commands
# ═════════════════════════════════════════════════════════════════════════════


def create_meeting_item(data: dict, actor: str) -> dict:
    """Create a Draft meeting item requested by *actor*.

    Body: static fields, decision_board_id, template_id?, field_values?,
          documents?: [{file_name, content (base64), content_type?}]

    When template_id is omitted the board's active default template is used.
    Every required active template field must be supplied.

    Returns:
        Detail dict of the new item.
    """
    static = validate_static_fields(data)
    board, template = _resolve_board_and_template(
        data.get("decision_board_id"), data.get("template_id"),
    )
    parsed_values = validate_field_values(template, data.get("field_values"), require_all=True)
    documents = _document_list(data, "documents")
    _check_inline_document_count(documents=documents)

    item = MeetingItem(
        decision_board_id=board.id,
        template_id=template.id if template else None,
        requestor=actor,
        status=STATUS_DRAFT,
        created_by=actor,
        **static,
    )
    db.session.add(item)
    db.session.flush()
    _apply_field_values(item, parsed_values)

    batch = document_service.BlobBatch()
    try:
        for idx, payload in enumerate(documents):
            document_service.add_document(item, payload, actor, batch, field=f"documents[{idx}]")
        write_audit(
            entity_type="meeting_item", entity_id=item.id, action="meeting_item.create",
            actor=actor, diff={"topic": item.topic, "decision_board_id": board.id,
                               "documents": len(documents)},
        )
    except Exception:
        db.session.rollback()
        batch.discard()
        raise
    batch.commit()

    logger.info(
        "Meeting item created id=%s board=%s requestor=%s documents=%d",
        item.id, board.id, actor, len(documents),
    )
    return item.to_detail_dict()


def update_meeting_item(item_id: str, data: dict, actor: str) -> dict:
    """Update static fields, field values and documents of an item.

    Only the requestor or owner/presenter may update, and not once the item
    is Discussed or Denied.  Static fields are optional (partial update).

    Body extras:
        new_documents:      [{file_name, content, content_type?}]
        document_versions:  [{base_document_id, document: {...}}]
        documents_to_delete: [document_id, ...]

    Returns:
        {"meeting_item": detail, "uploaded_document_ids": [...],
         "versioned_document_ids": [...], "deleted_document_ids": [...]}
    """
    item = get_or_404(MeetingItem, item_id, "MeetingItem")
    _ensure_participant(item, actor, "update")
    if item.is_terminal:
        raise StateTransitionError("MeetingItem", item.status, reason="item is closed")

    static = validate_static_fields(data, partial=True)
    parsed_values = []
    if data.get("field_values"):
        parsed_values = validate_field_values(item.template, data["field_values"], require_all=False)

    new_documents = _document_list(data, "new_documents")
    versions = _document_list(data, "document_versions")
    to_delete = _document_list(data, "documents_to_delete")
    for idx, entry in enumerate(versions):
        if not isinstance(entry, dict) or not entry.get("base_document_id"):
            raise ValidationError(
                "Validation failed",
                details={f"document_versions[{idx}].base_document_id": "This field is required"},
            )
    _check_inline_document_count(new_documents=new_documents, document_versions=versions)

    diff = diff_fields(item, static)
    item.update_details(updated_by=actor, **static)
    _apply_field_values(item, parsed_values)

    uploaded, versioned, deleted = [], [], []
    batch = document_service.BlobBatch()
    try:
        for doc_id in to_delete:
            document_service.remove_document(item, doc_id, actor, batch)
            deleted.append(doc_id)
        for idx, entry in enumerate(versions):
            doc = document_service.add_document(
                item, entry.get("document"), actor, batch,
                base_document_id=entry["base_document_id"], field=f"document_versions[{idx}].document",
            )
            versioned.append(doc.id)
        for idx, payload in enumerate(new_documents):
            doc = document_service.add_document(item, payload, actor, batch, field=f"new_documents[{idx}]")
            uploaded.append(doc.id)

        if parsed_values:
            diff["field_values"] = [p.field.field_name for p in parsed_values]
        write_audit(entity_type="meeting_item", entity_id=item.id, action="meeting_item.update",
                    actor=actor, diff=diff)
    except Exception:
        db.session.rollback()
        batch.discard()
        raise
    batch.commit()

    logger.info(
        "Meeting item updated id=%s by=%s uploaded=%d versioned=%d deleted=%d",
        item.id, actor, len(uploaded), len(versioned), len(deleted),
    )
    return {
        "meeting_item": item.to_detail_dict(),
        "uploaded_document_ids": uploaded,
        "versioned_document_ids": versioned,
        "deleted_document_ids": deleted,
    }


def submit_meeting_item(item_id: str, actor: str, comment: str | None = None) -> dict:
    """Draft → Submitted, by the requestor or owner/presenter.

    Every required active template field must have a stored value.
    """
    item = get_or_404(MeetingItem, item_id, "MeetingItem")
    _ensure_participant(item, actor, "submit")
    comment = _optional_text(comment, "comment", MAX_COMMENT)
    if item.status != STATUS_DRAFT:
        raise StateTransitionError("MeetingItem", item.status, STATUS_SUBMITTED)

    missing = missing_required_fields(item)
    if missing:
        raise ValidationError(
            "Required fields are missing",
            details={name: "This field is required" for name in missing},
        )

    entry = item.change_status(STATUS_SUBMITTED, actor, comment=comment)
    write_audit(entity_type="meeting_item", entity_id=item.id, action="meeting_item.submit",
                actor=actor, diff={"status": {"old": STATUS_DRAFT, "new": STATUS_SUBMITTED}})
    db_commit_or_raise()
    logger.info("Meeting item submitted id=%s by=%s", item.id, actor)
    return _status_change_result(item, entry)


def update_status(
    item_id: str,
    new_status: str,
    actor: str,
    roles=(),
    comment: str | None = None,
    denial_reason: str | None = None,
) -> dict:
    """Move a submitted item along the board workflow.

    Raises:
        ForbiddenError:        caller lacks a board role (Secretary / Chair).
        ValidationError:       unknown status, over-long comment or reason,
                               missing denial reason.
        StateTransitionError:  edge not allowed from the current status.
    """
    item = get_or_404(MeetingItem, item_id, "MeetingItem")
    if not has_status_role(roles):
        raise ForbiddenError("Only board roles can change the status of a meeting item")

    if not new_status or new_status not in STATUSES:
        raise ValidationError(
            "Invalid status", details={"status": f"Must be one of: {', '.join(STATUSES)}"},
        )
    comment = _optional_text(comment, "comment", MAX_COMMENT)
    denial_reason = _optional_text(denial_reason, "denial_reason", MAX_COMMENT)

    previous = item.status
    if not validate_status_transition(previous, new_status):
        raise StateTransitionError("MeetingItem", previous, new_status)
    if new_status == STATUS_DENIED and not denial_reason:
        raise ValidationError(
            "Denial reason is required", details={"denial_reason": "This field is required"},
        )

    entry = item.change_status(new_status, actor, comment=comment, denial_reason=denial_reason)
    write_audit(
        entity_type="meeting_item", entity_id=item.id, action="meeting_item.status_change",
        actor=actor, diff={"status": {"old": previous, "new": new_status}, "comment": comment},
    )
    db_commit_or_raise()
    logger.info("Meeting item %s status %s → %s by %s", item.id, previous, new_status, actor)
    return _status_change_result(item, entry)


def _status_change_result(item, entry) -> dict:
    return {
        "meeting_item_id": item.id,
        "previous_status": entry.from_status,
        "new_status": entry.to_status,
        "changed_at": entry.changed_at.isoformat() if entry.changed_at else None,
        "changed_by": entry.changed_by,
    }
