"""Decision board service layer.

Rules:
  - db.session.commit() happens only in service modules.
  - Board names are unique; a default template must belong to the board.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.audit import diff_fields, write_audit
from app.models.decision_board import DecisionBoard
from app.models.template import Template
from app.utils.helpers import db_commit_or_raise, get_or_404

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200
MAX_ABBREVIATION_LENGTH = 20


def _clean_text(data: dict, key: str, max_length: int, *, required: bool, errors: dict) -> str | None:
    raw = data.get(key)
    if raw is not None and not isinstance(raw, str):
        errors[key] = "Must be a string"
        return None
    value = (raw or "").strip()
    if required and not value:
        errors[key] = "This field is required"
    elif len(value) > max_length:
        errors[key] = f"Must not exceed {max_length} characters"
    return value or None


def _check_unique_name(name: str, exclude_id: str | None = None) -> None:
    stmt = select(DecisionBoard.id).where(DecisionBoard.name == name)
    if exclude_id:
        stmt = stmt.where(DecisionBoard.id != exclude_id)
    if db.session.execute(stmt).first():
        raise ConflictError("DecisionBoard", "name", name)


def _check_default_template(board_id: str, template_id: str | None) -> None:
    if not template_id:
        return
    template = db.session.get(Template, template_id)
    if template is None:
        raise NotFoundError(resource="Template", resource_id=template_id)
    if template.decision_board_id != board_id:
        raise ValidationError(
            "Default template must belong to the decision board",
            details={"default_template_id": "Template belongs to another decision board"},
        )


def get_board(board_id: str) -> DecisionBoard:
    return get_or_404(DecisionBoard, board_id, "DecisionBoard")


def list_boards(active_only: bool = False) -> list[dict]:
    stmt = select(DecisionBoard).order_by(DecisionBoard.name)
    if active_only:
        stmt = stmt.where(DecisionBoard.is_active.is_(True))
    return [b.to_dict() for b in db.session.execute(stmt).scalars()]


def create_board(data: dict, actor: str) -> dict:
    """Create a decision board.

    Body keys: name (required), abbreviation, description, is_active.
    """
    errors: dict = {}
    name = _clean_text(data, "name", MAX_NAME_LENGTH, required=True, errors=errors)
    abbreviation = _clean_text(data, "abbreviation", MAX_ABBREVIATION_LENGTH, required=False, errors=errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    _check_unique_name(name)
    board = DecisionBoard(
        name=name,
        abbreviation=abbreviation or "DB",
        description=data.get("description"),
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(board)
    db.session.flush()
    write_audit(entity_type="decision_board", entity_id=board.id, action="create",
                actor=actor, diff={"name": name})
    db_commit_or_raise()
    logger.info("Decision board created id=%s name=%s", board.id, board.name)
    return board.to_dict()


def update_board(board_id: str, data: dict, actor: str) -> dict:
    board = get_board(board_id)
    errors: dict = {}
    changes: dict = {}

    if "name" in data:
        changes["name"] = _clean_text(data, "name", MAX_NAME_LENGTH, required=True, errors=errors)
    if "abbreviation" in data:
        changes["abbreviation"] = _clean_text(
            data, "abbreviation", MAX_ABBREVIATION_LENGTH, required=True, errors=errors,
        )
    if "description" in data:
        changes["description"] = data.get("description")
    if "is_active" in data:
        changes["is_active"] = bool(data["is_active"])
    if "default_template_id" in data:
        changes["default_template_id"] = data.get("default_template_id") or None
    if errors:
        raise ValidationError("Validation failed", details=errors)

    if changes.get("name") and changes["name"] != board.name:
        _check_unique_name(changes["name"], exclude_id=board.id)
    if "default_template_id" in changes:
        _check_default_template(board.id, changes["default_template_id"])

    diff = diff_fields(board, changes)
    for key, value in changes.items():
        setattr(board, key, value)
    if diff:
        write_audit(entity_type="decision_board", entity_id=board.id, action="update",
                    actor=actor, diff=diff)
    db_commit_or_raise()
    logger.info("Decision board updated id=%s fields=%s", board.id, sorted(diff))
    return board.to_dict()
