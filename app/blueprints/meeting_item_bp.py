"""Meeting items blueprint.

REST API for meeting item requests, their status workflow, documents and
the dynamic form template of a decision board.

Registered twice: under /api/meeting-items and, for the SPA's API client,
under /api/MeetingItems.

Endpoint groups:
  Items          GET/POST      /api/meeting-items
                 GET/PUT       /api/meeting-items/<id>
                 GET           /api/meeting-items/decision-board/<board_id>
  Workflow       POST          /api/meeting-items/<id>/submit
                 PATCH         /api/meeting-items/<id>/status
                 GET           /api/meeting-items/<id>/status-history
  Documents      GET/POST      /api/meeting-items/<id>/documents
  Form template  GET           /api/meeting-items/template/<board_id>

The caller is identified by X-User; board roles come from X-User-Roles.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, request

import app.services.document_service as docs
import app.services.meeting_item_service as mis
import app.services.template_service as ts
from app.blueprints import actor_roles, json_body, pagination_args, require_actor
from app.core.exceptions import ValidationError
from app.utils.errors import api_success, register_error_handlers

logger = logging.getLogger(__name__)

meeting_item_bp = Blueprint("meeting_items", __name__, url_prefix="/api/meeting-items")

register_error_handlers(meeting_item_bp)


# ═════════════════════════════════════════════════════════════════════════
# Items
# ═════════════════════════════════════════════════════════════════════════


@meeting_item_bp.route("", methods=["GET"])
def list_meeting_items():
    """List meeting items.

    Query params: decision_board_id?, status?, limit, offset
    """
    limit, offset = pagination_args()
    result = mis.list_meeting_items(
        decision_board_id=request.args.get("decision_board_id") or None,
        status=request.args.get("status") or None,
        limit=limit,
        offset=offset,
    )
    return api_success(result)


@meeting_item_bp.route("/decision-board/<board_id>", methods=["GET"])
def list_by_decision_board(board_id):
    return api_success(mis.list_by_decision_board(board_id))


@meeting_item_bp.route("/<item_id>", methods=["GET"])
def get_meeting_item(item_id):
    return api_success(mis.get_meeting_item(item_id))


@meeting_item_bp.route("", methods=["POST"])
def create_meeting_item():
    """Create a Draft meeting item; the caller becomes the requestor.

    Body: {decision_board_id, template_id?, topic, purpose, outcome,
           digital_product, duration_minutes, owner_presenter, sponsor?,
           field_values?, documents?}
    Returns: item detail (201).
    """
    actor = require_actor()
    item = mis.create_meeting_item(json_body(), actor)
    return api_success(item, status=201)


@meeting_item_bp.route("/<item_id>", methods=["PUT"])
def update_meeting_item(item_id):
    """Update an item; a body ``id`` must match the URL id when given.

    Body: static fields (partial), field_values?, new_documents?,
          document_versions?, documents_to_delete?
    """
    actor = require_actor()
    data = json_body()
    if data.get("id") and data["id"] != item_id:
        raise ValidationError("Id mismatch", details={"id": "Body id must match the URL id"})
    return api_success(mis.update_meeting_item(item_id, data, actor))


# ═════════════════════════════════════════════════════════════════════════
# Workflow
# ═════════════════════════════════════════════════════════════════════════


@meeting_item_bp.route("/<item_id>/submit", methods=["POST"])
def submit_meeting_item(item_id):
    actor = require_actor()
    data = json_body()
    return api_success(mis.submit_meeting_item(item_id, actor, comment=data.get("comment")))


@meeting_item_bp.route("/<item_id>/status", methods=["PATCH"])
def update_status(item_id):
    """Board status transition.

    Body: {status, comment?, denial_reason?}
    Headers: X-User, X-User-Roles (Secretary or Chair)
    """
    actor = require_actor()
    data = json_body()
    result = mis.update_status(
        item_id,
        data.get("status"),
        actor,
        roles=actor_roles(),
        comment=data.get("comment"),
        denial_reason=data.get("denial_reason"),
    )
    return api_success(result)


@meeting_item_bp.route("/<item_id>/status-history", methods=["GET"])
def status_history(item_id):
    return api_success(mis.get_status_history(item_id))


# ═════════════════════════════════════════════════════════════════════════
# Documents
# ═════════════════════════════════════════════════════════════════════════


@meeting_item_bp.route("/<item_id>/documents", methods=["GET"])
def list_documents(item_id):
    return api_success(docs.list_item_documents(item_id))


@meeting_item_bp.route("/<item_id>/documents", methods=["POST"])
def upload_document(item_id):
    """Upload a document to an item.

    Body: {document: {file_name, content, content_type?}, base_document_id?}
          or the document fields at top level.
    Returns: document metadata (201).
    """
    actor = require_actor()
    data = json_body()
    payload = data.get("document", data)
    doc = docs.upload_document(
        item_id, payload, actor, roles=actor_roles(),
        base_document_id=data.get("base_document_id") or None,
    )
    return api_success(doc, status=201)


# ═════════════════════════════════════════════════════════════════════════
# Form template
# ═════════════════════════════════════════════════════════════════════════


@meeting_item_bp.route("/template/<board_id>", methods=["GET"])
def template_for_board(board_id):
    """Active fields (by category, display order) of the board's template."""
    return api_success(ts.get_template_by_decision_board(board_id))
