"""Documents blueprint.

Endpoints:
    GET    /api/documents/<id>           metadata
    GET    /api/documents/<id>/versions  non-deleted version chain
    POST   /api/documents/<id>/versions  upload a new version
    GET    /api/documents/<id>/download  file content
    DELETE /api/documents/<id>           soft delete
"""

import io
import logging

from flask import Blueprint, send_file

import app.services.document_service as docs
from app.blueprints import actor_roles, json_body, require_actor
from app.utils.errors import api_success, register_error_handlers

logger = logging.getLogger(__name__)

document_bp = Blueprint("documents", __name__, url_prefix="/api/documents")

register_error_handlers(document_bp)


@document_bp.route("/<document_id>", methods=["GET"])
def get_document(document_id):
    return api_success(docs.get_document(document_id).to_dict())


@document_bp.route("/<document_id>/versions", methods=["GET"])
def get_versions(document_id):
    return api_success(docs.get_document_versions(document_id))


@document_bp.route("/<document_id>/versions", methods=["POST"])
def upload_version(document_id):
    """Body: {document: {file_name, content, content_type?}} or the fields at top level."""
    actor = require_actor()
    data = json_body()
    doc = docs.upload_new_version(document_id, data.get("document", data), actor, roles=actor_roles())
    return api_success(doc, status=201)


@document_bp.route("/<document_id>/download", methods=["GET"])
def download(document_id):
    content, doc = docs.download_document(document_id)
    return send_file(
        io.BytesIO(content),
        mimetype=doc.content_type,
        as_attachment=True,
        download_name=doc.original_file_name,
    )


@document_bp.route("/<document_id>", methods=["DELETE"])
def delete_document(document_id):
    actor = require_actor()
    return api_success(docs.delete_document(document_id, actor, roles=actor_roles()))
