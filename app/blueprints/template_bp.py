"""Templates & field definitions blueprint.

Endpoint groups:
  Templates           GET/POST  /api/templates            (?decision_board_id=)
                      GET/PUT   /api/templates/<id>
                      POST      /api/templates/<id>/fields
  Field definitions   PUT       /api/field-definitions/<id>
                      POST      /api/field-definitions/<id>/deactivate
                      POST      /api/field-definitions/<id>/reactivate
"""

import logging

from flask import Blueprint, request

import app.services.template_service as ts
from app.blueprints import json_body, require_actor
from app.utils.errors import api_success, register_error_handlers

logger = logging.getLogger(__name__)

template_bp = Blueprint("templates", __name__, url_prefix="/api")

register_error_handlers(template_bp)


# ── Templates ────────────────────────────────────────────────────────────────


@template_bp.route("/templates", methods=["GET"])
def list_templates():
    return api_success(ts.list_templates(request.args.get("decision_board_id") or None))


@template_bp.route("/templates", methods=["POST"])
def create_template():
    """Body: {decision_board_id, name, description?, set_as_default?, field_definitions?}"""
    actor = require_actor()
    return api_success(ts.create_template(json_body(), actor), status=201)


@template_bp.route("/templates/<template_id>", methods=["GET"])
def get_template(template_id):
    return api_success(ts.get_template(template_id).to_dict())


@template_bp.route("/templates/<template_id>", methods=["PUT"])
def update_template(template_id):
    actor = require_actor()
    return api_success(ts.update_template(template_id, json_body(), actor))


@template_bp.route("/templates/<template_id>/fields", methods=["POST"])
def add_field(template_id):
    actor = require_actor()
    return api_success(ts.add_field(template_id, json_body(), actor), status=201)


# ── Field definitions ────────────────────────────────────────────────────────


@template_bp.route("/field-definitions/<field_id>", methods=["PUT"])
def update_field(field_id):
    actor = require_actor()
    return api_success(ts.update_field(field_id, json_body(), actor))


@template_bp.route("/field-definitions/<field_id>/deactivate", methods=["POST"])
def deactivate_field(field_id):
    """Body: {reason?}. Values already stored stay visible as historical fields."""
    actor = require_actor()
    reason = json_body().get("reason")
    return api_success(ts.deactivate_field(field_id, reason, actor))


@template_bp.route("/field-definitions/<field_id>/reactivate", methods=["POST"])
def reactivate_field(field_id):
    actor = require_actor()
    return api_success(ts.reactivate_field(field_id, actor))
