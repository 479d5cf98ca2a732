"""Decision boards blueprint.

Endpoints:
    GET  /api/decision-boards          list (?active_only=true)
    POST /api/decision-boards          create
    GET  /api/decision-boards/<id>     detail
    PUT  /api/decision-boards/<id>     update
"""

import logging

from flask import Blueprint, request

import app.services.decision_board_service as dbs
from app.blueprints import json_body, require_actor
from app.utils.errors import api_success, register_error_handlers

logger = logging.getLogger(__name__)

decision_board_bp = Blueprint("decision_boards", __name__, url_prefix="/api/decision-boards")

register_error_handlers(decision_board_bp)


@decision_board_bp.route("", methods=["GET"])
def list_boards():
    active_only = request.args.get("active_only", "").lower() in ("1", "true", "yes")
    return api_success(dbs.list_boards(active_only=active_only))


@decision_board_bp.route("", methods=["POST"])
def create_board():
    actor = require_actor()
    return api_success(dbs.create_board(json_body(), actor), status=201)


@decision_board_bp.route("/<board_id>", methods=["GET"])
def get_board(board_id):
    return api_success(dbs.get_board(board_id).to_dict())


@decision_board_bp.route("/<board_id>", methods=["PUT"])
def update_board(board_id):
    actor = require_actor()
    return api_success(dbs.update_board(board_id, json_body(), actor))
