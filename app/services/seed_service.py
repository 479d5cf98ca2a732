"""Demo data for local development (``flask seed-demo-data``)."""

import logging

from sqlalchemy import select

from app.models import db
from app.models.decision_board import DecisionBoard
from app.services import decision_board_service, template_service

logger = logging.getLogger(__name__)

DEMO_BOARD = {
    "name": "Digital Product Board",
    "abbreviation": "DPB",
    "description": "Reviews investment and roadmap decisions for digital products.",
}

DEMO_TEMPLATE = {
    "name": "Standard request",
    "description": "Default meeting item form",
    "field_definitions": [
        {
            "field_name": "business_case",
            "label": "Business case",
            "field_type": "textarea",
            "category": "Business",
            "display_order": 1,
            "is_required": True,
            "validation_rules": {"min_length": 20, "max_length": 4000},
        },
        {
            "field_name": "estimated_budget",
            "label": "Estimated budget (kEUR)",
            "field_type": "number",
            "category": "Business",
            "display_order": 2,
            "validation_rules": {"min": 0, "max": 100000},
        },
        {
            "field_name": "go_live_date",
            "label": "Target go-live",
            "field_type": "date",
            "category": "Planning",
            "display_order": 1,
        },
        {
            "field_name": "priority",
            "label": "Priority",
            "field_type": "dropdown",
            "category": "Planning",
            "display_order": 2,
            "is_required": True,
            "options": [
                {"value": "high", "label": "High"},
                {"value": "medium", "label": "Medium", "is_default": True},
                {"value": "low", "label": "Low"},
            ],
        },
        {
            "field_name": "impacted_regions",
            "label": "Impacted regions",
            "field_type": "multiselect",
            "category": "Scope",
            "display_order": 1,
            "options": ["EMEA", "APAC", "AMER"],
        },
        {
            "field_name": "contact_email",
            "label": "Contact e-mail",
            "field_type": "email",
            "category": "Scope",
            "display_order": 2,
        },
    ],
}


def seed_demo_data(actor="system"):
    """Create the demo board and its default template; idempotent.

    Returns the board dict, or None when the board already existed.
    """
    exists = db.session.execute(
        select(DecisionBoard.id).where(DecisionBoard.name == DEMO_BOARD["name"])
    ).first()
    if exists:
        logger.info("Demo decision board already present — nothing to seed")
        return None

    board = decision_board_service.create_board(DEMO_BOARD, actor)
    template_service.create_template(
        {**DEMO_TEMPLATE, "decision_board_id": board["id"], "set_as_default": True}, actor,
    )
    logger.info("Seeded demo decision board %s", board["id"])
    return decision_board_service.get_board(board["id"]).to_dict()
