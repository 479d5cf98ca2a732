"""meeting_items_initial

Creates the meeting items schema:
  - decision_boards             — reviewing bodies
  - templates                   — dynamic form templates per board
  - field_definitions           — dynamic fields (type, rules, active flag)
  - field_options               — dropdown / radio / multiselect options
  - meeting_items               — requests submitted to a board
  - meeting_item_field_values   — typed value per (item, field)
  - meeting_item_status_history — append-only status trail
  - documents                   — attachments with version chains (soft delete)
  - audit_logs                  — immutable audit trail

Tables are created conditionally (IF NOT EXISTS semantics) so the revision
can run against databases that already received them via db.create_all().

Revision ID: 0001_meeting_items
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '0001_meeting_items'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    if "decision_boards" not in existing:
        op.create_table(
            "decision_boards",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("abbreviation", sa.String(length=20), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column(
                "default_template_id", sa.String(length=36), nullable=True,
                comment="templates.id; no FK because templates reference boards.",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    if "templates" not in existing:
        op.create_table(
            "templates",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("decision_board_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(length=50), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_by", sa.String(length=50), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["decision_board_id"], ["decision_boards.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("decision_board_id", "name", name="uq_template_board_name"),
        )
        op.create_index("ix_templates_decision_board_id", "templates", ["decision_board_id"])

    if "field_definitions" not in existing:
        op.create_table(
            "field_definitions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("template_id", sa.String(length=36), nullable=False),
            sa.Column("field_name", sa.String(length=100), nullable=False),
            sa.Column("label", sa.String(length=200), nullable=False),
            sa.Column(
                "field_type", sa.String(length=20), nullable=False,
                comment="text | textarea | email | number | date | boolean | dropdown | radio | multiselect",
            ),
            sa.Column("category", sa.String(length=100), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False),
            sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("help_text", sa.String(length=500), nullable=True),
            sa.Column("placeholder_text", sa.String(length=200), nullable=True),
            sa.Column("validation_rules", sa.JSON(), nullable=True),
            sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deactivation_reason", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["template_id"], ["templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("template_id", "field_name", name="uq_field_template_name"),
        )
        op.create_index("ix_field_definitions_template_id", "field_definitions", ["template_id"])

    if "field_options" not in existing:
        op.create_table(
            "field_options",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("field_definition_id", sa.String(length=36), nullable=False),
            sa.Column("value", sa.String(length=200), nullable=False),
            sa.Column("label", sa.String(length=200), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.ForeignKeyConstraint(["field_definition_id"], ["field_definitions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_field_options_field_definition_id", "field_options", ["field_definition_id"])

    if "meeting_items" not in existing:
        op.create_table(
            "meeting_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("decision_board_id", sa.String(length=36), nullable=False),
            sa.Column("template_id", sa.String(length=36), nullable=True),
            sa.Column("topic", sa.String(length=200), nullable=False),
            sa.Column("purpose", sa.String(length=2000), nullable=False),
            sa.Column("outcome", sa.String(length=20), nullable=False,
                      comment="Decision | Discussion | Information"),
            sa.Column("duration_minutes", sa.Integer(), nullable=False),
            sa.Column("digital_product", sa.String(length=200), nullable=False),
            sa.Column("requestor", sa.String(length=50), nullable=False),
            sa.Column("owner_presenter", sa.String(length=50), nullable=False),
            sa.Column("sponsor", sa.String(length=50), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="Draft"),
            sa.Column("submission_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("denial_reason", sa.String(length=1000), nullable=True),
            sa.Column("created_by", sa.String(length=50), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_by", sa.String(length=50), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["decision_board_id"], ["decision_boards.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_id"], ["templates.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_meeting_items_decision_board_id", "meeting_items", ["decision_board_id"])
        op.create_index("ix_meeting_items_template_id", "meeting_items", ["template_id"])
        op.create_index("ix_meeting_items_requestor", "meeting_items", ["requestor"])
        op.create_index("ix_meeting_items_status", "meeting_items", ["status"])
        op.create_index("ix_meeting_items_created_at", "meeting_items", ["created_at"])
        op.create_index("ix_meeting_items_board_status", "meeting_items", ["decision_board_id", "status"])

    if "meeting_item_field_values" not in existing:
        op.create_table(
            "meeting_item_field_values",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("meeting_item_id", sa.String(length=36), nullable=False),
            sa.Column("field_definition_id", sa.String(length=36), nullable=False),
            sa.Column("text_value", sa.Text(), nullable=True),
            sa.Column("number_value", sa.Numeric(18, 4), nullable=True),
            sa.Column("date_value", sa.Date(), nullable=True),
            sa.Column("boolean_value", sa.Boolean(), nullable=True),
            sa.Column("json_value", sa.Text(), nullable=True, comment="JSON-encoded list for multiselect"),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["meeting_item_id"], ["meeting_items.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["field_definition_id"], ["field_definitions.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("meeting_item_id", "field_definition_id", name="uq_field_value_item_field"),
        )
        op.create_index("ix_meeting_item_field_values_meeting_item_id",
                        "meeting_item_field_values", ["meeting_item_id"])
        op.create_index("ix_meeting_item_field_values_field_definition_id",
                        "meeting_item_field_values", ["field_definition_id"])

    if "meeting_item_status_history" not in existing:
        op.create_table(
            "meeting_item_status_history",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("meeting_item_id", sa.String(length=36), nullable=False),
            sa.Column("from_status", sa.String(length=20), nullable=False),
            sa.Column("to_status", sa.String(length=20), nullable=False),
            sa.Column("comment", sa.String(length=1000), nullable=True),
            sa.Column("denial_reason", sa.String(length=1000), nullable=True),
            sa.Column("changed_by", sa.String(length=50), nullable=False),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["meeting_item_id"], ["meeting_items.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_meeting_item_status_history_meeting_item_id",
                        "meeting_item_status_history", ["meeting_item_id"])

    if "documents" not in existing:
        op.create_table(
            "documents",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("meeting_item_id", sa.String(length=36), nullable=False),
            sa.Column("original_file_name", sa.String(length=255), nullable=False),
            sa.Column("stored_file_name", sa.String(length=255), nullable=False),
            sa.Column("storage_path", sa.String(length=500), nullable=False),
            sa.Column("file_size", sa.BigInteger(), nullable=False),
            sa.Column("content_type", sa.String(length=100), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("base_document_id", sa.String(length=36), nullable=True),
            sa.Column("is_latest_version", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("uploaded_by", sa.String(length=50), nullable=False),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("deleted_by", sa.String(length=50), nullable=True),
            sa.ForeignKeyConstraint(["meeting_item_id"], ["meeting_items.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["base_document_id"], ["documents.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("stored_file_name"),
        )
        op.create_index("ix_documents_meeting_item_id", "documents", ["meeting_item_id"])
        op.create_index("ix_documents_uploaded_at", "documents", ["uploaded_at"])
        op.create_index("ix_documents_is_deleted", "documents", ["is_deleted"])
        op.create_index("ix_documents_item_chain", "documents", ["meeting_item_id", "base_document_id"])

    if "audit_logs" not in existing:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=36), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor", sa.String(length=150), nullable=False),
            sa.Column("request_id", sa.String(length=32), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    for table in (
        "audit_logs",
        "documents",
        "meeting_item_status_history",
        "meeting_item_field_values",
        "meeting_items",
        "field_options",
        "field_definitions",
        "templates",
        "decision_boards",
    ):
        op.drop_table(table)
