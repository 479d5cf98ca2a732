"""
Decision board model.

A decision board is the organisational body that reviews meeting items.
Its abbreviation is used when naming stored documents and its default
template drives the dynamic form shown to requestors.
"""

from app.models import db
from app.models.base import _iso, _utcnow, _uuid


class DecisionBoard(db.Model):
    __tablename__ = "decision_boards"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False, unique=True)
    abbreviation = db.Column(db.String(20), nullable=False, default="DB")
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    # No FK constraint: templates.decision_board_id already points back here.
    default_template_id = db.Column(db.String(36), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    templates = db.relationship(
        "Template",
        back_populates="decision_board",
        foreign_keys="Template.decision_board_id",
        lazy="select",
    )
    default_template = db.relationship(
        "Template",
        primaryjoin="foreign(DecisionBoard.default_template_id) == Template.id",
        viewonly=True,
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "abbreviation": self.abbreviation,
            "description": self.description,
            "is_active": self.is_active,
            "default_template_id": self.default_template_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<DecisionBoard {self.abbreviation}: {self.name}>"
