"""
Soft Delete Mixin.

Adds ``is_deleted`` / ``deleted_at`` / ``deleted_by`` columns. Models that
include this mixin are flagged rather than physically removed so their
audit history survives.

Usage:
    class Document(SoftDeleteMixin, db.Model):
        ...

    doc.soft_delete(deleted_by="u-42")
    db.session.commit()
"""

from datetime import datetime, timezone

from app.models import db


class SoftDeleteMixin:
    """Mixin that adds soft delete support to any SQLAlchemy model."""

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, default=None)
    deleted_by = db.Column(db.String(50), nullable=True)

    def soft_delete(self, deleted_by=None):
        """Mark this record as deleted."""
        self.is_deleted = True
        self.deleted_at = datetime.now(timezone.utc)
        self.deleted_by = deleted_by
