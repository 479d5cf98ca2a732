"""
Document model — meeting item attachments with version chains.

Versioning rules:
    - The first upload of a file starts a chain; ``base_document_id`` is NULL
      and the chain id is the document's own id.
    - Every later version points ``base_document_id`` at that first document.
    - Among non-deleted documents of a chain exactly one carries
      ``is_latest_version = True``.
    - Version numbers grow monotonically per chain and are never reused,
      even after a version is soft-deleted.
"""

from app.models import db
from app.models.base import _iso, _utcnow, _uuid
from app.models.soft_delete import SoftDeleteMixin

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class Document(SoftDeleteMixin, db.Model):
    __tablename__ = "documents"
    __table_args__ = (
        db.Index("ix_documents_item_chain", "meeting_item_id", "base_document_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    meeting_item_id = db.Column(
        db.String(36),
        db.ForeignKey("meeting_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    original_file_name = db.Column(db.String(255), nullable=False)
    stored_file_name = db.Column(db.String(255), nullable=False, unique=True)
    storage_path = db.Column(db.String(500), nullable=False)
    file_size = db.Column(db.BigInteger, nullable=False)
    content_type = db.Column(db.String(100), nullable=False, default=DEFAULT_CONTENT_TYPE)

    version = db.Column(db.Integer, nullable=False, default=1)
    base_document_id = db.Column(
        db.String(36),
        db.ForeignKey("documents.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_latest_version = db.Column(db.Boolean, nullable=False, default=True)

    uploaded_by = db.Column(db.String(50), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    meeting_item = db.relationship("MeetingItem", back_populates="documents")

    @property
    def chain_id(self):
        """Id shared by every version of this document."""
        return self.base_document_id or self.id

    def mark_as_old_version(self):
        self.is_latest_version = False

    def mark_as_latest_version(self):
        self.is_latest_version = True

    def to_dict(self):
        return {
            "id": self.id,
            "meeting_item_id": self.meeting_item_id,
            "original_file_name": self.original_file_name,
            "stored_file_name": self.stored_file_name,
            "storage_path": self.storage_path,
            "file_size": self.file_size,
            "content_type": self.content_type,
            "version": self.version,
            "version_label": f"v{self.version:02d}",
            "base_document_id": self.chain_id,
            "is_latest_version": self.is_latest_version,
            "uploaded_by": self.uploaded_by,
            "uploaded_at": _iso(self.uploaded_at),
            "is_deleted": self.is_deleted,
            "deleted_at": _iso(self.deleted_at),
            "deleted_by": self.deleted_by,
        }

    def __repr__(self):
        return f"<Document {self.original_file_name} v{self.version}>"


# ── Chain helpers ────────────────────────────────────────────────────────────


def chain_members(documents, chain_id, include_deleted=False):
    """Return documents belonging to *chain_id*, oldest version first."""
    members = [
        d for d in documents
        if d.chain_id == chain_id and (include_deleted or not d.is_deleted)
    ]
    return sorted(members, key=lambda d: d.version)


def next_version_number(documents, chain_id):
    """Next version for the chain, counting soft-deleted versions too."""
    versions = [d.version for d in chain_members(documents, chain_id, include_deleted=True)]
    return (max(versions) + 1) if versions else 1


def find_active_document(documents, document_id):
    for d in documents:
        if d.id == document_id and not d.is_deleted:
            return d
    return None
