"""Document service layer — meeting item attachments with version chains.

Content arrives base64-encoded (an optional ``data:<mime>;base64,`` prefix
is stripped).  Stored names follow
``{sanitized-stem}_{yyyymmddHHMMSS}_{uuid8}{ext}`` under
``meeting-items/{item_id}/``.

Blob writes happen before the database commit; the ``BlobBatch`` collected
during a request removes them again when the commit fails.  Blobs of
soft-deleted documents are removed only after the commit succeeds.

Rules:
  - db.session.commit() happens only in service modules.
  - actor and roles are explicit parameters (never read from g).
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import re
import uuid
from datetime import datetime, timezone
from pathlib import PurePosixPath

from flask import current_app

from app.auth import has_status_role
from app.core.exceptions import ForbiddenError, NotFoundError, StateTransitionError, ValidationError
from app.models import db
from app.models.audit import write_audit
from app.models.base import _uuid
from app.models.document import (
    DEFAULT_CONTENT_TYPE,
    Document,
    chain_members,
    find_active_document,
    next_version_number,
)
from app.models.meeting_item import MeetingItem
from app.services.blob_storage import BlobNotFoundError, get_blob_storage
from app.utils.helpers import db_commit_or_raise, get_or_404

logger = logging.getLogger(__name__)

MAX_FILE_NAME_LENGTH = 255
MAX_CONTENT_TYPE_LENGTH = 100
MAX_STEM_LENGTH = 50
STORAGE_PREFIX = "meeting-items"

_INVALID_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


# ── Naming & decoding ────────────────────────────────────────────────────────


def sanitize_file_name(stem: str) -> str:
    """Replace characters that are invalid in file names, spaces → ``_``."""
    cleaned = "_".join(part for part in _INVALID_NAME_CHARS.split(stem) if part)
    cleaned = cleaned.replace(" ", "_")[:MAX_STEM_LENGTH]
    return cleaned or "document"


def generate_stored_file_name(original_file_name: str, now: datetime | None = None) -> str:
    path = PurePosixPath(original_file_name.replace("\\", "/"))
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]
    return f"{sanitize_file_name(path.stem)}_{stamp}_{unique}{path.suffix}"


def generate_storage_path(meeting_item_id: str, stored_file_name: str) -> str:
    return f"{STORAGE_PREFIX}/{meeting_item_id}/{stored_file_name}"


def decode_base64_content(content: str) -> bytes:
    """Decode base64 content, stripping a data-URL prefix when present.

    Raises:
        ValueError: content is not valid base64.
    """
    if "," in content and content.lstrip().startswith("data:"):
        content = content.split(",", 1)[1]
    compact = "".join(content.split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Content is not valid base64") from exc


def parse_document_payload(payload, field: str = "document") -> tuple[str, bytes, str]:
    """Validate an upload payload ``{file_name, content, content_type?}``.

    Returns ``(file_name, raw_bytes, content_type)``.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid document", details={field: "Must be an object"})

    errors = {}
    file_name = payload.get("file_name")
    if not isinstance(file_name, str) or not file_name.strip():
        errors[f"{field}.file_name"] = "This field is required"
    elif len(file_name) > MAX_FILE_NAME_LENGTH:
        errors[f"{field}.file_name"] = f"Must not exceed {MAX_FILE_NAME_LENGTH} characters"

    content_type = payload.get("content_type")
    if content_type is not None and (
        not isinstance(content_type, str) or len(content_type) > MAX_CONTENT_TYPE_LENGTH
    ):
        errors[f"{field}.content_type"] = f"Must be a string of at most {MAX_CONTENT_TYPE_LENGTH} characters"

    raw = b""
    content = payload.get("content")
    if not isinstance(content, str) or not content.strip():
        errors[f"{field}.content"] = "This field is required"
    else:
        try:
            raw = decode_base64_content(content)
        except ValueError as exc:
            errors[f"{field}.content"] = str(exc)
        else:
            max_bytes = current_app.config["MAX_DOCUMENT_BYTES"]
            if not raw:
                errors[f"{field}.content"] = "File is empty"
            elif len(raw) > max_bytes:
                errors[f"{field}.content"] = f"File exceeds the maximum size of {max_bytes} bytes"

    if errors:
        raise ValidationError("Document validation failed", details=errors)

    file_name = file_name.strip()
    if not content_type:
        content_type = mimetypes.guess_type(file_name)[0] or DEFAULT_CONTENT_TYPE
    return file_name, raw, content_type


# ── Blob bookkeeping ─────────────────────────────────────────────────────────


class BlobBatch:
    """Blob writes and pending deletions of one unit of work."""

    def __init__(self):
        self.storage = get_blob_storage()
        self.written: list[str] = []
        self.to_delete: list[str] = []

    def upload(self, path, content, content_type):
        self.storage.upload(path, content, content_type)
        self.written.append(path)

    def discard(self):
        """Remove blobs written by this batch (commit failed)."""
        for path in self.written:
            try:
                self.storage.delete(path)
            except OSError:
                logger.exception("Could not remove orphaned blob %s", path)
        self.written.clear()

    def commit(self):
        """Commit the session, then remove blobs of deleted documents."""
        db_commit_or_raise(on_failure=self.discard)
        for path in self.to_delete:
            try:
                self.storage.delete(path)
            except OSError:
                logger.exception("Could not remove blob %s of deleted document", path)
        self.to_delete.clear()


# ── Access checks ────────────────────────────────────────────────────────────


def ensure_can_modify_documents(item: MeetingItem, actor: str, roles) -> None:
    if not (item.is_participant(actor) or has_status_role(roles)):
        raise ForbiddenError("Only the requestor, owner/presenter or board roles can manage documents")
    if item.is_terminal:
        raise StateTransitionError("MeetingItem", item.status, reason="documents are read-only")


# ── In-session operations (no commit) ────────────────────────────────────────


def _resolve_chain(item: MeetingItem, file_name: str, base_document_id: str | None):
    if base_document_id:
        base = find_active_document(item.documents, base_document_id)
        if base is None:
            raise NotFoundError(resource="Document", resource_id=base_document_id)
        return base.chain_id
    for doc in item.active_documents:
        if doc.is_latest_version and doc.original_file_name == file_name:
            return doc.chain_id
    return None


def add_document(item: MeetingItem, payload, actor: str, batch: BlobBatch,
                 base_document_id: str | None = None, field: str = "document") -> Document:
    """Store a file and attach it to *item*, as a new chain or next version.

    The upload joins an existing chain when *base_document_id* is given or
    when a latest non-deleted document with the same original file name
    exists on the item.
    """
    file_name, raw, content_type = parse_document_payload(payload, field)
    chain_id = _resolve_chain(item, file_name, base_document_id)

    if chain_id:
        version = next_version_number(item.documents, chain_id)
        for member in chain_members(item.documents, chain_id):
            member.mark_as_old_version()
    else:
        version = 1

    stored_name = generate_stored_file_name(file_name)
    path = generate_storage_path(item.id, stored_name)
    batch.upload(path, raw, content_type)

    doc = Document(
        id=_uuid(),
        meeting_item_id=item.id,
        original_file_name=file_name,
        stored_file_name=stored_name,
        storage_path=path,
        file_size=len(raw),
        content_type=content_type,
        version=version,
        base_document_id=chain_id,
        is_latest_version=True,
        uploaded_by=actor,
        is_deleted=False,
    )
    item.documents.append(doc)
    db.session.flush()

    write_audit(
        entity_type="document",
        entity_id=doc.id,
        action="document.new_version" if chain_id else "document.upload",
        actor=actor,
        diff={"meeting_item_id": item.id, "file_name": file_name, "version": version,
              "size": len(raw)},
    )
    logger.info(
        "Document %s v%d stored for item %s (%d bytes)", file_name, version, item.id, len(raw),
    )
    return doc


def remove_document(item: MeetingItem, document_id: str, actor: str, batch: BlobBatch) -> Document:
    """Soft delete a document of *item* and promote the chain's next latest."""
    doc = find_active_document(item.documents, document_id)
    if doc is None:
        raise NotFoundError(resource="Document", resource_id=document_id)

    was_latest = doc.is_latest_version
    doc.soft_delete(deleted_by=actor)
    doc.mark_as_old_version()
    if was_latest:
        remaining = chain_members(item.documents, doc.chain_id)
        if remaining:
            remaining[-1].mark_as_latest_version()
    batch.to_delete.append(doc.storage_path)

    write_audit(entity_type="document", entity_id=doc.id, action="document.delete",
                actor=actor, diff={"meeting_item_id": item.id, "version": doc.version})
    return doc


# ── Public operations ────────────────────────────────────────────────────────


def get_document(document_id: str) -> Document:
    doc = get_or_404(Document, document_id, "Document")
    if doc.is_deleted:
        raise NotFoundError(resource="Document", resource_id=document_id)
    return doc


def list_item_documents(item_id: str) -> list[dict]:
    item = get_or_404(MeetingItem, item_id, "MeetingItem")
    return [d.to_dict() for d in item.active_documents]


def upload_document(item_id: str, payload, actor: str, roles=(),
                    base_document_id: str | None = None) -> dict:
    item = get_or_404(MeetingItem, item_id, "MeetingItem")
    ensure_can_modify_documents(item, actor, roles)

    batch = BlobBatch()
    try:
        doc = add_document(item, payload, actor, batch, base_document_id=base_document_id)
        item.touch(actor)
    except Exception:
        db.session.rollback()
        batch.discard()
        raise
    batch.commit()
    return doc.to_dict()


def upload_new_version(document_id: str, payload, actor: str, roles=()) -> dict:
    base = get_document(document_id)
    return upload_document(base.meeting_item_id, payload, actor, roles, base_document_id=base.id)


def delete_document(document_id: str, actor: str, roles=()) -> dict:
    doc = get_document(document_id)
    item = doc.meeting_item
    ensure_can_modify_documents(item, actor, roles)

    batch = BlobBatch()
    remove_document(item, doc.id, actor, batch)
    item.touch(actor)
    batch.commit()
    logger.info("Document %s deleted from item %s by %s", doc.id, item.id, actor)
    return doc.to_dict()


def get_document_versions(document_id: str) -> list[dict]:
    """Non-deleted versions of the document's chain, oldest first."""
    doc = get_document(document_id)
    return [d.to_dict() for d in chain_members(doc.meeting_item.documents, doc.chain_id)]


def download_document(document_id: str) -> tuple[bytes, Document]:
    doc = get_document(document_id)
    try:
        content = get_blob_storage().download(doc.storage_path)
    except BlobNotFoundError:
        logger.error("Blob missing for document %s path=%s", doc.id, doc.storage_path)
        raise NotFoundError(resource="Document content", resource_id=doc.id) from None
    return content, doc
