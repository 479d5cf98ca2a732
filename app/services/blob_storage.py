"""
Blob storage for meeting item documents.

Backends:
  - LocalBlobStorage:    files under BLOB_STORAGE_ROOT (default: instance/blobs)
  - InMemoryBlobStorage: dict store for development/testing

The backend is chosen by BLOB_STORAGE_BACKEND (``local`` | ``memory``) and
kept in ``app.extensions["blob_storage"]``.

Blob paths are relative, e.g. ``meeting-items/<item_id>/<stored_name>``.
"""

import logging
import os
from pathlib import Path, PurePosixPath

from flask import current_app

logger = logging.getLogger(__name__)


class BlobNotFoundError(Exception):
    """Raised when a blob path has no stored content."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Blob not found: {path}")


def _normalise(path):
    """Reject absolute paths and parent traversal; return a clean posix path."""
    pure = PurePosixPath(path)
    if pure.is_absolute() or ".." in pure.parts or not pure.parts:
        raise ValueError(f"Invalid blob path: {path!r}")
    return str(pure)


class InMemoryBlobStorage:
    """Dict-backed store for dev/testing."""

    name = "memory"

    def __init__(self):
        self._blobs: dict[str, tuple[bytes, str | None]] = {}

    def upload(self, path, content, content_type=None):
        self._blobs[_normalise(path)] = (bytes(content), content_type)

    def download(self, path):
        try:
            return self._blobs[_normalise(path)][0]
        except KeyError:
            raise BlobNotFoundError(path) from None

    def delete(self, path):
        """Remove a blob. Returns False when it did not exist."""
        return self._blobs.pop(_normalise(path), None) is not None

    def exists(self, path):
        return _normalise(path) in self._blobs

    def clear(self):
        self._blobs.clear()

    def __len__(self):
        return len(self._blobs)


class LocalBlobStorage:
    """Filesystem store rooted at a single directory."""

    name = "local"

    def __init__(self, root):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _full_path(self, path):
        return self.root.joinpath(*PurePosixPath(_normalise(path)).parts)

    def upload(self, path, content, content_type=None):
        target = self._full_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".part")
        tmp.write_bytes(content)
        os.replace(tmp, target)

    def download(self, path):
        target = self._full_path(path)
        if not target.is_file():
            raise BlobNotFoundError(path)
        return target.read_bytes()

    def delete(self, path):
        target = self._full_path(path)
        if not target.is_file():
            return False
        target.unlink()
        return True

    def exists(self, path):
        return self._full_path(path).is_file()


def create_blob_storage(config):
    """Build the backend described by a Flask config mapping."""
    backend = (config.get("BLOB_STORAGE_BACKEND") or "local").lower()
    if backend == "memory":
        return InMemoryBlobStorage()
    if backend == "local":
        return LocalBlobStorage(config["BLOB_STORAGE_ROOT"])
    raise ValueError(f"Unknown BLOB_STORAGE_BACKEND: {backend!r}")


def init_blob_storage(app):
    """Attach the configured backend to *app*."""
    storage = create_blob_storage(app.config)
    app.extensions["blob_storage"] = storage
    logger.info("Blob storage: %s backend", storage.name)
    return storage


def get_blob_storage():
    """Return the backend of the current app."""
    return current_app.extensions["blob_storage"]
