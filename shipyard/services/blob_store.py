"""
Document storage for permits, BASTP scans and progress evidence.

``BlobStore`` is the seam; ``LocalBlobStore`` keeps files under
``UPLOAD_FOLDER`` and serves them back through ``/api/v1/files/<path>``.

Usage:
    store = get_blob_store()
    blob = store.save(request.files["file"], prefix="permits")
    permit.document_url, permit.storage_path = blob.url, blob.storage_path
"""

import logging
import os
import uuid
from dataclasses import dataclass

from flask import current_app
from werkzeug.utils import secure_filename

from shipyard.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset({"pdf", "png", "jpg", "jpeg"})
FILES_URL_PREFIX = "/api/v1/files/"


class UnsupportedFileType(ValidationError):
    """Upload whose extension is not in ALLOWED_EXTENSIONS. Maps to HTTP 415."""

    def __init__(self, filename: str) -> None:
        super().__init__(
            f"File type not allowed: {filename}",
            details={"allowed": sorted(ALLOWED_EXTENSIONS)},
        )


@dataclass(frozen=True)
class StoredBlob:
    storage_path: str
    url: str


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


class BlobStore:
    """Interface: persist an uploaded file and return where it can be fetched."""

    def save(self, file_storage, prefix: str) -> StoredBlob:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    def __init__(self, root: str) -> None:
        self.root = root

    def path_for(self, storage_path: str) -> str:
        return os.path.join(self.root, storage_path)

    def save(self, file_storage, prefix: str) -> StoredBlob:
        if file_storage is None or not file_storage.filename:
            raise ValidationError("file is required", details={"file": None})
        filename = secure_filename(file_storage.filename)
        if not filename or not allowed_file(filename):
            raise UnsupportedFileType(file_storage.filename)

        storage_path = f"{secure_filename(prefix)}/{uuid.uuid4().hex}_{filename}"
        target = self.path_for(storage_path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        file_storage.save(target)
        logger.info("Stored upload %s", storage_path)
        return StoredBlob(storage_path=storage_path, url=FILES_URL_PREFIX + storage_path)


def get_blob_store() -> BlobStore:
    store = current_app.extensions.get("blob_store")
    if store is None:
        store = current_app.extensions["blob_store"] = LocalBlobStore(current_app.config["UPLOAD_FOLDER"])
    return store
