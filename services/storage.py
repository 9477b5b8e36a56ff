"""
Object Storage - files attached to records, kept in named buckets.

Blobs live on the local filesystem under <root>/<bucket>/<owner_id>/.
Every path segment goes through werkzeug's secure_filename and the
resolved path must stay inside its bucket.
"""

import logging
import os
import time
from typing import Dict, List, Optional

from werkzeug.utils import secure_filename

from services.errors import NotFoundError, StorageError
from validators import (
    ALLOWED_UPLOAD_EXTENSIONS, MAX_DOCUMENT_SIZE, MAX_IMAGE_SIZE,
    is_image_file, sanitize_filename, validate_file_extension,
)

logger = logging.getLogger(__name__)

# Buckets per owning entity
LEAD_FILES = 'lead-files'
ORDER_FILES = 'order-files'
OFFER_FILES = 'offers'
WORK_ORDER_FILES = 'work-order-files'
BUCKETS = (LEAD_FILES, ORDER_FILES, OFFER_FILES, WORK_ORDER_FILES)


class ObjectStorage:
    """Filesystem-backed bucket storage."""

    def __init__(self, root: str, public_url: str = '/api/files',
                 allowed_extensions: Optional[set] = None):
        self.root = os.path.abspath(root)
        self.public_url = public_url.rstrip('/')
        self.allowed_extensions = allowed_extensions or ALLOWED_UPLOAD_EXTENSIONS
        os.makedirs(self.root, exist_ok=True)

    def _bucket_dir(self, bucket: str) -> str:
        if not bucket or secure_filename(bucket) != bucket:
            raise StorageError(f"Invalid bucket name: {bucket!r}")
        return os.path.join(self.root, bucket)

    def _segments(self, path: str) -> List[str]:
        segments = [part for part in (path or '').replace('\\', '/').split('/') if part]
        for part in segments:
            if part in ('.', '..') or secure_filename(part) != part:
                raise StorageError(f"Invalid storage path: {path!r}")
        return segments

    def _resolve(self, bucket: str, path: str) -> str:
        bucket_dir = self._bucket_dir(bucket)
        full_path = os.path.realpath(os.path.join(bucket_dir, *self._segments(path)))
        if full_path != os.path.realpath(bucket_dir) and \
                not full_path.startswith(os.path.realpath(bucket_dir) + os.sep):
            raise StorageError(f"Path escapes bucket: {path!r}")
        return full_path

    def upload(self, bucket: str, owner_id: str, filename: str,
               data, content_type: Optional[str] = None) -> str:
        """
        Store a blob for a record.

        Args:
            bucket: Bucket of the owning entity
            owner_id: Record id used as path prefix
            filename: Original file name (sanitized)
            data: Bytes or a readable file object
            content_type: MIME type, informational only

        Returns:
            Storage path "<owner_id>/<timestamp>_<safe name>"
        """
        safe_owner = secure_filename(str(owner_id or ''))
        if not safe_owner:
            raise StorageError("An owner id is required to store a file")

        safe_name = sanitize_filename(filename)
        is_valid, error = validate_file_extension(safe_name, self.allowed_extensions)
        if not is_valid:
            raise StorageError(error)

        payload = data.read() if hasattr(data, 'read') else data
        if not isinstance(payload, (bytes, bytearray)):
            raise StorageError("File content must be bytes")
        max_size = MAX_IMAGE_SIZE if is_image_file(safe_name) else MAX_DOCUMENT_SIZE
        if len(payload) > max_size:
            raise StorageError(f"File too large (maximum {max_size // (1024 * 1024)}MB)")

        owner_dir = self._resolve(bucket, safe_owner)
        os.makedirs(owner_dir, exist_ok=True)

        name = self._stamped_name(owner_dir, safe_name)
        with open(os.path.join(owner_dir, name), 'wb') as f:
            f.write(payload)

        path = f"{safe_owner}/{name}"
        logger.info(f"Stored {bucket}/{path} ({len(payload)} bytes, {content_type or 'unknown type'})")
        return path

    @staticmethod
    def _stamped_name(directory: str, safe_name: str) -> str:
        """<millis>_<name>, bumped until no file of that name exists in the directory."""
        stamp = int(time.time() * 1000)
        name = f"{stamp}_{safe_name}"
        while os.path.exists(os.path.join(directory, name)):
            stamp += 1
            name = f"{stamp}_{safe_name}"
        return name

    def list(self, bucket: str, prefix: str = '') -> List[Dict]:
        """Files directly under the prefix, sorted by name."""
        directory = self._resolve(bucket, prefix)
        if not os.path.isdir(directory):
            return []

        base = '/'.join(self._segments(prefix))
        entries = []
        for name in sorted(os.listdir(directory)):
            full_path = os.path.join(directory, name)
            if not os.path.isfile(full_path):
                continue
            stat = os.stat(full_path)
            entries.append({
                'name': name,
                'path': f"{base}/{name}" if base else name,
                'size': stat.st_size,
                'updated_at': time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(stat.st_mtime)),
            })
        return entries

    def download(self, bucket: str, path: str) -> bytes:
        full_path = self._resolve(bucket, path)
        if not os.path.isfile(full_path):
            raise NotFoundError(f"File not found: {bucket}/{path}")
        with open(full_path, 'rb') as f:
            return f.read()

    def delete(self, bucket: str, paths: List[str]) -> List[str]:
        """Remove files; returns the paths that existed and were removed."""
        removed = []
        for path in paths:
            full_path = self._resolve(bucket, path)
            if os.path.isfile(full_path):
                os.remove(full_path)
                removed.append(path)
        logger.info(f"Deleted {len(removed)} file(s) from {bucket}")
        return removed

    def copy(self, source_bucket: str, source_path: str, target_bucket: str, owner_id: str) -> str:
        """Copy a file to another bucket under a new owner; the name is re-stamped if already taken."""
        data = self.download(source_bucket, source_path)
        name = self._segments(source_path)[-1]
        target_dir = self._resolve(target_bucket, secure_filename(str(owner_id)))
        os.makedirs(target_dir, exist_ok=True)
        if os.path.exists(os.path.join(target_dir, name)):
            name = self._stamped_name(target_dir, name)
        with open(os.path.join(target_dir, name), 'wb') as f:
            f.write(data)
        return f"{secure_filename(str(owner_id))}/{name}"

    def get_url(self, bucket: str, path: str) -> str:
        self._resolve(bucket, path)
        return f"{self.public_url}/{bucket}/{path}"
