"""
Files attached to records, stored in the bucket of the owning entity.
"""

import logging
from typing import Dict, List

from services.base import PageService
from services.errors import StorageError
from services.storage import LEAD_FILES, OFFER_FILES, ORDER_FILES, WORK_ORDER_FILES

logger = logging.getLogger(__name__)

# owning table -> bucket
ENTITY_BUCKETS = {
    'leads': LEAD_FILES,
    'sales_orders': ORDER_FILES,
    'offers': OFFER_FILES,
    'work_orders': WORK_ORDER_FILES,
}


class FileService(PageService):
    """Upload, list, delete and link files of a record."""

    def _bucket(self, entity: str, record_id: str) -> str:
        bucket = ENTITY_BUCKETS.get(entity)
        if bucket is None:
            raise StorageError(f"Files are not supported for {entity}")
        self._get(record_id, table=entity)
        return bucket

    def _check_owner(self, record_id: str, path: str):
        if not path.startswith(f"{record_id}/"):
            raise StorageError(f"{path} does not belong to record {record_id}")

    def _entry(self, bucket: str, entry: Dict) -> Dict:
        return {**entry, 'bucket': bucket, 'url': self.storage.get_url(bucket, entry['path'])}

    def list_files(self, entity: str, record_id: str) -> List[Dict]:
        bucket = self._bucket(entity, record_id)
        return [self._entry(bucket, entry) for entry in self.storage.list(bucket, record_id)]

    def upload_file(self, entity: str, record_id: str, filename: str, data,
                    content_type: str = None) -> Dict:
        bucket = self._bucket(entity, record_id)
        path = self.storage.upload(bucket, record_id, filename, data, content_type)
        self.activity.log(entity.rstrip('s'), record_id, 'UPDATED', f"File {filename} uploaded", {'path': path})
        return {'bucket': bucket, 'path': path, 'url': self.storage.get_url(bucket, path)}

    def delete_files(self, entity: str, record_id: str, paths: List[str]) -> List[str]:
        bucket = self._bucket(entity, record_id)
        for path in paths:
            self._check_owner(record_id, path)
        removed = self.storage.delete(bucket, paths)
        if removed:
            self.activity.log(entity.rstrip('s'), record_id, 'UPDATED', f"{len(removed)} file(s) deleted",
                              {'paths': removed})
        return removed

    def file_url(self, entity: str, record_id: str, path: str) -> str:
        bucket = self._bucket(entity, record_id)
        self._check_owner(record_id, path)
        return self.storage.get_url(bucket, path)
