"""
Base class for page services.

A page service is built per request from the injected collaborators:
the DataAccess of the request, and where the page needs them the
function invoker, the object storage and the activity logger.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from database.models import TABLES
from services.event_logger import ActivityLogger
from validators import sanitize_string

logger = logging.getLogger(__name__)

READ_ONLY_FIELDS = {'id', 'created_at', 'updated_at'}
MAX_TEXT_LENGTH = 10000


class PageService:
    """Common plumbing for the page services."""

    table: str = None
    entity_type: str = None

    def __init__(self, data_access, functions=None, storage=None, activity: Optional[ActivityLogger] = None,
                 config: Optional[Dict[str, Any]] = None):
        self.data_access = data_access
        self.functions = functions
        self.storage = storage
        self.activity = activity or ActivityLogger(data_access)
        self.config = config or {}

    def _payload(self, data: Dict[str, Any], table: Optional[str] = None,
                 exclude: Iterable[str] = ()) -> Dict[str, Any]:
        """Keep only writable columns of the table; request payloads may carry joined data."""
        columns = TABLES[table or self.table].__table__.columns.keys()
        skip = READ_ONLY_FIELDS | set(exclude)
        return {
            key: sanitize_string(value, MAX_TEXT_LENGTH) if isinstance(value, str) else value
            for key, value in (data or {}).items() if key in columns and key not in skip
        }

    def _get(self, record_id: str, joins=None, table: Optional[str] = None) -> Dict:
        return self.data_access.get_or_404(table or self.table, record_id, joins=joins)

    def _archive(self, record_id: str, archived: bool = True) -> Dict:
        record = self.data_access.update_one(self.table, record_id, {'archived': archived})
        self.activity.log(self.entity_type, record_id, 'ARCHIVED' if archived else 'UPDATED',
                          f"{self.entity_type.replace('_', ' ').capitalize()} {'archived' if archived else 'restored'}")
        return record
