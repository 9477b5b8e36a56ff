"""
Content creation page - marketing content board.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from services.base import PageService
from services.status import CONTENT_STATUSES
from services.views import KanbanBoard, search_filter
from validators import ValidationError, raise_if_invalid, validate_string_length, validate_url

logger = logging.getLogger(__name__)

CONTENT_SEARCH_FIELDS = ['title', 'description', 'platform', 'assigned_to']
PUBLISHED = 'pubblicato'


def content_column_update(destination: str, record: Optional[Dict] = None) -> Dict:
    values = {'status': destination}
    if destination == PUBLISHED and not (record or {}).get('published_date'):
        values['published_date'] = date.today()
    return values


class ContentService(PageService):
    """Marketing content management."""

    table = 'marketing_content'
    entity_type = 'marketing_content'

    def board(self) -> KanbanBoard:
        return KanbanBoard(self.data_access, self.table, CONTENT_STATUSES, column_update=content_column_update)

    def _check_fields(self, values: Dict):
        if 'title' in values:
            raise_if_invalid(validate_string_length(values['title'] or '', min_length=1, max_length=255), 'title')
        if values.get('content_url'):
            raise_if_invalid(validate_url(values['content_url']), 'content_url')

    def list_content(self, search: Optional[str] = None, status: Optional[str] = None,
                     platform: Optional[str] = None) -> List[Dict]:
        filters = {}
        if status and status != 'all':
            filters['status'] = status
        if platform and platform != 'all':
            filters['platform'] = platform
        items = self.data_access.select(self.table, filters, order_by='created_at', descending=True)
        return search_filter(items, search, CONTENT_SEARCH_FIELDS)

    def board_view(self, search: Optional[str] = None) -> Dict[str, List[Dict]]:
        return self.board().group(self.list_content(search))

    def create_content(self, data: Dict) -> Dict:
        if not (data.get('title') or '').strip():
            raise ValidationError("Title is required", 'title')
        payload = self._payload(data)
        self._check_fields(payload)
        payload.setdefault('status', 'da_fare')
        if payload['status'] not in CONTENT_STATUSES:
            raise ValidationError(f"Invalid content status: {payload['status']}", 'status')
        if payload['status'] == PUBLISHED and not payload.get('published_date'):
            payload['published_date'] = date.today()
        item = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, item['id'], item['title'])
        return item

    def update_content(self, content_id: str, data: Dict) -> Dict:
        current = self._get(content_id)
        changes = self._payload(data)
        self._check_fields(changes)
        if 'status' in changes and changes['status'] not in CONTENT_STATUSES:
            raise ValidationError(f"Invalid content status: {changes['status']}", 'status')
        if changes.get('status') == PUBLISHED and not (changes.get('published_date') or current.get('published_date')):
            changes['published_date'] = date.today()
        item = self.data_access.update_one(self.table, content_id, changes)
        self.activity.log_update(self.entity_type, content_id, changes)
        return item

    def delete_content(self, content_id: str) -> Dict:
        item = self._get(content_id)
        self.data_access.delete(self.table, {'id': content_id})
        self.activity.log(self.entity_type, content_id, 'DELETED', f"Content {item.get('title')} deleted")
        return item

    def move(self, content_id: str, destination: str, current: Optional[str] = None) -> Optional[Dict]:
        """Drop a card on a column; publishing stamps published_date when it is empty."""
        if destination == PUBLISHED:
            # the board must load the card to see its published_date
            current = None
        item = self.board().move(content_id, destination, current=current)
        if item is not None:
            self.activity.log(self.entity_type, content_id, 'STATUS_CHANGED',
                              f"Content moved to {destination}", {'status': destination})
        return item
