"""
Picking lists page - warehouse picking of order items.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from dateutil import parser as date_parser

from services.base import PageService
from services.status import PICK_PRIORITIES
from services.views import search_filter
from validators import ValidationError, raise_if_invalid, validate_number_range

logger = logging.getLogger(__name__)

PICK_LIST_SEARCH_FIELDS = ['pick_list_number', 'order_reference', 'customer_name', 'assigned_to']
CLOSED_ITEM_STATUSES = {'picked', 'unavailable'}


def item_status_for_quantity(quantity_picked: float, quantity_requested: float) -> str:
    """picked when the request is met, partial when some was picked, else pending."""
    if quantity_picked >= quantity_requested and quantity_picked > 0:
        return 'picked'
    if quantity_picked > 0:
        return 'partial'
    return 'pending'


def is_overdue(pick_list: Dict, today: Optional[date] = None) -> bool:
    """A list with a past due date that is not completed."""
    due = pick_list.get('due_date')
    if not due or pick_list.get('status') == 'completed':
        return False
    if isinstance(due, str):
        due = date_parser.parse(due).date()
    elif isinstance(due, datetime):
        due = due.date()
    return due < (today or date.today())


class PickingService(PageService):
    """Picking list management."""

    table = 'pick_lists'
    entity_type = 'pick_list'

    def list_pick_lists(self, status: Optional[str] = None, priority: Optional[str] = None,
                        search: Optional[str] = None) -> List[Dict]:
        filters = {}
        if status and status != 'all':
            filters['status'] = status
        if priority and priority != 'all':
            filters['priority'] = priority
        pick_lists = self.data_access.select(self.table, filters, order_by=['-created_date', 'pick_list_number'],
                                             joins=['items'])
        for pick_list in pick_lists:
            pick_list['overdue'] = is_overdue(pick_list)
        return search_filter(pick_lists, search, PICK_LIST_SEARCH_FIELDS)

    def get_pick_list(self, pick_list_id: str) -> Dict:
        pick_list = self._get(pick_list_id, joins=['items'])
        pick_list['overdue'] = is_overdue(pick_list)
        return pick_list

    def create_pick_list(self, data: Dict) -> Dict:
        """Create a list with its items; every item starts pending."""
        if data.get('priority') and data['priority'] not in PICK_PRIORITIES:
            raise ValidationError(f"Priority must be one of: {', '.join(PICK_PRIORITIES)}", 'priority')
        items = data.get('items') or []
        for item in items:
            raise_if_invalid(validate_number_range(item.get('quantity_requested'), min_value=0),
                             'quantity_requested')

        payload = self._payload(data, exclude=['progress', 'picked_items', 'completed_date'])
        payload.update({'status': 'pending', 'total_items': len(items), 'picked_items': 0, 'progress': 0})

        with self.data_access.transaction():
            pick_list = self.data_access.insert_one(self.table, payload)
            created = [
                self.data_access.insert_one('pick_list_items', {
                    **self._payload(item, table='pick_list_items'),
                    'pick_list_id': pick_list['id'],
                    'quantity_picked': 0,
                    'status': 'pending',
                })
                for item in items
            ]

        self.activity.log_create(self.entity_type, pick_list['id'], pick_list['pick_list_number'])
        return {**pick_list, 'items': created}

    def _item(self, pick_list_id: str, item_id: str) -> Dict:
        items = self.data_access.select('pick_list_items', {'id': item_id, 'pick_list_id': pick_list_id})
        if not items:
            raise ValidationError(f"Item {item_id} is not on this picking list", 'item_id')
        return items[0]

    def record_pick(self, pick_list_id: str, item_id: str, quantity_picked: float,
                    picked_by: Optional[str] = None) -> Dict:
        """
        Record the picked quantity of an item and refresh the list progress.

        Returns:
            Dict with the updated item and pick list
        """
        raise_if_invalid(validate_number_range(quantity_picked, min_value=0), 'quantity_picked')
        self._get(pick_list_id)
        item = self._item(pick_list_id, item_id)

        status = item_status_for_quantity(quantity_picked, float(item.get('quantity_requested') or 0))
        with self.data_access.transaction():
            item = self.data_access.update_one('pick_list_items', item_id, {
                'quantity_picked': quantity_picked,
                'status': status,
                'picked_by': picked_by,
                'picked_at': datetime.utcnow() if quantity_picked > 0 else None,
            })
            pick_list = self._refresh(pick_list_id)
        return {'item': item, 'pick_list': pick_list}

    def mark_unavailable(self, pick_list_id: str, item_id: str, notes: Optional[str] = None) -> Dict:
        self._get(pick_list_id)
        self._item(pick_list_id, item_id)
        values = {'status': 'unavailable'}
        if notes:
            values['notes'] = notes
        with self.data_access.transaction():
            item = self.data_access.update_one('pick_list_items', item_id, values)
            pick_list = self._refresh(pick_list_id)
        return {'item': item, 'pick_list': pick_list}

    def _refresh(self, pick_list_id: str) -> Dict:
        """Recompute counts, progress and status from the items."""
        current = self._get(pick_list_id)
        items = self.data_access.select('pick_list_items', {'pick_list_id': pick_list_id})
        total = len(items)
        picked = sum(1 for item in items if item.get('status') == 'picked')
        values = {
            'total_items': total,
            'picked_items': picked,
            'progress': round(picked / total * 100) if total else 0,
        }

        if current.get('status') != 'cancelled':
            if total and all(item.get('status') in CLOSED_ITEM_STATUSES for item in items):
                values['status'] = 'completed'
                values['completed_date'] = current.get('completed_date') or datetime.utcnow()
            elif any(item.get('status') in ('picked', 'partial') for item in items):
                values['status'] = 'in_progress'
                values['completed_date'] = None
            else:
                values['status'] = 'pending'
                values['completed_date'] = None

        return self.data_access.update_one(self.table, pick_list_id, values)

    def update_pick_list(self, pick_list_id: str, data: Dict) -> Dict:
        self._get(pick_list_id)
        changes = self._payload(data, exclude=['pick_list_number', 'status', 'progress', 'picked_items',
                                               'total_items', 'completed_date'])
        pick_list = self.data_access.update_one(self.table, pick_list_id, changes)
        self.activity.log_update(self.entity_type, pick_list_id, changes)
        return pick_list

    def cancel_pick_list(self, pick_list_id: str) -> Dict:
        current = self._get(pick_list_id)
        if current.get('status') == 'completed':
            raise ValidationError("A completed picking list cannot be cancelled", 'status')
        pick_list = self.data_access.update_one(self.table, pick_list_id, {'status': 'cancelled'})
        self.activity.log_status_change(self.entity_type, pick_list_id, current.get('status'), 'cancelled')
        return pick_list

    def stats(self) -> Dict:
        pick_lists = self.data_access.select(self.table)
        return {
            'total': len(pick_lists),
            'pending': sum(1 for pl in pick_lists if pl.get('status') == 'pending'),
            'in_progress': sum(1 for pl in pick_lists if pl.get('status') == 'in_progress'),
            'urgent': sum(1 for pl in pick_lists
                          if pl.get('priority') == 'urgent' and pl.get('status') != 'completed'),
            'overdue': sum(1 for pl in pick_lists if is_overdue(pl)),
        }
