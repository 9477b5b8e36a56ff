"""
Shipping orders page - preparation, dispatch and delivery of goods.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from services.base import PageService
from services.orders import sync_order_status
from services.status import SHIPPING_STATUS_DATES, SHIPPING_STATUSES, status_counts
from services.views import search_filter
from validators import ValidationError, raise_if_invalid, validate_number_range

logger = logging.getLogger(__name__)

SHIPPING_SEARCH_FIELDS = ['number', 'shipping_address', 'notes', 'customer.name', 'sales_order.number']


def item_total(quantity, unit_price) -> float:
    return round(float(quantity or 0) * float(unit_price or 0), 2)


class ShippingService(PageService):
    """Shipping orders and their items."""

    table = 'shipping_orders'
    entity_type = 'shipping_order'

    def list_shipping_orders(self, search: Optional[str] = None, status: Optional[str] = None,
                             show_archived: bool = False) -> List[Dict]:
        filters = {} if show_archived else {'archived': False}
        if status and status != 'all':
            filters['status'] = status
        orders = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                         joins=['customer', 'sales_order', 'items'])
        return search_filter(orders, search, SHIPPING_SEARCH_FIELDS)

    def get_shipping_order(self, order_id: str) -> Dict:
        return self._get(order_id, joins=['customer', 'sales_order', 'items'])

    def create_shipping_order(self, data: Dict) -> Dict:
        payload = self._payload(data)
        payload['status'] = 'da_preparare'
        payload['archived'] = False

        with self.data_access.transaction():
            order = self.data_access.insert_one(self.table, payload)
            items = [self._insert_item(order['id'], item) for item in data.get('items') or []]

        self.activity.log_create(self.entity_type, order['id'], order['number'])
        sync_order_status(self.data_access, order.get('sales_order_id'))
        return {**order, 'items': items}

    def update_shipping_order(self, order_id: str, data: Dict) -> Dict:
        self._get(order_id)
        changes = self._payload(data, exclude=['number', 'status'])
        order = self.data_access.update_one(self.table, order_id, changes)
        self.activity.log_update(self.entity_type, order_id, changes)
        return order

    def change_status(self, order_id: str, status: str) -> Dict:
        """Set the status and stamp the matching date (shipped_date for spedito, ...)."""
        if status not in SHIPPING_STATUSES:
            raise ValidationError(f"Invalid shipping status: {status}", 'status')
        current = self._get(order_id)
        if current.get('status') == status:
            return current

        values = {'status': status}
        date_field = SHIPPING_STATUS_DATES.get(status)
        if date_field:
            values[date_field] = datetime.utcnow()
        order = self.data_access.update_one(self.table, order_id, values)

        self.activity.log_status_change(self.entity_type, order_id, current.get('status'), status)
        sync_order_status(self.data_access, order.get('sales_order_id'))
        return order

    def _insert_item(self, order_id: str, item: Dict) -> Dict:
        raise_if_invalid(validate_number_range(item.get('quantity', 1), min_value=0), 'quantity')
        values = self._payload(item, table='shipping_order_items')
        values['shipping_order_id'] = order_id
        values['total_price'] = item_total(values.get('quantity', 1), values.get('unit_price'))
        return self.data_access.insert_one('shipping_order_items', values)

    def add_item(self, order_id: str, item: Dict) -> Dict:
        """Add an item; total_price = quantity * unit_price."""
        self._get(order_id)
        return self._insert_item(order_id, item)

    def remove_item(self, order_id: str, item_id: str) -> Dict:
        removed = self.data_access.delete('shipping_order_items', {'id': item_id, 'shipping_order_id': order_id})
        if not removed:
            raise ValidationError(f"Item {item_id} is not on this shipping order", 'item_id')
        return removed[0]

    def archive_shipping_order(self, order_id: str, archived: bool = True) -> Dict:
        return self._archive(order_id, archived)

    def stats(self) -> Dict:
        orders = self.data_access.select(self.table, {'archived': False})
        return {'total': len(orders), 'by_status': status_counts(orders, SHIPPING_STATUSES)}
