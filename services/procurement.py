"""
Purchase orders page - supplier orders, their items and confirmations.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from services.base import PageService
from services.errors import FunctionInvocationError
from services.status import PURCHASE_ORDER_STATUSES, status_counts
from services.views import search_filter
from validators import ValidationError, raise_if_invalid, validate_number_range

logger = logging.getLogger(__name__)

PURCHASE_ORDER_SEARCH_FIELDS = ['number', 'supplier.name', 'notes']
OPEN_EXCLUDED_STATUSES = ('delivered', 'cancelled', 'archived')

STATUS_LABELS = {
    'draft': 'Draft',
    'pending': 'Pending',
    'confirmed': 'Confirmed',
    'partial': 'Partially delivered',
    'delivered': 'Delivered',
    'cancelled': 'Cancelled',
    'archived': 'Archived',
}


def line_total(item: Dict) -> float:
    """Quantity times unit price; a missing quantity counts as 1, like the stored default."""
    quantity = item.get('quantity')
    if quantity is None:
        quantity = 1
    return round(float(quantity) * float(item.get('unit_price') or 0), 2)


class PurchaseOrderService(PageService):
    """Purchase order management."""

    table = 'purchase_orders'
    entity_type = 'purchase_order'

    def list_purchase_orders(self, search: Optional[str] = None, status: Optional[str] = None,
                             include_archived: bool = True) -> List[Dict]:
        filters = {}
        if status and status != 'all':
            filters['status'] = status
        orders = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                         joins=['supplier'])
        if not include_archived:
            orders = [order for order in orders if order.get('status') != 'archived']
        return search_filter(orders, search, PURCHASE_ORDER_SEARCH_FIELDS)

    def get_purchase_order(self, order_id: str) -> Dict:
        return self._get(order_id, joins=['supplier', 'items', 'confirmations'])

    def create_purchase_order(self, data: Dict) -> Dict:
        """
        Create an order with its items.

        Returns:
            The order with items; total_amount is the sum of the line totals
        """
        if not data.get('supplier_id'):
            raise ValidationError("Supplier is required", 'supplier_id')
        items = data.get('items') or []
        for item in items:
            raise_if_invalid(validate_number_range(item.get('quantity', 1), min_value=0), 'quantity')
            raise_if_invalid(validate_number_range(item.get('unit_price', 0), min_value=0), 'unit_price')

        payload = self._payload(data)
        payload['status'] = data.get('status') or 'draft'
        payload['total_amount'] = round(sum(line_total(item) for item in items), 2)

        with self.data_access.transaction():
            self._get(data['supplier_id'], table='suppliers')
            order = self.data_access.insert_one(self.table, payload)
            created = [
                self.data_access.insert_one('purchase_order_items', {
                    **self._payload(item, table='purchase_order_items'),
                    'purchase_order_id': order['id'],
                    'total_price': line_total(item),
                })
                for item in items
            ]

        self.activity.log_create(self.entity_type, order['id'], order['number'])
        return {**order, 'items': created}

    def update_purchase_order(self, order_id: str, data: Dict) -> Dict:
        self._get(order_id)
        changes = self._payload(data, exclude=['number', 'status', 'total_amount'])
        order = self.data_access.update_one(self.table, order_id, changes)
        self.activity.log_update(self.entity_type, order_id, changes)
        return order

    def change_status(self, order_id: str, status: str) -> Dict:
        """
        Change the status and notify the supplier by email.

        The status change is kept when the notification fails; the failure
        is returned in 'notification_error'.
        """
        if status not in PURCHASE_ORDER_STATUSES:
            raise ValidationError(f"Invalid purchase order status: {status}", 'status')
        current = self._get(order_id, joins=['supplier'])
        order = self.data_access.update_one(self.table, order_id, {'status': status})
        self.activity.log_status_change(self.entity_type, order_id, current.get('status'), status)

        result = {'order': order, 'notified': False}
        supplier_email = (current.get('supplier') or {}).get('email')
        if supplier_email and status != 'archived':
            try:
                self.functions.invoke('send-email', {
                    'to': supplier_email,
                    'subject': f"Purchase order {order['number']}: {STATUS_LABELS.get(status, status)}",
                    'message': f"The status of purchase order {order['number']} is now "
                               f"'{STATUS_LABELS.get(status, status)}'.",
                })
                result['notified'] = True
                self.activity.log(self.entity_type, order_id, 'EMAIL_SENT', f"Supplier notified at {supplier_email}")
            except FunctionInvocationError as e:
                logger.error(f"Supplier notification failed for {order['number']}: {e.message}")
                result['notification_error'] = e.message
        return result

    def archive_purchase_order(self, order_id: str) -> Dict:
        current = self._get(order_id)
        order = self.data_access.update_one(self.table, order_id, {'status': 'archived'})
        self.activity.log(self.entity_type, order_id, 'ARCHIVED', f"Purchase order {current.get('number')} archived")
        return order

    def delete_purchase_order(self, order_id: str) -> Dict:
        """Delete confirmations, then items, then the order."""
        order = self._get(order_id)
        with self.data_access.transaction():
            self.data_access.delete('purchase_order_confirmations', {'purchase_order_id': order_id})
            self.data_access.delete('purchase_order_items', {'purchase_order_id': order_id})
            self.data_access.delete(self.table, {'id': order_id})
        self.activity.log(self.entity_type, order_id, 'DELETED', f"Purchase order {order.get('number')} deleted")
        return order

    def confirm_purchase_order(self, order_id: str, confirmed_by: Optional[str] = None,
                               notes: Optional[str] = None) -> Dict:
        """Record the supplier's confirmation and mark the order confirmed."""
        current = self._get(order_id)
        if current.get('status') in ('cancelled', 'archived'):
            raise ValidationError(f"Cannot confirm a {current['status']} order", 'status')
        with self.data_access.transaction():
            confirmation = self.data_access.insert_one('purchase_order_confirmations', {
                'purchase_order_id': order_id,
                'confirmed_by': confirmed_by,
                'confirmed_at': datetime.utcnow(),
                'notes': notes,
            })
            order = self.data_access.update_one(self.table, order_id, {'status': 'confirmed'})
        self.activity.log_status_change(self.entity_type, order_id, current.get('status'), 'confirmed')
        return {'order': order, 'confirmation': confirmation}

    def stats(self) -> Dict:
        orders = self.data_access.select(self.table)
        return {
            'total': len(orders),
            'open': sum(1 for o in orders if o.get('status') not in OPEN_EXCLUDED_STATUSES),
            'confirmed': sum(1 for o in orders if o.get('status') in ('confirmed', 'partial')),
            'delivered': sum(1 for o in orders if o.get('status') == 'delivered'),
            'total_amount': round(sum(float(o.get('total_amount') or 0) for o in orders), 2),
            'by_status': status_counts(orders, PURCHASE_ORDER_STATUSES),
        }
