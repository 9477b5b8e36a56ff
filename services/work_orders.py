"""
Production and service work orders.

Production work orders are shown on a board with the canonical columns;
legacy status values are normalized before grouping and counting. Every
status change re-syncs the parent sales order.
"""

import logging
from typing import Dict, List, Optional

from services.base import PageService
from services.orders import sync_order_status
from services.status import (
    LEGACY_STATUS_MAP, SERVICE_ORDER_STATUSES, WORK_ORDER_STATUSES, normalize_status, status_counts
)
from services.views import KanbanBoard, search_filter
from validators import ValidationError

logger = logging.getLogger(__name__)

WORK_ORDER_SEARCH_FIELDS = ['number', 'title', 'bom.name']
SERVICE_ORDER_SEARCH_FIELDS = ['number', 'title', 'description', 'location', 'customer.name']


class WorkOrderService(PageService):
    """Production work orders."""

    table = 'work_orders'
    entity_type = 'work_order'

    def board(self) -> KanbanBoard:
        return KanbanBoard(self.data_access, self.table, WORK_ORDER_STATUSES,
                           column_of=lambda record: normalize_status(record.get('status')))

    def list_work_orders(self, search: Optional[str] = None, status: Optional[str] = None,
                         show_archived: bool = False) -> List[Dict]:
        filters = {} if show_archived else {'archived': False}
        orders = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                         joins=['bom', 'sales_order', 'customer'])
        if status and status != 'all':
            orders = [order for order in orders if normalize_status(order.get('status')) == status]
        return search_filter(orders, search, WORK_ORDER_SEARCH_FIELDS)

    def board_view(self, search: Optional[str] = None) -> Dict[str, List[Dict]]:
        return self.board().group(self.list_work_orders(search))

    def get_work_order(self, work_order_id: str) -> Dict:
        return self._get(work_order_id, joins=['bom', 'sales_order', 'customer', 'serials'])

    def create_work_order(self, data: Dict) -> Dict:
        """
        Create a production work order, optionally with a linked service order.

        Args:
            data: Work order fields; create_service_order=True also creates a
                service work order pointing at the new production order

        Returns:
            Dict with work_order and, when requested, service_order
        """
        if not (data.get('title') or '').strip():
            raise ValidationError("Title is required", 'title')

        payload = self._payload(data)
        payload.setdefault('status', 'to_do')
        payload['archived'] = False

        service_order = None
        with self.data_access.transaction():
            work_order = self.data_access.insert_one(self.table, payload)
            if data.get('create_service_order'):
                service_order = self.data_access.insert_one('service_work_orders', {
                    'title': f"Installation - {work_order['title']}",
                    'description': data.get('service_description') or work_order.get('description'),
                    'status': 'to_do',
                    'sales_order_id': work_order.get('sales_order_id'),
                    'customer_id': work_order.get('customer_id'),
                    'production_work_order_id': work_order['id'],
                    'scheduled_date': data.get('scheduled_date'),
                    'location': data.get('location'),
                    'assigned_to': work_order.get('assigned_to'),
                    'priority': work_order.get('priority'),
                })

        self.activity.log_create(self.entity_type, work_order['id'], work_order['number'])
        sync_order_status(self.data_access, work_order.get('sales_order_id'))
        result = {'work_order': work_order}
        if service_order:
            result['service_order'] = service_order
        return result

    def update_work_order(self, work_order_id: str, data: Dict) -> Dict:
        current = self._get(work_order_id)
        changes = self._payload(data, exclude=['number'])
        work_order = self.data_access.update_one(self.table, work_order_id, changes)
        if 'status' in changes and changes['status'] != current.get('status'):
            self._after_status_change(current, work_order)
        else:
            self.activity.log_update(self.entity_type, work_order_id, changes)
        return work_order

    def delete_work_order(self, work_order_id: str) -> Dict:
        """Unlink the service orders produced from it, then delete."""
        work_order = self._get(work_order_id)
        with self.data_access.transaction():
            self.data_access.update('service_work_orders', {'production_work_order_id': None},
                                    {'production_work_order_id': work_order_id})
            self.data_access.update('serials', {'work_order_id': None}, {'work_order_id': work_order_id})
            self.data_access.update('stock_movements', {'work_order_id': None}, {'work_order_id': work_order_id})
            self.data_access.delete(self.table, {'id': work_order_id})
        self.activity.log(self.entity_type, work_order_id, 'DELETED', f"Work order {work_order.get('number')} deleted")
        sync_order_status(self.data_access, work_order.get('sales_order_id'))
        return work_order

    def archive_work_order(self, work_order_id: str, archived: bool = True) -> Dict:
        return self._archive(work_order_id, archived)

    def move(self, work_order_id: str, destination: str, current: Optional[str] = None) -> Optional[Dict]:
        """Drop a card on a status column; None when it was already there."""
        before = self._get(work_order_id)
        work_order = self.board().move(work_order_id, destination,
                                       current=current or normalize_status(before.get('status')))
        if work_order is not None:
            self._after_status_change(before, work_order)
        return work_order

    def _after_status_change(self, before: Dict, after: Dict):
        self.activity.log_status_change(self.entity_type, after['id'], before.get('status'), after.get('status'))
        sync_order_status(self.data_access, after.get('sales_order_id'))

    def status_counts(self, show_archived: bool = False) -> Dict[str, int]:
        filters = {} if show_archived else {'archived': False}
        return status_counts(self.data_access.select(self.table, filters), WORK_ORDER_STATUSES, normalize=True)


class ServiceOrderService(PageService):
    """Service (installation / field) work orders."""

    table = 'service_work_orders'
    entity_type = 'service_work_order'

    ALLOWED_STATUSES = set(SERVICE_ORDER_STATUSES) | set(LEGACY_STATUS_MAP)

    def board(self) -> KanbanBoard:
        return KanbanBoard(self.data_access, self.table, SERVICE_ORDER_STATUSES,
                           column_of=lambda record: normalize_status(record.get('status')))

    def list_service_orders(self, search: Optional[str] = None, status: Optional[str] = None,
                            show_archived: bool = False) -> List[Dict]:
        filters = {} if show_archived else {'archived': False}
        orders = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                         joins=['customer', 'sales_order', 'production_work_order'])
        if status and status != 'all':
            orders = [order for order in orders if normalize_status(order.get('status')) == status]
        return search_filter(orders, search, SERVICE_ORDER_SEARCH_FIELDS)

    def get_service_order(self, order_id: str) -> Dict:
        return self._get(order_id, joins=['customer', 'sales_order', 'production_work_order'])

    def create_service_order(self, data: Dict) -> Dict:
        payload = self._payload(data)
        payload.setdefault('status', 'to_do')
        payload['archived'] = False
        self._check_status(payload['status'])
        order = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, order['id'], order['number'])
        sync_order_status(self.data_access, order.get('sales_order_id'))
        return order

    def update_service_order(self, order_id: str, data: Dict) -> Dict:
        current = self._get(order_id)
        changes = self._payload(data, exclude=['number'])
        if 'status' in changes:
            self._check_status(changes['status'])
        order = self.data_access.update_one(self.table, order_id, changes)
        if 'status' in changes and changes['status'] != current.get('status'):
            self._after_status_change(current, order)
        else:
            self.activity.log_update(self.entity_type, order_id, changes)
        return order

    def archive_service_order(self, order_id: str, archived: bool = True) -> Dict:
        return self._archive(order_id, archived)

    def change_status(self, order_id: str, status: str) -> Dict:
        """Set the status (canonical or legacy value) and re-sync the parent order."""
        self._check_status(status)
        current = self._get(order_id)
        if current.get('status') == status:
            return current
        order = self.data_access.update_one(self.table, order_id, {'status': status})
        self._after_status_change(current, order)
        return order

    def move(self, order_id: str, destination: str, current: Optional[str] = None) -> Optional[Dict]:
        before = self._get(order_id)
        order = self.board().move(order_id, destination, current=current or normalize_status(before.get('status')))
        if order is not None:
            self._after_status_change(before, order)
        return order

    def _check_status(self, status: str):
        if status not in self.ALLOWED_STATUSES:
            raise ValidationError(f"Invalid service order status: {status}", 'status')

    def _after_status_change(self, before: Dict, after: Dict):
        self.activity.log_status_change(self.entity_type, after['id'], before.get('status'), after.get('status'))
        sync_order_status(self.data_access, after.get('sales_order_id'))

    def status_counts(self) -> Dict[str, int]:
        return status_counts(self.data_access.select(self.table, {'archived': False}),
                             SERVICE_ORDER_STATUSES, normalize=True)
