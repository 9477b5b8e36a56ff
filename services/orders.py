"""
Sales Orders page - orders and the work orders they spawn.

Creating an order also creates its dependents according to the order type:

    odl    service work order
    odp    production work order
    odpel  production work order (with installation) + linked service work order
    ods    shipping order

The order and its dependents are written in one transaction. The order
status follows the linked orders (see services.status.calculate_order_status).
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from services.base import PageService
from services.errors import NotFoundError, StorageError
from services.status import (
    ORDER_COMMISSIONED, ORDER_TYPES, SALES_ORDER_STATUSES, calculate_order_status, status_counts
)
from services.storage import LEAD_FILES, ORDER_FILES
from services.views import count_by, search_filter
from validators import is_image_file, validate_order_data

logger = logging.getLogger(__name__)

ORDER_SEARCH_FIELDS = ['number', 'notes', 'customer.name']
DEPENDENT_TABLES = ('work_orders', 'service_work_orders', 'shipping_orders')


def sync_order_status(data_access, order_id: Optional[str]) -> Optional[Dict]:
    """
    Recompute a sales order status from its linked orders.

    Returns:
        The order record (updated when the status changed), or None when the
        order has no linked orders or does not exist
    """
    if not order_id:
        return None
    order = data_access.get('sales_orders', order_id)
    if order is None:
        return None

    linked = {table: data_access.select(table, {'sales_order_id': order_id}) for table in DEPENDENT_TABLES}
    if not any(linked.values()):
        return None

    status = calculate_order_status(linked['work_orders'], linked['service_work_orders'], linked['shipping_orders'])
    if status == order.get('status'):
        return order

    logger.info(f"Sales order {order.get('number')} status {order.get('status')} -> {status}")
    return data_access.update_one('sales_orders', order_id, {'status': status})


def compose_order_message(work_order: Optional[Dict], service_order: Optional[Dict],
                          shipping_order: Optional[Dict]) -> str:
    message = "Order created"
    if work_order and service_order:
        message += f" - Production order: {work_order['number']}, Service order: {service_order['number']}"
    elif work_order:
        message += f" - Production order: {work_order['number']}"
    elif service_order:
        message += f" - Service order: {service_order['number']}"
    elif shipping_order:
        message += f" - Shipping order: {shipping_order['number']}"
    return message


class OrderService(PageService):
    """Sales order management."""

    table = 'sales_orders'
    entity_type = 'sales_order'

    def list_orders(self, search: Optional[str] = None, status: Optional[str] = None,
                    order_type: Optional[str] = None, show_archived: bool = False) -> List[Dict]:
        filters = {}
        if not show_archived:
            filters['archived'] = False
        if status and status != 'all':
            filters['status'] = status
        if order_type and order_type != 'all':
            filters['order_type'] = order_type
        orders = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                         joins=['customer'])
        return search_filter(orders, search, ORDER_SEARCH_FIELDS)

    def get_order(self, order_id: str) -> Dict:
        return self._get(order_id, joins=['customer', 'work_orders', 'service_work_orders', 'shipping_orders'])

    def create_order(self, data: Dict) -> Dict:
        """
        Create a sales order and its dependents in one transaction.

        Args:
            data: Order fields plus the dependent inputs (bom_id,
                work_description, location, equipment_needed,
                scheduled_date, shipping_address, priority, assigned_to)

        Returns:
            Dict with order, dependents, message and copied_files

        Raises:
            ValidationError: Before any write when required inputs are missing
            DataAccessError: When any insert fails; nothing is kept
        """
        validate_order_data(data, ORDER_TYPES)
        order_type = data['order_type']

        values = self._payload(data)
        values['status'] = data.get('status') or ORDER_COMMISSIONED
        values['order_source'] = data.get('order_source') or 'sale'
        values.setdefault('order_date', date.today())
        values['archived'] = False

        customer = self.data_access.get_or_404('customers', data['customer_id'])
        customer_name = customer.get('name') or 'customer'

        work_order = service_order = shipping_order = None
        with self.data_access.transaction():
            order = self.data_access.insert_one(self.table, values)
            linked = {'sales_order_id': order['id'], 'customer_id': order['customer_id']}

            if order_type in ('odp', 'odpel'):
                work_order = self.data_access.insert_one('work_orders', {
                    **linked,
                    'title': f"Production for {customer_name}",
                    'description': data.get('notes') or '',
                    'status': 'to_do',
                    'bom_id': data['bom_id'],
                    'assigned_to': data.get('assigned_to'),
                    'priority': data.get('priority') or 'medium',
                    'planned_start_date': data.get('planned_start_date'),
                    'planned_end_date': data.get('planned_end_date') or data.get('delivery_date'),
                    'notes': data.get('notes'),
                    'includes_installation': order_type == 'odpel',
                })

            if order_type in ('odl', 'odpel'):
                service_order = self.data_access.insert_one('service_work_orders', {
                    **linked,
                    'title': f"Installation for {customer_name}",
                    'description': data.get('work_description') or data.get('notes'),
                    'status': 'to_do',
                    'assigned_to': data.get('assigned_to'),
                    'priority': data.get('priority') or 'medium',
                    'scheduled_date': data.get('scheduled_date') or data.get('planned_start_date'),
                    'location': data.get('location'),
                    'equipment_needed': data.get('equipment_needed'),
                    'notes': data.get('notes'),
                    'production_work_order_id': work_order['id'] if work_order else None,
                })

            if order_type == 'ods':
                shipping_order = self.data_access.insert_one('shipping_orders', {
                    **linked,
                    'status': 'da_preparare',
                    'order_date': data.get('order_date') or date.today(),
                    'shipping_address': data.get('shipping_address'),
                    'notes': data.get('notes'),
                })

        dependents = {
            key: record for key, record in (
                ('work_order', work_order), ('service_order', service_order), ('shipping_order', shipping_order)
            ) if record
        }
        message = compose_order_message(work_order, service_order, shipping_order)
        logger.info(f"{message} ({order['number']})")
        self.activity.log_create(self.entity_type, order['id'], order['number'])

        copied = self.copy_lead_photos(order['lead_id'], order['id']) if order.get('lead_id') else []
        return {'order': order, 'dependents': dependents, 'message': message, 'copied_files': copied}

    def copy_lead_photos(self, lead_id: str, order_id: str) -> List[str]:
        """Copy the lead's images to the order's files; failures are logged and skipped."""
        if self.storage is None:
            return []
        copied = []
        try:
            files = self.storage.list(LEAD_FILES, lead_id)
        except (StorageError, NotFoundError, OSError) as e:
            logger.error(f"Could not list files of lead {lead_id}: {e}")
            return []

        for entry in files:
            if not is_image_file(entry['name']):
                continue
            try:
                copied.append(self.storage.copy(LEAD_FILES, entry['path'], ORDER_FILES, order_id))
            except (StorageError, NotFoundError, OSError) as e:
                logger.error(f"Could not copy {entry['path']} to order {order_id}: {e}")

        if copied:
            logger.info(f"Copied {len(copied)} photo(s) from lead {lead_id} to order {order_id}")
        return copied

    def update_order(self, order_id: str, data: Dict) -> Dict:
        current = self._get(order_id)
        changes = self._payload(data, exclude=['number', 'order_type'])
        if changes.get('status') and changes['status'] not in SALES_ORDER_STATUSES:
            logger.warning(f"Non-standard sales order status: {changes['status']}")
        order = self.data_access.update_one(self.table, order_id, changes)
        if 'status' in changes and changes['status'] != current.get('status'):
            self.activity.log_status_change(self.entity_type, order_id, current.get('status'), changes['status'])
        else:
            self.activity.log_update(self.entity_type, order_id, changes)
        return order

    def delete_order(self, order_id: str) -> Dict:
        """Delete an order with its work, service and shipping orders."""
        order = self._get(order_id)
        with self.data_access.transaction():
            production_ids = [wo['id'] for wo in self.data_access.select('work_orders', {'sales_order_id': order_id})]
            if production_ids:
                self.data_access.update('service_work_orders', {'production_work_order_id': None},
                                        {'production_work_order_id': production_ids})
                self.data_access.update('serials', {'work_order_id': None}, {'work_order_id': production_ids})
                self.data_access.update('stock_movements', {'work_order_id': None}, {'work_order_id': production_ids})
            self.data_access.delete('service_work_orders', {'sales_order_id': order_id})
            if production_ids:
                self.data_access.delete('work_orders', {'id': production_ids})
            shipping_ids = [so['id'] for so in self.data_access.select('shipping_orders', {'sales_order_id': order_id})]
            if shipping_ids:
                self.data_access.delete('shipping_order_items', {'shipping_order_id': shipping_ids})
                self.data_access.delete('shipping_orders', {'id': shipping_ids})
            self.data_access.delete(self.table, {'id': order_id})
        self.activity.log(self.entity_type, order_id, 'DELETED', f"Order {order.get('number')} deleted")
        return order

    def archive_order(self, order_id: str, archived: bool = True) -> Dict:
        """
        Archive (or restore) an order and exactly its declared dependents.

        Returns:
            Dict with the order and the number of dependents changed per table
        """
        self._get(order_id)
        with self.data_access.transaction():
            order = self.data_access.update_one(self.table, order_id, {'archived': archived})
            changed = {
                table: len(self.data_access.update(table, {'archived': archived}, {'sales_order_id': order_id}))
                for table in DEPENDENT_TABLES
            }
        self.activity.log(self.entity_type, order_id, 'ARCHIVED' if archived else 'UPDATED',
                          f"Order {order.get('number')} {'archived' if archived else 'restored'}", changed)
        return {'order': order, 'dependents': changed}

    def sync_status(self, order_id: str) -> Optional[Dict]:
        """Recompute the order status; None when it has no linked orders."""
        self._get(order_id)
        return sync_order_status(self.data_access, order_id)

    def stats(self) -> Dict:
        orders = self.data_access.select(self.table, {'archived': False})
        return {
            'total': len(orders),
            'by_status': status_counts(orders, SALES_ORDER_STATUSES),
            'by_type': count_by(orders, 'order_type'),
        }
