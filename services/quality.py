"""
Quality pages - product serials and their tests, and RMAs (returns).
"""

import logging
import time
from datetime import date, datetime
from typing import Dict, List, Optional

from services.base import PageService
from services.status import RMA_STATUSES, SERIAL_STATUSES, serial_status_for_result, status_counts
from services.views import search_filter
from validators import ValidationError

logger = logging.getLogger(__name__)

SERIAL_SEARCH_FIELDS = ['serial_number', 'work_order.number']
RMA_SEARCH_FIELDS = ['rma_number', 'description', 'customer.name', 'serial.serial_number']
MAX_BULK_SERIALS = 500


def bulk_serial_numbers(prefix: str, quantity: int, timestamp: Optional[int] = None) -> List[str]:
    """Serial numbers <prefix><nnn>-<timestamp ms>, numbered from 001."""
    timestamp = timestamp if timestamp is not None else int(time.time() * 1000)
    return [f"{prefix}{index:03d}-{timestamp}" for index in range(1, quantity + 1)]


class SerialService(PageService):
    """Serials produced by work orders and their test results."""

    table = 'serials'
    entity_type = 'serial'

    def list_serials(self, search: Optional[str] = None, status: Optional[str] = None) -> List[Dict]:
        filters = {'status': status} if status and status != 'all' else {}
        serials = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                          joins=['work_order'])
        return search_filter(serials, search, SERIAL_SEARCH_FIELDS)

    def create_serial(self, data: Dict) -> Dict:
        if not (data.get('serial_number') or '').strip():
            raise ValidationError("Serial number is required", 'serial_number')
        payload = self._payload(data)
        payload['serial_number'] = payload['serial_number'].strip()
        payload['status'] = 'in_test'
        if data.get('test_result'):
            payload['status'] = serial_status_for_result(data['test_result'])
        serial = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, serial['id'], serial['serial_number'])
        return serial

    def record_test(self, serial_id: str, test_result: Optional[str], test_notes: Optional[str] = None) -> Dict:
        """PASS approves, FAIL rejects, anything else keeps the serial in test."""
        current = self._get(serial_id)
        status = serial_status_for_result(test_result)
        serial = self.data_access.update_one(self.table, serial_id, {
            'test_result': test_result,
            'test_notes': test_notes,
            'status': status,
        })
        if status != current.get('status'):
            self.activity.log_status_change(self.entity_type, serial_id, current.get('status'), status)
        return serial

    def bulk_generate(self, work_order_id: str, quantity: int, prefix: str = 'SN-') -> List[Dict]:
        """
        Generate serials for a work order in one insert.

        Args:
            work_order_id: Work order the serials belong to
            quantity: Number of serials, 1 to 500
            prefix: Serial number prefix

        Returns:
            The created serials
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= MAX_BULK_SERIALS:
            raise ValidationError(f"Quantity must be between 1 and {MAX_BULK_SERIALS}", 'quantity')
        self._get(work_order_id, table='work_orders')

        rows = [
            {'serial_number': number, 'work_order_id': work_order_id, 'status': 'in_test'}
            for number in bulk_serial_numbers(prefix or '', quantity)
        ]
        serials = self.data_access.insert(self.table, rows)
        logger.info(f"Generated {len(serials)} serials for work order {work_order_id}")
        self.activity.log('work_order', work_order_id, 'UPDATED', f"{len(serials)} serials generated",
                          {'prefix': prefix, 'quantity': quantity})
        return serials

    def status_counts(self) -> Dict[str, int]:
        return status_counts(self.data_access.select(self.table), SERIAL_STATUSES)


class RmaService(PageService):
    """Return merchandise authorizations."""

    table = 'rma'
    entity_type = 'rma'

    def list_rmas(self, search: Optional[str] = None, status: Optional[str] = None) -> List[Dict]:
        filters = {'status': status} if status and status != 'all' else {}
        rmas = self.data_access.select(self.table, filters, order_by=['-opened_date', '-created_at'],
                                       joins=['customer', 'serial'])
        return search_filter(rmas, search, RMA_SEARCH_FIELDS)

    def get_rma(self, rma_id: str) -> Dict:
        return self._get(rma_id, joins=['customer', 'serial'])

    def selectable_serials(self) -> List[Dict]:
        """Only approved serials can be returned."""
        return self.data_access.select('serials', {'status': 'approved'}, order_by='serial_number')

    def create_rma(self, data: Dict) -> Dict:
        if not (data.get('description') or '').strip():
            raise ValidationError("Description is required", 'description')
        payload = self._payload(data, exclude=['rma_number', 'closed_date'])
        payload['status'] = 'open'
        payload['opened_date'] = date.today()
        rma = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, rma['id'], rma['rma_number'])
        return rma

    def update_rma(self, rma_id: str, data: Dict) -> Dict:
        """closed_date is set when the status becomes closed and cleared otherwise."""
        current = self._get(rma_id)
        changes = self._payload(data, exclude=['rma_number', 'closed_date'])
        if 'status' in changes:
            if changes['status'] not in RMA_STATUSES:
                raise ValidationError(f"Invalid RMA status: {changes['status']}", 'status')
            changes['closed_date'] = datetime.utcnow() if changes['status'] == 'closed' else None
            if changes['status'] == current.get('status') == 'closed':
                changes['closed_date'] = current.get('closed_date')

        rma = self.data_access.update_one(self.table, rma_id, changes)
        if 'status' in changes and changes['status'] != current.get('status'):
            self.activity.log_status_change(self.entity_type, rma_id, current.get('status'), changes['status'])
        else:
            self.activity.log_update(self.entity_type, rma_id, changes)
        return rma

    def status_counts(self) -> Dict[str, int]:
        return status_counts(self.data_access.select(self.table), RMA_STATUSES)
