"""
Customers page - customer records and bulk customer emails.
"""

import logging
from typing import Dict, List, Optional

from services.base import PageService
from services.views import search_filter
from validators import raise_if_invalid, validate_customer_data, validate_required_fields

logger = logging.getLogger(__name__)

CUSTOMER_SEARCH_FIELDS = ['name', 'code', 'email', 'city', 'company_name']


class CustomerService(PageService):
    """Customer management."""

    table = 'customers'
    entity_type = 'customer'

    def list_customers(self, search: Optional[str] = None, include_inactive: bool = False) -> List[Dict]:
        """Active customers sorted by name, optionally searched."""
        filters = {} if include_inactive else {'active': True}
        customers = self.data_access.select(self.table, filters, order_by='name')
        return search_filter(customers, search, CUSTOMER_SEARCH_FIELDS)

    def get_customer(self, customer_id: str) -> Dict:
        return self._get(customer_id)

    def create_customer(self, data: Dict) -> Dict:
        """
        Create a customer.

        The code is assigned by the store when left empty; a supplied code
        that already exists returns the existing customer unchanged.
        """
        validate_customer_data(data)
        payload = self._payload(data)
        payload.setdefault('active', True)

        created = True
        if payload.get('code'):
            created = not self.data_access.count(self.table, {'code': payload['code']})
            customer = self.data_access.upsert(self.table, payload, 'code')
        else:
            payload.pop('code', None)
            customer = self.data_access.insert_one(self.table, payload)

        if created:
            self.activity.log_create(self.entity_type, customer['id'], customer.get('name'))
        logger.info(f"Customer ready: {customer['code']}")
        return customer

    def update_customer(self, customer_id: str, data: Dict) -> Dict:
        current = self._get(customer_id)
        validate_customer_data({**current, **data})
        changes = self._payload(data, exclude=['code'])
        customer = self.data_access.update_one(self.table, customer_id, changes)
        self.activity.log_update(self.entity_type, customer_id, changes)
        return customer

    def deactivate_customer(self, customer_id: str) -> Dict:
        customer = self.data_access.update_one(self.table, customer_id, {'active': False})
        self.activity.log(self.entity_type, customer_id, 'ARCHIVED', f"Customer {customer.get('name')} deactivated")
        return customer

    def send_emails(self, subject: str, message: str, customer_ids: Optional[List[str]] = None) -> Dict:
        """Send a templated email to active customers through send-customer-emails."""
        raise_if_invalid(validate_required_fields({'subject': subject, 'message': message}, ['subject', 'message']))
        body = {'subject': subject, 'message': message}
        if customer_ids:
            body['customer_ids'] = list(customer_ids)
        result = self.functions.invoke('send-customer-emails', body)
        logger.info(f"Customer emails sent: {result.get('emailsSent', 0)}")
        return result
