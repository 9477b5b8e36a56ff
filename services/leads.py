"""
Leads page - CRM kanban of sales leads.

Leads are listed newest first, paginated, and grouped on a board whose
columns follow the lead status, with a separate "pre-qualified" column
for new leads carrying the pre_qualified flag. Leads in the Vesuviano
pipeline are pushed to the external configurator when created.
"""

import logging
from typing import Dict, List, Optional

from services.base import PageService
from services.errors import FunctionInvocationError
from services.remote_functions import is_vesuviano
from services.status import LEAD_BOARD_COLUMNS, LEAD_PRIORITY_ORDER, LEAD_STATUSES, status_counts
from services.views import KanbanBoard, search_filter, sort_records
from validators import validate_lead_data

logger = logging.getLogger(__name__)

LEAD_SEARCH_FIELDS = ['company_name', 'contact_name', 'email', 'phone', 'city']
LEAD_SORTS = ('priority', 'value', 'date', 'name')


def lead_column(lead: Dict) -> Optional[str]:
    """Board column of a lead."""
    if lead.get('status') == 'new' and lead.get('pre_qualified'):
        return 'pre_qualified'
    return lead.get('status')


def lead_column_update(destination: str, lead: Optional[Dict] = None) -> Dict:
    """Values written when a lead is dropped on a column."""
    if destination == 'pre_qualified':
        return {'status': 'new', 'pre_qualified': True}
    return {'status': destination, 'pre_qualified': False}


def sort_leads(leads: List[Dict], sort_by: Optional[str]) -> List[Dict]:
    """Apply one of the lead list sorts; unknown or empty sort keeps the order."""
    if sort_by == 'priority':
        return sort_records(leads, lambda lead: LEAD_PRIORITY_ORDER.get(lead.get('priority'), 2))
    if sort_by == 'value':
        return sort_records(leads, lambda lead: float(lead.get('value') or 0), descending=True)
    if sort_by == 'date':
        return sort_records(leads, 'created_at', descending=True)
    if sort_by == 'name':
        return sort_records(leads, lambda lead: lead.get('company_name') or lead.get('contact_name') or '')
    return leads


class LeadService(PageService):
    """Lead management and the leads board."""

    table = 'leads'
    entity_type = 'lead'

    @property
    def page_size(self) -> int:
        return int(self.config.get('LEADS_PAGE_SIZE', 100))

    def board(self) -> KanbanBoard:
        return KanbanBoard(self.data_access, self.table, LEAD_BOARD_COLUMNS,
                           column_of=lead_column, column_update=lead_column_update)

    def _load(self, pipeline: str = 'all', show_archived: bool = False, country: Optional[str] = None,
              search: Optional[str] = None) -> List[Dict]:
        filters = {}
        if pipeline and pipeline != 'all':
            filters['pipeline'] = pipeline
        if not show_archived:
            filters['archived'] = False
        if country and country != 'all':
            filters['country'] = country
        leads = self.data_access.select(self.table, filters, order_by='created_at', descending=True)
        return search_filter(leads, search, LEAD_SEARCH_FIELDS)

    def list_leads(self, pipeline: str = 'all', show_archived: bool = False, search: Optional[str] = None,
                   sort_by: Optional[str] = None, country: Optional[str] = None, status: Optional[str] = None,
                   page: int = 1, page_size: Optional[int] = None) -> Dict:
        """
        Leads newest first, filtered, sorted and paginated.

        Returns:
            Dict with leads, total, page, page_size and has_more
        """
        page_size = page_size or self.page_size
        page = max(int(page or 1), 1)

        leads = self._load(pipeline, show_archived, country, search)
        if status and status != 'all':
            leads = [lead for lead in leads if lead_column(lead) == status or lead.get('status') == status]
        leads = sort_leads(leads, sort_by)

        start = (page - 1) * page_size
        return {
            'leads': leads[start:start + page_size],
            'total': len(leads),
            'page': page,
            'page_size': page_size,
            'has_more': start + page_size < len(leads),
        }

    def board_view(self, pipeline: str = 'all', search: Optional[str] = None,
                   sort_by: Optional[str] = None) -> Dict[str, List[Dict]]:
        leads = sort_leads(self._load(pipeline, False, None, search), sort_by)
        return self.board().group(leads)

    def get_lead(self, lead_id: str) -> Dict:
        return self._get(lead_id, joins=['customer'])

    def create_lead(self, data: Dict) -> Dict:
        """
        Create the customer (unless customer_id is given) and then the lead.

        Leads in the Vesuviano pipeline are synced once with the external
        configurator; a sync failure is reported in 'sync_error' and the
        lead is kept.
        """
        validate_lead_data(data)
        payload = self._payload(data)
        payload.setdefault('status', 'new')
        payload.setdefault('archived', False)

        with self.data_access.transaction():
            customer_id = payload.get('customer_id')
            if customer_id:
                self._get(customer_id, table='customers')
            else:
                customer = self.data_access.insert_one('customers', {
                    'name': payload.get('company_name') or payload.get('contact_name'),
                    'company_name': payload.get('company_name'),
                    'email': payload.get('email'),
                    'phone': payload.get('phone'),
                    'city': payload.get('city'),
                    'country': payload.get('country'),
                    'active': True,
                })
                customer_id = customer['id']
            payload['customer_id'] = customer_id
            lead = self.data_access.insert_one(self.table, payload)

        self.activity.log_create(self.entity_type, lead['id'], lead.get('company_name') or lead.get('contact_name'))
        result = {'lead': lead, 'customer_id': customer_id}

        if is_vesuviano(lead.get('pipeline')):
            try:
                result['sync'] = self.functions.invoke('sync-vesuviano-lead', {'leadId': lead['id']})
                self.activity.log(self.entity_type, lead['id'], 'SYNCED', "Lead synced with the configurator")
                result['lead'] = self.data_access.get(self.table, lead['id']) or lead
            except FunctionInvocationError as e:
                logger.error(f"Configurator sync failed for lead {lead['id']}: {e.message}")
                result['sync_error'] = e.message

        return result

    def update_lead(self, lead_id: str, data: Dict) -> Dict:
        current = self._get(lead_id)
        validate_lead_data({**current, **data})
        changes = self._payload(data)
        lead = self.data_access.update_one(self.table, lead_id, changes)
        if 'status' in changes and changes['status'] != current.get('status'):
            self.activity.log_status_change(self.entity_type, lead_id, current.get('status'), changes['status'])
        else:
            self.activity.log_update(self.entity_type, lead_id, changes)
        return lead

    def archive_lead(self, lead_id: str, archived: bool = True) -> Dict:
        return self._archive(lead_id, archived)

    def delete_lead(self, lead_id: str) -> Dict:
        """Unlink call records (and offers / orders pointing at the lead), then delete it."""
        lead = self._get(lead_id)
        with self.data_access.transaction():
            self.data_access.update('call_records', {'lead_id': None}, {'lead_id': lead_id})
            self.data_access.update('offers', {'lead_id': None}, {'lead_id': lead_id})
            self.data_access.update('sales_orders', {'lead_id': None}, {'lead_id': lead_id})
            self.data_access.delete(self.table, {'id': lead_id})
        self.activity.log(self.entity_type, lead_id, 'DELETED',
                          f"Lead {lead.get('company_name') or lead.get('contact_name')} deleted")
        return lead

    def move_lead(self, lead_id: str, destination: str, current: Optional[str] = None) -> Optional[Dict]:
        """Drop a lead on a board column; None when it was already there."""
        lead = self.board().move(lead_id, destination, current=current)
        if lead is not None:
            self.activity.log(self.entity_type, lead_id, 'STATUS_CHANGED',
                              f"Lead moved to {destination}", {'column': destination})
        return lead

    def sync_lead(self, lead_id: str) -> Dict:
        """Push a lead to the external configurator on demand."""
        self._get(lead_id)
        result = self.functions.invoke('sync-vesuviano-lead', {'leadId': lead_id})
        self.activity.log(self.entity_type, lead_id, 'SYNCED', "Lead synced with the configurator")
        return result

    def sync_all(self) -> Dict:
        return self.functions.invoke('sync-all-vesuviano-leads', {})

    def stats(self, pipeline: str = 'all') -> Dict:
        leads = self._load(pipeline)
        by_status = status_counts(leads, LEAD_STATUSES)
        return {
            'total': len(leads),
            'by_status': by_status,
            'pre_qualified': sum(1 for lead in leads if lead_column(lead) == 'pre_qualified'),
            'total_value': sum(float(lead.get('value') or 0) for lead in leads),
            'won_value': sum(float(lead.get('value') or 0) for lead in leads if lead.get('status') == 'won'),
        }
