"""
Partners pages - importers, resellers and installers.

Each partner type has its own acquisition board over the same columns.
"""

import logging
from typing import Dict, List, Optional

from services.base import PageService
from services.status import PARTNER_STATUSES, PARTNER_TYPES
from services.views import KanbanBoard, search_filter
from validators import ValidationError, raise_if_invalid, validate_partner_data, validate_required_fields

logger = logging.getLogger(__name__)

PARTNER_SEARCH_FIELDS = ['company_name', 'first_name', 'last_name', 'email', 'country', 'region']


def _acquisition_update(destination: str, record: Optional[Dict] = None) -> Dict:
    return {'acquisition_status': destination}


class PartnerService(PageService):
    """Partner management and the acquisition boards."""

    table = 'partners'
    entity_type = 'partner'

    def board(self) -> KanbanBoard:
        return KanbanBoard(self.data_access, self.table, PARTNER_STATUSES,
                           column_of=lambda record: record.get('acquisition_status'),
                           column_update=_acquisition_update)

    def _check_type(self, partner_type: Optional[str]):
        if partner_type and partner_type not in PARTNER_TYPES:
            raise ValidationError(f"Invalid partner type: {partner_type}", 'partner_type')

    def list_partners(self, partner_type: Optional[str] = None, search: Optional[str] = None,
                      region: Optional[str] = None, acquisition_status: Optional[str] = None) -> List[Dict]:
        self._check_type(partner_type)
        filters = {}
        if partner_type:
            filters['partner_type'] = partner_type
        if region and region != 'all':
            filters['region'] = region
        if acquisition_status and acquisition_status != 'all':
            filters['acquisition_status'] = acquisition_status
        partners = self.data_access.select(self.table, filters, order_by='company_name')
        return search_filter(partners, search, PARTNER_SEARCH_FIELDS)

    def board_view(self, partner_type: str, search: Optional[str] = None) -> Dict[str, List[Dict]]:
        if not partner_type:
            raise ValidationError("Partner type is required", 'partner_type')
        return self.board().group(self.list_partners(partner_type, search))

    def get_partner(self, partner_id: str) -> Dict:
        return self._get(partner_id)

    def create_partner(self, data: Dict) -> Dict:
        validate_partner_data(data)
        payload = self._payload(data)
        payload.setdefault('acquisition_status', 'prospect')
        if payload['acquisition_status'] not in PARTNER_STATUSES:
            raise ValidationError(f"Invalid acquisition status: {payload['acquisition_status']}", 'acquisition_status')
        partner = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, partner['id'], partner['company_name'])
        return partner

    def update_partner(self, partner_id: str, data: Dict) -> Dict:
        current = self._get(partner_id)
        validate_partner_data({**current, **data})
        changes = self._payload(data)
        partner = self.data_access.update_one(self.table, partner_id, changes)
        self.activity.log_update(self.entity_type, partner_id, changes)
        return partner

    def delete_partner(self, partner_id: str) -> Dict:
        partner = self._get(partner_id)
        self.data_access.delete(self.table, {'id': partner_id})
        self.activity.log(self.entity_type, partner_id, 'DELETED', f"Partner {partner.get('company_name')} deleted")
        return partner

    def move(self, partner_id: str, destination: str, current: Optional[str] = None) -> Optional[Dict]:
        """Drop a partner on an acquisition column; None when it was already there."""
        partner = self.board().move(partner_id, destination, current=current)
        if partner is not None:
            self.activity.log(self.entity_type, partner_id, 'STATUS_CHANGED',
                              f"Partner moved to {destination}", {'acquisition_status': destination})
        return partner

    def send_emails(self, subject: str, message: str, partner_type: Optional[str] = None,
                    region: Optional[str] = None, acquisition_status: Optional[str] = None) -> Dict:
        """Bulk email the partners matching the filters through send-partner-emails."""
        raise_if_invalid(validate_required_fields({'subject': subject, 'message': message}, ['subject', 'message']))
        self._check_type(partner_type if partner_type != 'all' else None)
        result = self.functions.invoke('send-partner-emails', {
            'partner_type': partner_type or 'all',
            'region': region or 'all',
            'acquisition_status': acquisition_status or 'all',
            'subject': subject,
            'message': message,
        })
        logger.info(f"Partner emails sent: {result.get('emailsSent', 0)}")
        return result
