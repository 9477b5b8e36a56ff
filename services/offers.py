"""
Offers page - commercial offers for leads and customers.
"""

import logging
from typing import Dict, List, Optional

from services.base import PageService
from services.status import OFFER_STATUSES
from services.views import search_filter
from validators import ValidationError

logger = logging.getLogger(__name__)

OFFER_SEARCH_FIELDS = ['number', 'code', 'title', 'lead.company_name', 'lead.contact_name', 'customer.name']


class OfferService(PageService):
    """Offer management: codes, PDFs and sending."""

    table = 'offers'
    entity_type = 'offer'

    def list_offers(self, lead_id: Optional[str] = None, customer_id: Optional[str] = None,
                    show_archived: bool = False, status: Optional[str] = None,
                    search: Optional[str] = None) -> List[Dict]:
        filters = {}
        if lead_id:
            filters['lead_id'] = lead_id
        if customer_id:
            filters['customer_id'] = customer_id
        if not show_archived:
            filters['archived'] = False
        if status and status != 'all':
            filters['status'] = status
        offers = self.data_access.select(self.table, filters, order_by='created_at', descending=True,
                                         joins=['lead', 'customer'])
        return search_filter(offers, search, OFFER_SEARCH_FIELDS)

    def get_offer(self, offer_id: str) -> Dict:
        return self._get(offer_id, joins=['lead', 'customer'])

    def create_offer(self, data: Dict) -> Dict:
        """Create a draft offer with a code from generate-offer-code."""
        if not (data.get('lead_id') or data.get('customer_id')):
            raise ValidationError("An offer needs a lead or a customer", 'lead_id')

        body = {'prefix': data['code_prefix']} if data.get('code_prefix') else {}
        code = self.functions.invoke('generate-offer-code', body)['code']
        payload = self._payload(data)
        payload.update({'code': code, 'status': 'draft', 'archived': False})
        offer = self.data_access.insert_one(self.table, payload)
        self.activity.log_create(self.entity_type, offer['id'], offer.get('number'))
        return offer

    def update_offer(self, offer_id: str, data: Dict) -> Dict:
        changes = self._payload(data, exclude=['code', 'number'])
        if changes.get('status') and changes['status'] not in OFFER_STATUSES:
            raise ValidationError(f"Invalid offer status: {changes['status']}", 'status')
        offer = self.data_access.update_one(self.table, offer_id, changes)
        self.activity.log_update(self.entity_type, offer_id, changes)
        return offer

    def archive_offer(self, offer_id: str) -> Dict:
        return self._archive(offer_id, True)

    def unarchive_offer(self, offer_id: str) -> Dict:
        return self._archive(offer_id, False)

    def delete_offer(self, offer_id: str) -> Dict:
        offer = self._get(offer_id)
        self.data_access.delete(self.table, {'id': offer_id})
        self.activity.log(self.entity_type, offer_id, 'DELETED', f"Offer {offer.get('number')} deleted")
        return offer

    def generate_pdf(self, offer_id: str) -> Dict:
        """Render the offer PDF through generate-offer-pdf."""
        self._get(offer_id)
        result = self.functions.invoke('generate-offer-pdf', {'offerId': offer_id})
        self.activity.log(self.entity_type, offer_id, 'UPDATED', "Offer PDF generated", {'path': result.get('path')})
        return result

    def send_offer(self, offer_id: str, to: Optional[str] = None, message: Optional[str] = None) -> Dict:
        """Email the offer and mark it sent."""
        offer = self.get_offer(offer_id)
        recipient = to or (offer.get('customer') or {}).get('email') or (offer.get('lead') or {}).get('email')
        if not recipient:
            raise ValidationError("No recipient email for this offer", 'to')

        result = self.functions.invoke('send-email', {
            'to': recipient,
            'subject': f"Offer {offer.get('number') or offer.get('code')}",
            'message': message or f"Please find our offer {offer.get('title') or ''} attached.",
        })
        updated = self.data_access.update_one(self.table, offer_id, {'status': 'sent'})
        self.activity.log(self.entity_type, offer_id, 'EMAIL_SENT', f"Offer sent to {recipient}",
                          {'to': recipient, 'sent': result.get('sent')})
        return {'offer': updated, 'sent': bool(result.get('sent')), 'to': recipient}
