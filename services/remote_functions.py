"""
Server-side function handlers dispatched by LocalFunctionInvoker.

- send-email / send-partner-emails / send-customer-emails: SMTP delivery
- sync-vesuviano-lead / sync-all-vesuviano-leads: external configurator sync
- generate-offer-code / generate-offer-pdf: offer documents

Each handler takes the JSON body and returns a JSON-able dict; a
{'success': False, 'message': ...} result is turned into an error by the
invoker.
"""

import io
import logging
import secrets
import smtplib
from contextlib import contextmanager
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

import requests
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from services.storage import OFFER_FILES

logger = logging.getLogger(__name__)

VESUVIANO_PIPELINE = 'vesuviano'


def is_vesuviano(pipeline: Optional[str]) -> bool:
    return (pipeline or '').strip().lower() == VESUVIANO_PIPELINE


class RemoteFunctions:
    """Handlers for the named server-side functions."""

    def __init__(self, config, data_access_factory=None, storage=None, http=None):
        self.config = config
        self.data_access_factory = data_access_factory
        self.storage = storage
        self.http = http or requests

        self.smtp_host = config.get('SMTP_HOST', '')
        self.smtp_port = int(config.get('SMTP_PORT', 587))
        self.smtp_user = config.get('SMTP_USER', '')
        self.smtp_password = config.get('SMTP_PASSWORD', '')
        self.from_email = config.get('FROM_EMAIL', 'noreply@example.com')
        self.email_enabled = bool(self.smtp_host and self.smtp_user)

    def handlers(self) -> Dict[str, Any]:
        return {
            'send-email': self.send_email,
            'send-partner-emails': self.send_partner_emails,
            'send-customer-emails': self.send_customer_emails,
            'sync-vesuviano-lead': self.sync_vesuviano_lead,
            'sync-all-vesuviano-leads': self.sync_all_vesuviano_leads,
            'generate-offer-code': self.generate_offer_code,
            'generate-offer-pdf': self.generate_offer_pdf,
        }

    @contextmanager
    def _data_access(self):
        if self.data_access_factory is None:
            raise RuntimeError("No data store available to server-side functions")
        data_access = self.data_access_factory()
        try:
            yield data_access
        finally:
            data_access.close()

    # =========================================================================
    # EMAIL
    # =========================================================================

    def _deliver(self, to: str, subject: str, message: str, html: Optional[str] = None) -> bool:
        """Send one email; returns False when SMTP is not configured or delivery fails."""
        if not self.email_enabled:
            logger.info(f"SMTP not configured, email to {to} not sent: {subject}")
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.from_email
        msg['To'] = to
        msg.attach(MIMEText(message, 'plain'))
        msg.attach(MIMEText(html or self._render_html(subject, message), 'html'))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False

        logger.info(f"Sent email to {to}")
        return True

    def _render_html(self, subject: str, message: str) -> str:
        body = escape(message).replace('\n', '<br/>')
        return f"""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <h2>{escape(subject)}</h2>
        <p>{body}</p>
    </div>
</body>
</html>
"""

    def _send_bulk(self, recipients: List[Dict], subject: str, message: str) -> Dict[str, Any]:
        sent = 0
        skipped = 0
        for recipient in recipients:
            if not recipient.get('email'):
                skipped += 1
                continue
            if self._deliver(recipient['email'], subject, message):
                sent += 1
        return {'success': True, 'emailsSent': sent, 'recipients': len(recipients), 'skipped': skipped}

    def send_email(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Body: to, subject, message, optional html."""
        to = body.get('to')
        if not to:
            return {'success': False, 'message': 'Recipient is required'}
        subject = body.get('subject') or 'Notification'
        sent = self._deliver(to, subject, body.get('message', ''), body.get('html'))
        return {'success': True, 'sent': sent}

    def send_partner_emails(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Body: partner_type, region, acquisition_status, subject, message."""
        if not body.get('subject') or not body.get('message'):
            return {'success': False, 'message': 'Subject and message are required'}

        filters = {}
        for key in ('partner_type', 'region', 'acquisition_status'):
            if body.get(key) and body[key] != 'all':
                filters[key] = body[key]

        with self._data_access() as data_access:
            partners = data_access.select('partners', filters, order_by='company_name')

        result = self._send_bulk(partners, body['subject'], body['message'])
        logger.info(f"Partner emails sent: {result['emailsSent']}/{len(partners)}")
        return result

    def send_customer_emails(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Body: subject, message, optional customer_ids."""
        if not body.get('subject') or not body.get('message'):
            return {'success': False, 'message': 'Subject and message are required'}

        filters = {'active': True}
        if body.get('customer_ids'):
            filters['id'] = list(body['customer_ids'])

        with self._data_access() as data_access:
            customers = data_access.select('customers', filters, order_by='name')

        result = self._send_bulk(customers, body['subject'], body['message'])
        logger.info(f"Customer emails sent: {result['emailsSent']}/{len(customers)}")
        return result

    # =========================================================================
    # CONFIGURATOR SYNC
    # =========================================================================

    def _push_lead(self, data_access, lead: Dict) -> Dict[str, Any]:
        if not is_vesuviano(lead.get('pipeline')):
            return {'success': False, 'message': 'Lead is not in the Vesuviano pipeline'}

        api_url = self.config.get('CONFIGURATOR_API_URL')
        if not api_url:
            return {'success': False, 'message': 'Configurator API is not configured'}

        payload = {
            'name': lead.get('contact_name') or lead.get('company_name') or '',
            'email': lead.get('email') or '',
            'phone': lead.get('phone') or '',
            # ties the configurator import back to this lead
            'pipeline_id': lead['id'],
            'price_list': 'A',
        }
        headers = {'Content-Type': 'application/json', 'x-api-key': self.config.get('CONFIGURATOR_API_KEY', '')}

        try:
            response = self.http.post(api_url, json=payload, headers=headers,
                                      timeout=self.config.get('FUNCTIONS_TIMEOUT', 30))
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Configurator sync failed for lead {lead['id']}: {e}")
            return {'success': False, 'message': f"Configurator API error: {e}"}

        link = data.get('configurator_link')
        if link:
            data_access.update_one('leads', lead['id'], {'external_configurator_link': link})
        else:
            logger.warning(f"Configurator returned no link for lead {lead['id']}")
        logger.info(f"Lead {lead['id']} synced with configurator")
        return {'success': True, 'configurator_link': link}

    def sync_vesuviano_lead(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Body: leadId."""
        lead_id = body.get('leadId')
        if not lead_id:
            return {'success': False, 'message': 'leadId is required'}

        with self._data_access() as data_access:
            lead = data_access.get('leads', lead_id)
            if not lead:
                return {'success': False, 'message': f"Lead {lead_id} not found"}
            return self._push_lead(data_access, lead)

    def sync_all_vesuviano_leads(self, body: Dict[str, Any]) -> Dict[str, Any]:
        with self._data_access() as data_access:
            leads = [
                lead for lead in data_access.select('leads', {'archived': False, 'external_configurator_link': None})
                if is_vesuviano(lead.get('pipeline'))
            ]
            synced = 0
            errors = []
            for lead in leads:
                result = self._push_lead(data_access, lead)
                if result.get('success'):
                    synced += 1
                else:
                    errors.append({'leadId': lead['id'], 'message': result.get('message')})

        return {'success': True, 'total': len(leads), 'synced': synced, 'failed': len(errors), 'errors': errors}

    # =========================================================================
    # OFFERS
    # =========================================================================

    def generate_offer_code(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Unique offer code <PREFIX>-<yyyymmdd>-<6 hex>."""
        prefix = (body.get('prefix') or self.config.get('OFFER_CODE_PREFIX', 'OFF')).upper()
        today = datetime.utcnow().strftime('%Y%m%d')

        with self._data_access() as data_access:
            for _ in range(10):
                code = f"{prefix}-{today}-{secrets.token_hex(3).upper()}"
                if not data_access.count('offers', {'code': code}):
                    return {'success': True, 'code': code}

        return {'success': False, 'message': 'Could not generate a unique offer code'}

    def generate_offer_pdf(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """Body: offerId. Renders the offer and stores it in the offers bucket."""
        offer_id = body.get('offerId')
        if not offer_id:
            return {'success': False, 'message': 'offerId is required'}
        if self.storage is None:
            return {'success': False, 'message': 'Object storage is not configured'}

        with self._data_access() as data_access:
            offer = data_access.get('offers', offer_id, joins=['lead', 'customer'])
        if not offer:
            return {'success': False, 'message': f"Offer {offer_id} not found"}

        pdf = render_offer_pdf(offer)
        filename = f"{offer.get('number') or offer.get('code') or offer_id}.pdf"
        path = self.storage.upload(OFFER_FILES, offer_id, filename, pdf, 'application/pdf')
        return {'success': True, 'path': path, 'url': self.storage.get_url(OFFER_FILES, path)}


def render_offer_pdf(offer: Dict[str, Any]) -> bytes:
    """Render an offer record (with lead / customer joined) to PDF bytes."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    story = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'OfferTitle',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=colors.HexColor('#1F3A5F'),
        spaceAfter=24,
        alignment=1
    )
    heading_style = ParagraphStyle(
        'OfferHeading',
        parent=styles['Heading2'],
        fontSize=13,
        textColor=colors.HexColor('#1F3A5F'),
        spaceAfter=10
    )

    story.append(Paragraph("OFFERTA", title_style))

    info = [
        ['Offer:', offer.get('number') or '-'],
        ['Code:', offer.get('code') or '-'],
        ['Date:', datetime.utcnow().strftime('%d/%m/%Y')],
        ['Valid until:', offer.get('valid_until') or '-'],
        ['Amount:', f"EUR {float(offer.get('amount') or 0):,.2f}"],
    ]
    info_table = Table(info, colWidths=[1.6 * inch, 4.4 * inch])
    info_table.setStyle(TableStyle([
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#666666')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
    ]))
    story.append(info_table)
    story.append(Spacer(1, 0.3 * inch))

    recipient = offer.get('customer') or offer.get('lead') or {}
    if recipient:
        story.append(Paragraph("Recipient", heading_style))
        name = recipient.get('name') or recipient.get('company_name') or recipient.get('contact_name') or '-'
        story.append(Paragraph(escape(name), styles['Normal']))
        if recipient.get('email'):
            story.append(Paragraph(escape(recipient['email']), styles['Normal']))
        story.append(Spacer(1, 0.3 * inch))

    story.append(Paragraph(escape(offer.get('title') or 'Offer'), heading_style))
    if offer.get('notes'):
        story.append(Paragraph(escape(offer['notes']).replace('\n', '<br/>'), styles['Normal']))

    doc.build(story)
    return buffer.getvalue()
