"""
Partners and Content Routes Blueprint

Importer / reseller / installer boards and the marketing content board.
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import error_response, get_service, json_body
from services.content import ContentService
from services.partners import PartnerService

logger = logging.getLogger(__name__)

partners_bp = Blueprint('partners_bp', __name__)


# ============================================================================
# PARTNERS
# ============================================================================

@partners_bp.route('/api/partners', methods=['GET', 'POST'])
def handle_partners():
    try:
        service = get_service(PartnerService)
        if request.method == 'GET':
            partners = service.list_partners(
                partner_type=request.args.get('type'),
                search=request.args.get('search'),
                region=request.args.get('region'),
                acquisition_status=request.args.get('acquisition_status'),
            )
            return jsonify({'success': True, 'partners': partners, 'count': len(partners)})

        return jsonify({'success': True, 'partner': service.create_partner(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling partners")


@partners_bp.route('/api/partners/board/<partner_type>', methods=['GET'])
def get_partner_board(partner_type):
    try:
        board = get_service(PartnerService).board_view(partner_type, search=request.args.get('search'))
        return jsonify({'success': True, 'columns': board})
    except Exception as e:
        return error_response(e, f"Error loading {partner_type} board")


@partners_bp.route('/api/partners/emails', methods=['POST'])
def send_partner_emails():
    try:
        data = json_body()
        result = get_service(PartnerService).send_emails(
            data.get('subject'), data.get('message'),
            partner_type=data.get('partner_type'),
            region=data.get('region'),
            acquisition_status=data.get('acquisition_status'),
        )
        return jsonify({**result, 'success': True})
    except Exception as e:
        return error_response(e, "Error sending partner emails")


@partners_bp.route('/api/partners/<partner_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_partner(partner_id):
    try:
        service = get_service(PartnerService)
        if request.method == 'GET':
            return jsonify({'success': True, 'partner': service.get_partner(partner_id)})
        if request.method == 'PUT':
            return jsonify({'success': True, 'partner': service.update_partner(partner_id, json_body())})
        return jsonify({'success': True, 'partner': service.delete_partner(partner_id)})
    except Exception as e:
        return error_response(e, f"Error handling partner {partner_id}")


@partners_bp.route('/api/partners/<partner_id>/move', methods=['POST'])
def move_partner(partner_id):
    try:
        data = json_body()
        partner = get_service(PartnerService).move(partner_id, data.get('column'), current=data.get('current'))
        return jsonify({'success': True, 'moved': partner is not None, 'partner': partner})
    except Exception as e:
        return error_response(e, f"Error moving partner {partner_id}")


# ============================================================================
# CONTENT
# ============================================================================

@partners_bp.route('/api/content', methods=['GET', 'POST'])
def handle_content():
    try:
        service = get_service(ContentService)
        if request.method == 'GET':
            items = service.list_content(
                search=request.args.get('search'),
                status=request.args.get('status'),
                platform=request.args.get('platform'),
            )
            return jsonify({'success': True, 'content': items, 'count': len(items)})

        return jsonify({'success': True, 'content': service.create_content(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling content")


@partners_bp.route('/api/content/board', methods=['GET'])
def get_content_board():
    try:
        board = get_service(ContentService).board_view(search=request.args.get('search'))
        return jsonify({'success': True, 'columns': board})
    except Exception as e:
        return error_response(e, "Error loading content board")


@partners_bp.route('/api/content/<content_id>', methods=['PUT', 'DELETE'])
def handle_content_item(content_id):
    try:
        service = get_service(ContentService)
        if request.method == 'PUT':
            return jsonify({'success': True, 'content': service.update_content(content_id, json_body())})
        return jsonify({'success': True, 'content': service.delete_content(content_id)})
    except Exception as e:
        return error_response(e, f"Error handling content {content_id}")


@partners_bp.route('/api/content/<content_id>/move', methods=['POST'])
def move_content(content_id):
    try:
        data = json_body()
        item = get_service(ContentService).move(content_id, data.get('column'), current=data.get('current'))
        return jsonify({'success': True, 'moved': item is not None, 'content': item})
    except Exception as e:
        return error_response(e, f"Error moving content {content_id}")
