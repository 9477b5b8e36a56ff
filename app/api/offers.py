"""
Offers Routes Blueprint
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, error_response, get_service, json_body
from services.offers import OfferService

logger = logging.getLogger(__name__)

offers_bp = Blueprint('offers_bp', __name__)


@offers_bp.route('/api/offers', methods=['GET', 'POST'])
def handle_offers():
    """List or create offers"""
    try:
        service = get_service(OfferService)
        if request.method == 'GET':
            offers = service.list_offers(
                lead_id=request.args.get('lead_id'),
                customer_id=request.args.get('customer_id'),
                show_archived=arg_bool('show_archived'),
                status=request.args.get('status'),
                search=request.args.get('search'),
            )
            return jsonify({'success': True, 'offers': offers, 'count': len(offers)})

        return jsonify({'success': True, 'offer': service.create_offer(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling offers")


@offers_bp.route('/api/offers/<offer_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_offer(offer_id):
    try:
        service = get_service(OfferService)
        if request.method == 'GET':
            return jsonify({'success': True, 'offer': service.get_offer(offer_id)})
        if request.method == 'PUT':
            return jsonify({'success': True, 'offer': service.update_offer(offer_id, json_body())})
        return jsonify({'success': True, 'offer': service.delete_offer(offer_id)})
    except Exception as e:
        return error_response(e, f"Error handling offer {offer_id}")


@offers_bp.route('/api/offers/<offer_id>/archive', methods=['POST'])
def archive_offer(offer_id):
    try:
        service = get_service(OfferService)
        if json_body().get('archived', True):
            offer = service.archive_offer(offer_id)
        else:
            offer = service.unarchive_offer(offer_id)
        return jsonify({'success': True, 'offer': offer})
    except Exception as e:
        return error_response(e, f"Error archiving offer {offer_id}")


@offers_bp.route('/api/offers/<offer_id>/pdf', methods=['POST'])
def generate_offer_pdf(offer_id):
    """Render the offer PDF and return its storage path and URL"""
    try:
        result = get_service(OfferService).generate_pdf(offer_id)
        return jsonify({**result, 'success': True})
    except Exception as e:
        return error_response(e, f"Error generating PDF for offer {offer_id}")


@offers_bp.route('/api/offers/<offer_id>/send', methods=['POST'])
def send_offer(offer_id):
    try:
        data = json_body()
        result = get_service(OfferService).send_offer(offer_id, to=data.get('to'), message=data.get('message'))
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error sending offer {offer_id}")
