"""
Quality Routes Blueprint

Serials (tests, bulk generation) and RMAs.
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import error_response, get_service, json_body
from services.quality import RmaService, SerialService

logger = logging.getLogger(__name__)

quality_bp = Blueprint('quality_bp', __name__)


# ============================================================================
# SERIALS
# ============================================================================

@quality_bp.route('/api/serials', methods=['GET', 'POST'])
def handle_serials():
    try:
        service = get_service(SerialService)
        if request.method == 'GET':
            serials = service.list_serials(search=request.args.get('search'), status=request.args.get('status'))
            return jsonify({'success': True, 'serials': serials, 'counts': service.status_counts()})

        return jsonify({'success': True, 'serial': service.create_serial(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling serials")


@quality_bp.route('/api/serials/bulk', methods=['POST'])
def bulk_generate_serials():
    """Generate up to 500 serials for a work order"""
    try:
        data = json_body()
        serials = get_service(SerialService).bulk_generate(
            data.get('work_order_id'), data.get('quantity'), data.get('prefix', 'SN-')
        )
        return jsonify({'success': True, 'serials': serials, 'count': len(serials)}), 201
    except Exception as e:
        return error_response(e, "Error generating serials")


@quality_bp.route('/api/serials/<serial_id>/test', methods=['POST'])
def record_serial_test(serial_id):
    try:
        data = json_body()
        serial = get_service(SerialService).record_test(serial_id, data.get('test_result'), data.get('test_notes'))
        return jsonify({'success': True, 'serial': serial})
    except Exception as e:
        return error_response(e, f"Error recording test for serial {serial_id}")


# ============================================================================
# RMA
# ============================================================================

@quality_bp.route('/api/rma', methods=['GET', 'POST'])
def handle_rmas():
    try:
        service = get_service(RmaService)
        if request.method == 'GET':
            rmas = service.list_rmas(search=request.args.get('search'), status=request.args.get('status'))
            return jsonify({'success': True, 'rmas': rmas, 'counts': service.status_counts()})

        return jsonify({'success': True, 'rma': service.create_rma(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling RMAs")


@quality_bp.route('/api/rma/serials', methods=['GET'])
def get_rma_serials():
    """Serials that can be returned (approved only)"""
    try:
        return jsonify({'success': True, 'serials': get_service(RmaService).selectable_serials()})
    except Exception as e:
        return error_response(e, "Error loading serials for RMA")


@quality_bp.route('/api/rma/<rma_id>', methods=['GET', 'PUT'])
def handle_rma(rma_id):
    try:
        service = get_service(RmaService)
        if request.method == 'GET':
            return jsonify({'success': True, 'rma': service.get_rma(rma_id)})
        return jsonify({'success': True, 'rma': service.update_rma(rma_id, json_body())})
    except Exception as e:
        return error_response(e, f"Error handling RMA {rma_id}")
