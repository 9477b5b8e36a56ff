"""
Purchase Orders Routes Blueprint
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, error_response, get_service, json_body
from services.procurement import PurchaseOrderService

logger = logging.getLogger(__name__)

procurement_bp = Blueprint('procurement_bp', __name__)


@procurement_bp.route('/api/purchase-orders', methods=['GET', 'POST'])
def handle_purchase_orders():
    try:
        service = get_service(PurchaseOrderService)
        if request.method == 'GET':
            orders = service.list_purchase_orders(
                search=request.args.get('search'),
                status=request.args.get('status'),
                include_archived=arg_bool('include_archived', True),
            )
            return jsonify({'success': True, 'purchase_orders': orders, 'stats': service.stats()})

        return jsonify({'success': True, 'purchase_order': service.create_purchase_order(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling purchase orders")


@procurement_bp.route('/api/purchase-orders/<order_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_purchase_order(order_id):
    try:
        service = get_service(PurchaseOrderService)
        if request.method == 'GET':
            return jsonify({'success': True, 'purchase_order': service.get_purchase_order(order_id)})
        if request.method == 'PUT':
            return jsonify({'success': True,
                            'purchase_order': service.update_purchase_order(order_id, json_body())})
        return jsonify({'success': True, 'purchase_order': service.delete_purchase_order(order_id)})
    except Exception as e:
        return error_response(e, f"Error handling purchase order {order_id}")


@procurement_bp.route('/api/purchase-orders/<order_id>/status', methods=['POST'])
def change_purchase_order_status(order_id):
    """Change the status; the supplier notification failure is reported, not rolled back"""
    try:
        result = get_service(PurchaseOrderService).change_status(order_id, json_body().get('status'))
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error changing status of purchase order {order_id}")


@procurement_bp.route('/api/purchase-orders/<order_id>/archive', methods=['POST'])
def archive_purchase_order(order_id):
    try:
        order = get_service(PurchaseOrderService).archive_purchase_order(order_id)
        return jsonify({'success': True, 'purchase_order': order})
    except Exception as e:
        return error_response(e, f"Error archiving purchase order {order_id}")


@procurement_bp.route('/api/purchase-orders/<order_id>/confirm', methods=['POST'])
def confirm_purchase_order(order_id):
    try:
        data = json_body()
        result = get_service(PurchaseOrderService).confirm_purchase_order(
            order_id, confirmed_by=data.get('confirmed_by'), notes=data.get('notes')
        )
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error confirming purchase order {order_id}")
