"""
Sales Orders Routes Blueprint

Creating an order creates its work / service / shipping orders in one
transaction; the response carries the composite confirmation message.
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, error_response, get_service, json_body
from services.orders import OrderService
from services.status import ORDER_TYPES

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders_bp', __name__)


@orders_bp.route('/api/orders', methods=['GET', 'POST'])
def handle_orders():
    """List sales orders, or create one with its dependents"""
    try:
        service = get_service(OrderService)
        if request.method == 'GET':
            orders = service.list_orders(
                search=request.args.get('search'),
                status=request.args.get('status'),
                order_type=request.args.get('order_type'),
                show_archived=arg_bool('show_archived'),
            )
            return jsonify({'success': True, 'orders': orders, 'count': len(orders)})

        result = service.create_order(json_body())
        return jsonify({'success': True, **result}), 201
    except Exception as e:
        return error_response(e, "Error handling sales orders")


@orders_bp.route('/api/orders/types', methods=['GET'])
def get_order_types():
    return jsonify({'success': True, 'types': ORDER_TYPES})


@orders_bp.route('/api/orders/stats', methods=['GET'])
def get_order_stats():
    try:
        return jsonify({'success': True, 'stats': get_service(OrderService).stats()})
    except Exception as e:
        return error_response(e, "Error loading order stats")


@orders_bp.route('/api/orders/<order_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_order(order_id):
    try:
        service = get_service(OrderService)
        if request.method == 'GET':
            return jsonify({'success': True, 'order': service.get_order(order_id)})
        if request.method == 'PUT':
            return jsonify({'success': True, 'order': service.update_order(order_id, json_body())})
        return jsonify({'success': True, 'order': service.delete_order(order_id)})
    except Exception as e:
        return error_response(e, f"Error handling sales order {order_id}")


@orders_bp.route('/api/orders/<order_id>/archive', methods=['POST'])
def archive_order(order_id):
    """Archive or restore an order together with its dependents"""
    try:
        archived = json_body().get('archived', True)
        result = get_service(OrderService).archive_order(order_id, archived)
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error archiving sales order {order_id}")


@orders_bp.route('/api/orders/<order_id>/sync-status', methods=['POST'])
def sync_order_status(order_id):
    try:
        order = get_service(OrderService).sync_status(order_id)
        return jsonify({'success': True, 'linked': order is not None, 'order': order})
    except Exception as e:
        return error_response(e, f"Error syncing status of sales order {order_id}")
