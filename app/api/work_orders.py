"""
Work Orders Routes Blueprint

Production work orders (board over to_do / in_progress / testing /
completed) and service work orders.
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, error_response, get_service, json_body
from services.work_orders import ServiceOrderService, WorkOrderService

logger = logging.getLogger(__name__)

work_orders_bp = Blueprint('work_orders_bp', __name__)


# ============================================================================
# PRODUCTION WORK ORDERS
# ============================================================================

@work_orders_bp.route('/api/work-orders', methods=['GET', 'POST'])
def handle_work_orders():
    try:
        service = get_service(WorkOrderService)
        if request.method == 'GET':
            orders = service.list_work_orders(
                search=request.args.get('search'),
                status=request.args.get('status'),
                show_archived=arg_bool('show_archived'),
            )
            return jsonify({'success': True, 'work_orders': orders, 'count': len(orders)})

        result = service.create_work_order(json_body())
        return jsonify({'success': True, **result}), 201
    except Exception as e:
        return error_response(e, "Error handling work orders")


@work_orders_bp.route('/api/work-orders/board', methods=['GET'])
def get_work_order_board():
    try:
        service = get_service(WorkOrderService)
        return jsonify({
            'success': True,
            'columns': service.board_view(search=request.args.get('search')),
            'counts': service.status_counts(),
        })
    except Exception as e:
        return error_response(e, "Error loading work order board")


@work_orders_bp.route('/api/work-orders/<work_order_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_work_order(work_order_id):
    try:
        service = get_service(WorkOrderService)
        if request.method == 'GET':
            return jsonify({'success': True, 'work_order': service.get_work_order(work_order_id)})
        if request.method == 'PUT':
            return jsonify({'success': True,
                            'work_order': service.update_work_order(work_order_id, json_body())})
        return jsonify({'success': True, 'work_order': service.delete_work_order(work_order_id)})
    except Exception as e:
        return error_response(e, f"Error handling work order {work_order_id}")


@work_orders_bp.route('/api/work-orders/<work_order_id>/archive', methods=['POST'])
def archive_work_order(work_order_id):
    try:
        archived = json_body().get('archived', True)
        work_order = get_service(WorkOrderService).archive_work_order(work_order_id, archived)
        return jsonify({'success': True, 'work_order': work_order})
    except Exception as e:
        return error_response(e, f"Error archiving work order {work_order_id}")


@work_orders_bp.route('/api/work-orders/<work_order_id>/move', methods=['POST'])
def move_work_order(work_order_id):
    """Drop a work order card on a status column"""
    try:
        data = json_body()
        work_order = get_service(WorkOrderService).move(work_order_id, data.get('column'),
                                                        current=data.get('current'))
        return jsonify({'success': True, 'moved': work_order is not None, 'work_order': work_order})
    except Exception as e:
        return error_response(e, f"Error moving work order {work_order_id}")


# ============================================================================
# SERVICE WORK ORDERS
# ============================================================================

@work_orders_bp.route('/api/service-orders', methods=['GET', 'POST'])
def handle_service_orders():
    try:
        service = get_service(ServiceOrderService)
        if request.method == 'GET':
            orders = service.list_service_orders(
                search=request.args.get('search'),
                status=request.args.get('status'),
                show_archived=arg_bool('show_archived'),
            )
            return jsonify({'success': True, 'service_orders': orders, 'count': len(orders)})

        return jsonify({'success': True, 'service_order': service.create_service_order(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling service orders")


@work_orders_bp.route('/api/service-orders/<order_id>', methods=['GET', 'PUT'])
def handle_service_order(order_id):
    try:
        service = get_service(ServiceOrderService)
        if request.method == 'GET':
            return jsonify({'success': True, 'service_order': service.get_service_order(order_id)})
        return jsonify({'success': True, 'service_order': service.update_service_order(order_id, json_body())})
    except Exception as e:
        return error_response(e, f"Error handling service order {order_id}")


@work_orders_bp.route('/api/service-orders/<order_id>/status', methods=['POST'])
def change_service_order_status(order_id):
    try:
        order = get_service(ServiceOrderService).change_status(order_id, json_body().get('status'))
        return jsonify({'success': True, 'service_order': order})
    except Exception as e:
        return error_response(e, f"Error changing status of service order {order_id}")


@work_orders_bp.route('/api/service-orders/<order_id>/move', methods=['POST'])
def move_service_order(order_id):
    try:
        data = json_body()
        order = get_service(ServiceOrderService).move(order_id, data.get('column'), current=data.get('current'))
        return jsonify({'success': True, 'moved': order is not None, 'service_order': order})
    except Exception as e:
        return error_response(e, f"Error moving service order {order_id}")


@work_orders_bp.route('/api/service-orders/<order_id>/archive', methods=['POST'])
def archive_service_order(order_id):
    try:
        archived = json_body().get('archived', True)
        order = get_service(ServiceOrderService).archive_service_order(order_id, archived)
        return jsonify({'success': True, 'service_order': order})
    except Exception as e:
        return error_response(e, f"Error archiving service order {order_id}")
