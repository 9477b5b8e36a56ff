"""
Warehouse Routes Blueprint

Shipping orders, stock movements and picking lists.
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, error_response, get_service, json_body
from services.movements import MovementService
from services.picking import PickingService
from services.shipping import ShippingService

logger = logging.getLogger(__name__)

warehouse_bp = Blueprint('warehouse_bp', __name__)


# ============================================================================
# SHIPPING ORDERS
# ============================================================================

@warehouse_bp.route('/api/shipping-orders', methods=['GET', 'POST'])
def handle_shipping_orders():
    try:
        service = get_service(ShippingService)
        if request.method == 'GET':
            orders = service.list_shipping_orders(
                search=request.args.get('search'),
                status=request.args.get('status'),
                show_archived=arg_bool('show_archived'),
            )
            return jsonify({'success': True, 'shipping_orders': orders, 'count': len(orders)})

        return jsonify({'success': True, 'shipping_order': service.create_shipping_order(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling shipping orders")


@warehouse_bp.route('/api/shipping-orders/<order_id>', methods=['GET', 'PUT'])
def handle_shipping_order(order_id):
    try:
        service = get_service(ShippingService)
        if request.method == 'GET':
            return jsonify({'success': True, 'shipping_order': service.get_shipping_order(order_id)})
        return jsonify({'success': True, 'shipping_order': service.update_shipping_order(order_id, json_body())})
    except Exception as e:
        return error_response(e, f"Error handling shipping order {order_id}")


@warehouse_bp.route('/api/shipping-orders/<order_id>/status', methods=['POST'])
def change_shipping_status(order_id):
    try:
        order = get_service(ShippingService).change_status(order_id, json_body().get('status'))
        return jsonify({'success': True, 'shipping_order': order})
    except Exception as e:
        return error_response(e, f"Error changing status of shipping order {order_id}")


@warehouse_bp.route('/api/shipping-orders/<order_id>/items', methods=['POST'])
def add_shipping_item(order_id):
    try:
        item = get_service(ShippingService).add_item(order_id, json_body())
        return jsonify({'success': True, 'item': item}), 201
    except Exception as e:
        return error_response(e, f"Error adding item to shipping order {order_id}")


@warehouse_bp.route('/api/shipping-orders/<order_id>/items/<item_id>', methods=['DELETE'])
def remove_shipping_item(order_id, item_id):
    try:
        return jsonify({'success': True, 'item': get_service(ShippingService).remove_item(order_id, item_id)})
    except Exception as e:
        return error_response(e, f"Error removing item {item_id}")


@warehouse_bp.route('/api/shipping-orders/<order_id>/archive', methods=['POST'])
def archive_shipping_order(order_id):
    try:
        archived = json_body().get('archived', True)
        order = get_service(ShippingService).archive_shipping_order(order_id, archived)
        return jsonify({'success': True, 'shipping_order': order})
    except Exception as e:
        return error_response(e, f"Error archiving shipping order {order_id}")


# ============================================================================
# STOCK MOVEMENTS
# ============================================================================

@warehouse_bp.route('/api/movements', methods=['GET', 'POST'])
def handle_movements():
    try:
        service = get_service(MovementService)
        if request.method == 'GET':
            movements = service.list_movements(
                movement_type=request.args.get('type'),
                status=request.args.get('status'),
                search=request.args.get('search'),
            )
            return jsonify({'success': True, 'movements': movements, 'stats': service.stats()})

        return jsonify({'success': True, 'movement': service.create_movement(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling stock movements")


@warehouse_bp.route('/api/movements/similar-materials', methods=['GET'])
def similar_materials():
    """Fuzzy matches for a movement description"""
    try:
        threshold = float(request.args.get('threshold', 0.6))
        matches = get_service(MovementService).similar_materials(request.args.get('description', ''), threshold)
        return jsonify({'success': True, 'matches': matches})
    except Exception as e:
        return error_response(e, "Error matching materials")


@warehouse_bp.route('/api/movements/<movement_id>/confirm', methods=['POST'])
def confirm_movement(movement_id):
    try:
        data = json_body()
        service = get_service(MovementService)
        if data.get('action'):
            result = service.resolve_similar(movement_id, data['action'], data.get('material_id'))
        else:
            result = service.confirm_movement(movement_id, confirmed_by=data.get('confirmed_by'))
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error confirming movement {movement_id}")


@warehouse_bp.route('/api/movements/<movement_id>/cancel', methods=['POST'])
def cancel_movement(movement_id):
    try:
        return jsonify({'success': True, 'movement': get_service(MovementService).cancel_movement(movement_id)})
    except Exception as e:
        return error_response(e, f"Error cancelling movement {movement_id}")


@warehouse_bp.route('/api/movements/<movement_id>/exclude', methods=['POST'])
def exclude_movement(movement_id):
    try:
        return jsonify({'success': True, 'movement': get_service(MovementService).exclude_movement(movement_id)})
    except Exception as e:
        return error_response(e, f"Error excluding movement {movement_id}")


# ============================================================================
# PICKING LISTS
# ============================================================================

@warehouse_bp.route('/api/pick-lists', methods=['GET', 'POST'])
def handle_pick_lists():
    try:
        service = get_service(PickingService)
        if request.method == 'GET':
            pick_lists = service.list_pick_lists(
                status=request.args.get('status'),
                priority=request.args.get('priority'),
                search=request.args.get('search'),
            )
            return jsonify({'success': True, 'pick_lists': pick_lists, 'stats': service.stats()})

        return jsonify({'success': True, 'pick_list': service.create_pick_list(json_body())}), 201
    except Exception as e:
        return error_response(e, "Error handling picking lists")


@warehouse_bp.route('/api/pick-lists/<pick_list_id>', methods=['GET', 'PUT'])
def handle_pick_list(pick_list_id):
    try:
        service = get_service(PickingService)
        if request.method == 'GET':
            return jsonify({'success': True, 'pick_list': service.get_pick_list(pick_list_id)})
        return jsonify({'success': True, 'pick_list': service.update_pick_list(pick_list_id, json_body())})
    except Exception as e:
        return error_response(e, f"Error handling picking list {pick_list_id}")


@warehouse_bp.route('/api/pick-lists/<pick_list_id>/items/<item_id>/pick', methods=['POST'])
def record_pick(pick_list_id, item_id):
    try:
        data = json_body()
        result = get_service(PickingService).record_pick(
            pick_list_id, item_id, data.get('quantity_picked'), picked_by=data.get('picked_by')
        )
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error recording pick of item {item_id}")


@warehouse_bp.route('/api/pick-lists/<pick_list_id>/items/<item_id>/unavailable', methods=['POST'])
def mark_item_unavailable(pick_list_id, item_id):
    try:
        result = get_service(PickingService).mark_unavailable(pick_list_id, item_id, json_body().get('notes'))
        return jsonify({'success': True, **result})
    except Exception as e:
        return error_response(e, f"Error marking item {item_id} unavailable")


@warehouse_bp.route('/api/pick-lists/<pick_list_id>/cancel', methods=['POST'])
def cancel_pick_list(pick_list_id):
    try:
        return jsonify({'success': True, 'pick_list': get_service(PickingService).cancel_pick_list(pick_list_id)})
    except Exception as e:
        return error_response(e, f"Error cancelling picking list {pick_list_id}")
