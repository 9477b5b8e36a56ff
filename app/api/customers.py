"""
Customers Routes Blueprint
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, error_response, get_service, json_body
from services.customers import CustomerService

logger = logging.getLogger(__name__)

customers_bp = Blueprint('customers_bp', __name__)


@customers_bp.route('/api/customers', methods=['GET', 'POST'])
def handle_customers():
    """List or create customers"""
    try:
        service = get_service(CustomerService)
        if request.method == 'GET':
            customers = service.list_customers(
                search=request.args.get('search'),
                include_inactive=arg_bool('include_inactive'),
            )
            return jsonify({'success': True, 'customers': customers, 'count': len(customers)})

        customer = service.create_customer(json_body())
        return jsonify({'success': True, 'customer': customer}), 201
    except Exception as e:
        return error_response(e, "Error handling customers")


@customers_bp.route('/api/customers/<customer_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_customer(customer_id):
    """Get, update or deactivate a customer"""
    try:
        service = get_service(CustomerService)
        if request.method == 'GET':
            return jsonify({'success': True, 'customer': service.get_customer(customer_id)})
        if request.method == 'PUT':
            return jsonify({'success': True, 'customer': service.update_customer(customer_id, json_body())})
        return jsonify({'success': True, 'customer': service.deactivate_customer(customer_id)})
    except Exception as e:
        return error_response(e, f"Error handling customer {customer_id}")


@customers_bp.route('/api/customers/emails', methods=['POST'])
def send_customer_emails():
    """Bulk email active customers"""
    try:
        data = json_body()
        result = get_service(CustomerService).send_emails(
            data.get('subject'), data.get('message'), data.get('customer_ids')
        )
        return jsonify({**result, 'success': True})
    except Exception as e:
        return error_response(e, "Error sending customer emails")
