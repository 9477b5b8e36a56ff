"""
Leads Routes Blueprint

Lead list, kanban board, moves between columns and the configurator sync.
"""

import logging

from flask import Blueprint, jsonify, request

from app.utils.helpers import arg_bool, arg_int, error_response, get_service, json_body
from services.leads import LeadService

logger = logging.getLogger(__name__)

leads_bp = Blueprint('leads_bp', __name__)


@leads_bp.route('/api/leads', methods=['GET', 'POST'])
def handle_leads():
    """Paginated lead list, or create a lead (and its customer)"""
    try:
        service = get_service(LeadService)
        if request.method == 'GET':
            if request.args.get('lead'):
                return jsonify({'success': True, 'lead': service.get_lead(request.args['lead'])})
            result = service.list_leads(
                pipeline=request.args.get('pipeline', 'all'),
                show_archived=arg_bool('show_archived'),
                search=request.args.get('search'),
                sort_by=request.args.get('sort_by'),
                country=request.args.get('country'),
                status=request.args.get('status'),
                page=arg_int('page', 1),
                page_size=arg_int('page_size'),
            )
            return jsonify({'success': True, **result})

        result = service.create_lead(json_body())
        return jsonify({'success': True, **result}), 201
    except Exception as e:
        return error_response(e, "Error handling leads")


@leads_bp.route('/api/leads/board', methods=['GET'])
def get_lead_board():
    """Leads grouped by board column"""
    try:
        board = get_service(LeadService).board_view(
            pipeline=request.args.get('pipeline', 'all'),
            search=request.args.get('search'),
            sort_by=request.args.get('sort_by'),
        )
        return jsonify({'success': True, 'columns': board})
    except Exception as e:
        return error_response(e, "Error loading lead board")


@leads_bp.route('/api/leads/stats', methods=['GET'])
def get_lead_stats():
    try:
        stats = get_service(LeadService).stats(pipeline=request.args.get('pipeline', 'all'))
        return jsonify({'success': True, 'stats': stats})
    except Exception as e:
        return error_response(e, "Error loading lead stats")


@leads_bp.route('/api/leads/<lead_id>', methods=['GET', 'PUT', 'DELETE'])
def handle_lead(lead_id):
    """Get, update or delete a lead"""
    try:
        service = get_service(LeadService)
        if request.method == 'GET':
            return jsonify({'success': True, 'lead': service.get_lead(lead_id)})
        if request.method == 'PUT':
            return jsonify({'success': True, 'lead': service.update_lead(lead_id, json_body())})
        return jsonify({'success': True, 'lead': service.delete_lead(lead_id)})
    except Exception as e:
        return error_response(e, f"Error handling lead {lead_id}")


@leads_bp.route('/api/leads/<lead_id>/archive', methods=['POST'])
def archive_lead(lead_id):
    try:
        archived = json_body().get('archived', True)
        return jsonify({'success': True, 'lead': get_service(LeadService).archive_lead(lead_id, archived)})
    except Exception as e:
        return error_response(e, f"Error archiving lead {lead_id}")


@leads_bp.route('/api/leads/<lead_id>/move', methods=['POST'])
def move_lead(lead_id):
    """Drop a lead card on a column; no write when it is already there"""
    try:
        data = json_body()
        lead = get_service(LeadService).move_lead(lead_id, data.get('column'), current=data.get('current'))
        return jsonify({'success': True, 'moved': lead is not None, 'lead': lead})
    except Exception as e:
        return error_response(e, f"Error moving lead {lead_id}")


@leads_bp.route('/api/leads/<lead_id>/sync', methods=['POST'])
def sync_lead(lead_id):
    try:
        result = get_service(LeadService).sync_lead(lead_id)
        return jsonify({**result, 'success': True})
    except Exception as e:
        return error_response(e, f"Error syncing lead {lead_id}")


@leads_bp.route('/api/leads/sync-all', methods=['POST'])
def sync_all_leads():
    try:
        result = get_service(LeadService).sync_all()
        return jsonify({**result, 'success': True})
    except Exception as e:
        return error_response(e, "Error syncing leads")
