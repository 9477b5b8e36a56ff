"""
Dashboard and Activity Routes Blueprint

- /api/dashboard: Aggregate counts for the home page cards
- /api/activity/recent: Recent activity across records
- /api/activity/<entity_type>/<entity_id>: History of one record
"""

import logging

from flask import Blueprint, jsonify

from app.utils.helpers import arg_int, error_response, get_data_access, get_service
from services.dashboard import DashboardService
from services.event_logger import ActivityLogger

logger = logging.getLogger(__name__)

# Create blueprint
dashboard_bp = Blueprint('dashboard_bp', __name__)


@dashboard_bp.route('/api/dashboard', methods=['GET'])
def get_dashboard():
    """Counts shown on the dashboard cards"""
    try:
        return jsonify({'success': True, 'summary': get_service(DashboardService).summary()})
    except Exception as e:
        return error_response(e, "Error loading dashboard")


# ============================================================================
# ACTIVITY
# ============================================================================

@dashboard_bp.route('/api/activity/recent', methods=['GET'])
def get_recent_activity():
    """Get recent activity"""
    try:
        activity = ActivityLogger(get_data_access())
        hours = arg_int('hours', 24)
        return jsonify({
            'success': True,
            'events': activity.recent(hours=hours, limit=arg_int('limit', 100)),
            'summary': activity.summary(hours=hours),
        })
    except Exception as e:
        return error_response(e, "Error loading recent activity")


@dashboard_bp.route('/api/activity/<entity_type>/<entity_id>', methods=['GET'])
def get_entity_history(entity_type, entity_id):
    """Event history of one record, newest first"""
    try:
        events = ActivityLogger(get_data_access()).history(entity_type, entity_id, limit=arg_int('limit', 50))
        return jsonify({'success': True, 'events': events, 'count': len(events)})
    except Exception as e:
        return error_response(e, f"Error loading history of {entity_type}:{entity_id}")
