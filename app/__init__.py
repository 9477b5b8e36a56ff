"""
Operations Console - Application Package

This package contains the HTTP layer:
- api/: HTTP route handlers (Flask Blueprints), one per page
- utils/: Request helpers shared by the blueprints

Business logic lives in the top-level services package; the app factory
is in app_init.py at the project root.
"""

import logging

logger = logging.getLogger(__name__)

# Import blueprints
from app.api.customers import customers_bp
from app.api.leads import leads_bp
from app.api.offers import offers_bp
from app.api.orders import orders_bp
from app.api.work_orders import work_orders_bp
from app.api.warehouse import warehouse_bp
from app.api.procurement import procurement_bp
from app.api.quality import quality_bp
from app.api.partners import partners_bp
from app.api.dashboard import dashboard_bp
from app.api.files import files_bp

BLUEPRINTS = (
    customers_bp,
    leads_bp,
    offers_bp,
    orders_bp,
    work_orders_bp,
    warehouse_bp,
    procurement_bp,
    quality_bp,
    partners_bp,
    dashboard_bp,
    files_bp,
)


def register_blueprints(app):
    """
    Register all API blueprints with the Flask app.
    Called from create_app after the services are injected.

    Args:
        app: Flask application instance
    """
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
    logger.info(f"Registered {len(BLUEPRINTS)} blueprints")


__all__ = ['register_blueprints', 'BLUEPRINTS', 'customers_bp', 'leads_bp', 'offers_bp', 'orders_bp',
           'work_orders_bp', 'warehouse_bp', 'procurement_bp', 'quality_bp', 'partners_bp', 'dashboard_bp',
           'files_bp']
