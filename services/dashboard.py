"""
Dashboard - aggregate counts for the home page cards.
"""

import logging
from typing import Dict

from services.base import PageService
from services.status import LEAD_STATUSES, ORDER_COMMISSIONED, ORDER_IN_PROGRESS, WORK_ORDER_STATUSES, status_counts

logger = logging.getLogger(__name__)


class DashboardService(PageService):
    """Read-only summary across the pages."""

    def summary(self) -> Dict:
        data_access = self.data_access

        leads = data_access.select('leads', {'archived': False})
        work_orders = data_access.select('work_orders', {'archived': False})
        open_work_orders = status_counts(work_orders, WORK_ORDER_STATUSES, normalize=True)
        open_work_orders.pop('completed', None)

        return {
            'leads': status_counts(leads, LEAD_STATUSES),
            'sales_orders': {
                ORDER_COMMISSIONED: data_access.count('sales_orders', {'status': ORDER_COMMISSIONED,
                                                                        'archived': False}),
                ORDER_IN_PROGRESS: data_access.count('sales_orders', {'status': ORDER_IN_PROGRESS,
                                                                       'archived': False}),
            },
            'work_orders': open_work_orders,
            'open_rma': data_access.count('rma', {'status': ['open', 'analysis', 'repaired']}),
            'serials_in_test': data_access.count('serials', {'status': 'in_test'}),
            'pending_purchase_orders': data_access.count('purchase_orders', {'status': ['draft', 'pending']}),
            'pending_pick_lists': data_access.count('pick_lists', {'status': 'pending'}),
            'recent_activity': self.activity.recent(hours=24, limit=10),
        }
