"""
Status vocabulary and derived-status rules shared by the pages.

Work orders historically stored Italian / legacy status values; they are
normalized to the canonical board columns before display or counting.
A sales order's status is derived from the statuses of its linked
production, service and shipping orders.
"""

from typing import Dict, Iterable, List, Optional

# =============================================================================
# WORK ORDERS
# =============================================================================

WORK_ORDER_STATUSES = ['to_do', 'in_progress', 'testing', 'completed']
SERVICE_ORDER_STATUSES = ['to_do', 'in_progress', 'completed']

LEGACY_STATUS_MAP = {
    'planned': 'to_do',
    'completato': 'completed',
    'in_lavorazione': 'in_progress',
    'in_corso': 'in_progress',
}


def normalize_status(status: Optional[str]) -> Optional[str]:
    """Map a legacy work order status to its canonical value; anything else is returned as is."""
    return LEGACY_STATUS_MAP.get(status, status)


# =============================================================================
# SALES ORDERS
# =============================================================================

ORDER_TYPES = {
    'odl': 'Service work order',
    'odp': 'Production work order',
    'odpel': 'Production with installation',
    'ods': 'Shipping order',
}
ORDER_SOURCES = ['sale', 'warranty']

ORDER_COMMISSIONED = 'commissionato'
ORDER_IN_PROGRESS = 'in_lavorazione'
ORDER_COMPLETED = 'completato'
SALES_ORDER_STATUSES = [ORDER_COMMISSIONED, ORDER_IN_PROGRESS, ORDER_COMPLETED, 'annullato']

COMPLETED_WORK_STATUSES = {'completed', 'completata', 'completato', 'spedito', 'consegnato'}
IN_PROGRESS_WORK_STATUSES = {'in_progress', 'in_preparazione', 'pronto', 'stand_by', 'testing'}


def calculate_order_status(work_orders: Iterable[Dict] = (),
                           service_orders: Iterable[Dict] = (),
                           shipping_orders: Iterable[Dict] = ()) -> str:
    """
    Derive a sales order status from its linked orders.

    Args:
        work_orders: Production work order records
        service_orders: Service work order records
        shipping_orders: Shipping order records

    Returns:
        'completato' when every linked order is completed, 'in_lavorazione'
        when any is in progress or completed, otherwise 'commissionato'
    """
    statuses = [
        normalize_status(order.get('status'))
        for group in (work_orders, service_orders, shipping_orders)
        for order in group
    ]
    if not statuses:
        return ORDER_COMMISSIONED

    if all(status in COMPLETED_WORK_STATUSES for status in statuses):
        return ORDER_COMPLETED

    if any(status in COMPLETED_WORK_STATUSES or status in IN_PROGRESS_WORK_STATUSES for status in statuses):
        return ORDER_IN_PROGRESS

    return ORDER_COMMISSIONED


# =============================================================================
# CRM
# =============================================================================

LEAD_STATUSES = ['new', 'qualified', 'negotiation', 'won', 'lost']
LEAD_BOARD_COLUMNS = ['new', 'pre_qualified', 'qualified', 'negotiation', 'won', 'lost']
LEAD_PRIORITY_ORDER = {'hot': 0, 'mid': 1, 'low': 2}

OFFER_STATUSES = ['draft', 'sent', 'accepted', 'rejected']

# =============================================================================
# PROCUREMENT & QUALITY
# =============================================================================

PURCHASE_ORDER_STATUSES = ['draft', 'pending', 'confirmed', 'partial', 'delivered', 'cancelled', 'archived']
SERIAL_STATUSES = ['in_test', 'approved', 'rejected']
RMA_STATUSES = ['open', 'analysis', 'repaired', 'closed']


def serial_status_for_result(test_result: Optional[str]) -> str:
    """PASS approves, FAIL rejects, anything else keeps the serial in test."""
    result = (test_result or '').strip().upper()
    if result == 'PASS':
        return 'approved'
    if result == 'FAIL':
        return 'rejected'
    return 'in_test'


# =============================================================================
# WAREHOUSE
# =============================================================================

SHIPPING_STATUSES = ['da_preparare', 'in_preparazione', 'pronto', 'spedito', 'consegnato']
SHIPPING_STATUS_DATES = {
    'in_preparazione': 'preparation_date',
    'pronto': 'ready_date',
    'spedito': 'shipped_date',
    'consegnato': 'delivered_date',
}

MOVEMENT_TYPES = ['carico', 'scarico']
MOVEMENT_STATUSES = ['proposto', 'confermato', 'annullato', 'escluso']

PICK_LIST_STATUSES = ['pending', 'in_progress', 'completed', 'cancelled']
PICK_ITEM_STATUSES = ['pending', 'partial', 'picked', 'unavailable']
PICK_PRIORITIES = ['low', 'medium', 'high', 'urgent']

# =============================================================================
# PARTNERSHIPS & MARKETING
# =============================================================================

PARTNER_TYPES = ['importatore', 'rivenditore', 'installatore']
PARTNER_STATUSES = ['prospect', 'contatto', 'negoziazione', 'contratto', 'attivo']
CONTENT_STATUSES = ['da_fare', 'fatto', 'da_montare', 'pubblicato']


def status_counts(records: Iterable[Dict], statuses: List[str], key: str = 'status',
                  normalize: bool = False) -> Dict[str, int]:
    """Count records per status; every listed status appears, unknown values are counted too."""
    counts = {status: 0 for status in statuses}
    for record in records:
        value = record.get(key)
        if normalize:
            value = normalize_status(value)
        counts[value] = counts.get(value, 0) + 1
    return counts
