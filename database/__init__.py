"""
Database package for the Operations Console.
Provides SQLAlchemy models, connection management, and session handling.
"""

from database.connection import (
    Base,
    create_db_engine,
    create_session_factory,
    get_db_session,
    init_db,
    check_db_connection
)

from database.models import (
    TABLES,
    Customer,
    Lead,
    CallRecord,
    Offer,
    Bom,
    SalesOrder,
    WorkOrder,
    ServiceWorkOrder,
    ShippingOrder,
    ShippingOrderItem,
    Supplier,
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderConfirmation,
    Serial,
    Rma,
    Material,
    StockMovement,
    PickList,
    PickListItem,
    Partner,
    MarketingContent,
    ActivityLog
)

__all__ = [
    # Connection
    'Base',
    'create_db_engine',
    'create_session_factory',
    'get_db_session',
    'init_db',
    'check_db_connection',
    # Models
    'TABLES',
    'Customer',
    'Lead',
    'CallRecord',
    'Offer',
    'Bom',
    'SalesOrder',
    'WorkOrder',
    'ServiceWorkOrder',
    'ShippingOrder',
    'ShippingOrderItem',
    'Supplier',
    'PurchaseOrder',
    'PurchaseOrderItem',
    'PurchaseOrderConfirmation',
    'Serial',
    'Rma',
    'Material',
    'StockMovement',
    'PickList',
    'PickListItem',
    'Partner',
    'MarketingContent',
    'ActivityLog',
]
