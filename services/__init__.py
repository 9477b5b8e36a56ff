"""
Services package for the Operations Console.
Contains the data access layer, the change feed and one service per page.
"""

from services.errors import (
    ServiceError,
    DataAccessError,
    NotFoundError,
    FunctionInvocationError,
    StorageError,
)
from services.change_feed import ChangeFeed, ChangeEvent
from services.data_access import DataAccess, Filter
from services.storage import ObjectStorage
from services.functions import build_function_invoker
from services.event_logger import ActivityLogger
from services.customers import CustomerService
from services.leads import LeadService
from services.offers import OfferService
from services.orders import OrderService, sync_order_status
from services.work_orders import WorkOrderService, ServiceOrderService
from services.shipping import ShippingService
from services.movements import MovementService
from services.picking import PickingService
from services.procurement import PurchaseOrderService
from services.quality import SerialService, RmaService
from services.partners import PartnerService
from services.content import ContentService
from services.files import FileService
from services.dashboard import DashboardService

__all__ = [
    'ServiceError',
    'DataAccessError',
    'NotFoundError',
    'FunctionInvocationError',
    'StorageError',
    'ChangeFeed',
    'ChangeEvent',
    'DataAccess',
    'Filter',
    'ObjectStorage',
    'build_function_invoker',
    'ActivityLogger',
    'CustomerService',
    'LeadService',
    'OfferService',
    'OrderService',
    'sync_order_status',
    'WorkOrderService',
    'ServiceOrderService',
    'ShippingService',
    'MovementService',
    'PickingService',
    'PurchaseOrderService',
    'SerialService',
    'RmaService',
    'PartnerService',
    'ContentService',
    'FileService',
    'DashboardService',
]
