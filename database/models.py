"""
SQLAlchemy models for the Operations Console.
Mirrors the tables of the hosted store: CRM, sales orders, production,
procurement, warehouse, partnerships and marketing.

Store-side behaviour lives here too: ids, timestamps and the automatic
document numbers / customer codes that the store assigns on insert.
"""

import uuid
from datetime import datetime, date
from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, Date,
    ForeignKey, JSON, Index, event, func, select
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from database.connection import Base

JSONType = JSON().with_variant(JSONB(), 'postgresql')


def generate_uuid():
    """Generate a new UUID."""
    return str(uuid.uuid4())


class RecordMixin:
    """Flat dict serialization shared by every table."""

    # Column that receives an automatic number, its prefix and whether the year is embedded
    __number_column__ = None
    __number_prefix__ = None
    __number_yearly__ = True
    __number_width__ = 4

    def to_dict(self):
        data = {}
        for column in self.__table__.columns:
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[column.key] = value
        return data

    def __repr__(self):
        return f"<{type(self).__name__} {getattr(self, 'id', None)}>"


# =============================================================================
# CRM - CUSTOMERS & LEADS
# =============================================================================

class Customer(RecordMixin, Base):
    """Customer records; the code is assigned by the store."""
    __tablename__ = 'customers'
    __number_column__ = 'code'
    __number_prefix__ = 'CL'
    __number_yearly__ = False

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True)
    name = Column(String(255), nullable=False)
    company_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    city = Column(String(100))
    country = Column(String(100))
    tax_id = Column(String(50))
    notes = Column(Text)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    leads = relationship("Lead", back_populates="customer")
    sales_orders = relationship("SalesOrder", back_populates="customer")

    __table_args__ = (
        Index('ix_customers_name', 'name'),
        Index('ix_customers_email', 'email'),
    )


class Lead(RecordMixin, Base):
    """Sales leads shown on the CRM kanban board."""
    __tablename__ = 'leads'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    company_name = Column(String(255))
    contact_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))
    value = Column(Float, default=0)
    source = Column(String(100))
    status = Column(String(50), default='new')  # new, qualified, negotiation, won, lost
    pipeline = Column(String(100))
    country = Column(String(100))
    city = Column(String(100))
    priority = Column(String(20), default='mid')  # hot, mid, low
    pre_qualified = Column(Boolean, default=False)
    archived = Column(Boolean, default=False)
    notes = Column(Text)
    assigned_to = Column(String(255))
    next_activity_type = Column(String(50))
    next_activity_date = Column(DateTime)
    next_activity_notes = Column(Text)
    customer_id = Column(String(36), ForeignKey('customers.id'))
    external_configurator_link = Column(Text)
    custom_fields = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="leads")
    offers = relationship("Offer", back_populates="lead")
    call_records = relationship("CallRecord", back_populates="lead")

    __table_args__ = (
        Index('ix_leads_pipeline', 'pipeline'),
        Index('ix_leads_status', 'status'),
    )


class CallRecord(RecordMixin, Base):
    """Phone call records, optionally linked to a lead."""
    __tablename__ = 'call_records'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    lead_id = Column(String(36), ForeignKey('leads.id'))
    phone = Column(String(50))
    direction = Column(String(20))  # inbound, outbound
    duration_seconds = Column(Integer, default=0)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    lead = relationship("Lead", back_populates="call_records")


class Offer(RecordMixin, Base):
    """Commercial offers sent to leads or customers."""
    __tablename__ = 'offers'
    __number_column__ = 'number'
    __number_prefix__ = 'OFF'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True)
    code = Column(String(50), unique=True)
    lead_id = Column(String(36), ForeignKey('leads.id'))
    customer_id = Column(String(36), ForeignKey('customers.id'))
    title = Column(String(255))
    amount = Column(Float, default=0)
    status = Column(String(50), default='draft')  # draft, sent, accepted, rejected
    template = Column(String(50), default='zapper')
    valid_until = Column(Date)
    notes = Column(Text)
    archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    lead = relationship("Lead", back_populates="offers")
    customer = relationship("Customer")


# =============================================================================
# SALES ORDERS & WORK ORDERS
# =============================================================================

class Bom(RecordMixin, Base):
    """Bills of material referenced by production work orders."""
    __tablename__ = 'boms'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    version = Column(String(20), default='1')
    level = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)


class SalesOrder(RecordMixin, Base):
    """Customer sales orders; the order type drives the dependent work orders."""
    __tablename__ = 'sales_orders'
    __number_column__ = 'number'
    __number_prefix__ = 'SO'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True)
    customer_id = Column(String(36), ForeignKey('customers.id'))
    lead_id = Column(String(36), ForeignKey('leads.id'))
    order_date = Column(Date)
    delivery_date = Column(Date)
    status = Column(String(50), default='commissionato')
    order_type = Column(String(10))  # odl, odp, odpel, ods
    order_source = Column(String(20), default='sale')  # sale, warranty
    notes = Column(Text)
    archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer", back_populates="sales_orders")
    lead = relationship("Lead")
    work_orders = relationship("WorkOrder", back_populates="sales_order")
    service_work_orders = relationship("ServiceWorkOrder", back_populates="sales_order")
    shipping_orders = relationship("ShippingOrder", back_populates="sales_order")

    __table_args__ = (
        Index('ix_sales_orders_customer', 'customer_id'),
        Index('ix_sales_orders_status', 'status'),
    )


class WorkOrder(RecordMixin, Base):
    """Production work orders."""
    __tablename__ = 'work_orders'
    __number_column__ = 'number'
    __number_prefix__ = 'WO'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True)
    title = Column(String(255))
    description = Column(Text)
    status = Column(String(50), default='to_do')
    sales_order_id = Column(String(36), ForeignKey('sales_orders.id'))
    customer_id = Column(String(36), ForeignKey('customers.id'))
    bom_id = Column(String(36), ForeignKey('boms.id'))
    assigned_to = Column(String(255))
    priority = Column(String(20), default='medium')
    planned_start_date = Column(Date)
    planned_end_date = Column(Date)
    notes = Column(Text)
    includes_installation = Column(Boolean, default=False)
    archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_order = relationship("SalesOrder", back_populates="work_orders")
    customer = relationship("Customer")
    bom = relationship("Bom")
    serials = relationship("Serial", back_populates="work_order")

    __table_args__ = (
        Index('ix_work_orders_sales_order', 'sales_order_id'),
    )


class ServiceWorkOrder(RecordMixin, Base):
    """Service / installation work orders."""
    __tablename__ = 'service_work_orders'
    __number_column__ = 'number'
    __number_prefix__ = 'SWO'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True)
    title = Column(String(255))
    description = Column(Text)
    status = Column(String(50), default='to_do')
    sales_order_id = Column(String(36), ForeignKey('sales_orders.id'))
    customer_id = Column(String(36), ForeignKey('customers.id'))
    production_work_order_id = Column(String(36), ForeignKey('work_orders.id'))
    assigned_to = Column(String(255))
    priority = Column(String(20), default='medium')
    scheduled_date = Column(DateTime)
    location = Column(Text)
    equipment_needed = Column(Text)
    notes = Column(Text)
    archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_order = relationship("SalesOrder", back_populates="service_work_orders")
    customer = relationship("Customer")
    production_work_order = relationship("WorkOrder")

    __table_args__ = (
        Index('ix_service_work_orders_sales_order', 'sales_order_id'),
    )


class ShippingOrder(RecordMixin, Base):
    """Shipping orders prepared by the warehouse."""
    __tablename__ = 'shipping_orders'
    __number_column__ = 'number'
    __number_prefix__ = 'SHP'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True)
    sales_order_id = Column(String(36), ForeignKey('sales_orders.id'))
    customer_id = Column(String(36), ForeignKey('customers.id'))
    status = Column(String(50), default='da_preparare')
    order_date = Column(Date, default=date.today)
    preparation_date = Column(DateTime)
    ready_date = Column(DateTime)
    shipped_date = Column(DateTime)
    delivered_date = Column(DateTime)
    payment_on_delivery = Column(Boolean, default=False)
    payment_amount = Column(Float)
    shipping_address = Column(Text)
    notes = Column(Text)
    archived = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales_order = relationship("SalesOrder", back_populates="shipping_orders")
    customer = relationship("Customer")
    items = relationship("ShippingOrderItem", back_populates="shipping_order")


class ShippingOrderItem(RecordMixin, Base):
    """Line items of a shipping order."""
    __tablename__ = 'shipping_order_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    shipping_order_id = Column(String(36), ForeignKey('shipping_orders.id'), nullable=False)
    material_id = Column(String(36), ForeignKey('materials.id'))
    quantity = Column(Float, default=1)
    unit_price = Column(Float, default=0)
    total_price = Column(Float, default=0)
    notes = Column(Text)

    shipping_order = relationship("ShippingOrder", back_populates="items")
    material = relationship("Material")


# =============================================================================
# PROCUREMENT
# =============================================================================

class Supplier(RecordMixin, Base):
    """Suppliers of materials."""
    __tablename__ = 'suppliers'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class PurchaseOrder(RecordMixin, Base):
    """Purchase orders issued to suppliers."""
    __tablename__ = 'purchase_orders'
    __number_column__ = 'number'
    __number_prefix__ = 'PO'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    number = Column(String(50), unique=True)
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    order_date = Column(Date, default=date.today)
    expected_delivery_date = Column(Date)
    status = Column(String(50), default='draft')  # draft, pending, confirmed, partial, delivered, cancelled, archived
    total_amount = Column(Float, default=0)
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier = relationship("Supplier")
    items = relationship("PurchaseOrderItem", back_populates="purchase_order")
    confirmations = relationship("PurchaseOrderConfirmation", back_populates="purchase_order")


class PurchaseOrderItem(RecordMixin, Base):
    """Line items of a purchase order."""
    __tablename__ = 'purchase_order_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    purchase_order_id = Column(String(36), ForeignKey('purchase_orders.id'), nullable=False)
    material_id = Column(String(36), ForeignKey('materials.id'))
    material_name = Column(String(255))
    quantity = Column(Float, default=1)
    unit_price = Column(Float, default=0)
    total_price = Column(Float, default=0)

    purchase_order = relationship("PurchaseOrder", back_populates="items")


class PurchaseOrderConfirmation(RecordMixin, Base):
    """Supplier confirmations of a purchase order."""
    __tablename__ = 'purchase_order_confirmations'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    purchase_order_id = Column(String(36), ForeignKey('purchase_orders.id'), nullable=False)
    confirmed_by = Column(String(255))
    confirmed_at = Column(DateTime, default=datetime.utcnow)
    notes = Column(Text)

    purchase_order = relationship("PurchaseOrder", back_populates="confirmations")


# =============================================================================
# PRODUCTION QUALITY
# =============================================================================

class Serial(RecordMixin, Base):
    """Serial numbers produced by work orders and their test outcome."""
    __tablename__ = 'serials'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    serial_number = Column(String(100), unique=True, nullable=False)
    work_order_id = Column(String(36), ForeignKey('work_orders.id'))
    status = Column(String(20), default='in_test')  # in_test, approved, rejected
    test_result = Column(String(20))
    test_notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    work_order = relationship("WorkOrder", back_populates="serials")


class Rma(RecordMixin, Base):
    """Return merchandise authorizations."""
    __tablename__ = 'rma'
    __number_column__ = 'rma_number'
    __number_prefix__ = 'RMA'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    rma_number = Column(String(50), unique=True)
    customer_id = Column(String(36), ForeignKey('customers.id'))
    serial_id = Column(String(36), ForeignKey('serials.id'))
    description = Column(Text, nullable=False)
    status = Column(String(20), default='open')  # open, analysis, repaired, closed
    assigned_to = Column(String(255))
    resolution_notes = Column(Text)
    opened_date = Column(Date, default=date.today)
    closed_date = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer")
    serial = relationship("Serial")


# =============================================================================
# WAREHOUSE
# =============================================================================

class Material(RecordMixin, Base):
    """Stocked materials; the code is assigned by the store."""
    __tablename__ = 'materials'
    __number_column__ = 'code'
    __number_prefix__ = 'MAT'
    __number_yearly__ = False

    id = Column(String(36), primary_key=True, default=generate_uuid)
    code = Column(String(50), unique=True)
    name = Column(String(255), nullable=False)
    material_type = Column(String(50), default='component')
    unit = Column(String(20), default='pcs')
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    current_stock = Column(Float, default=0)
    cost = Column(Float, default=0)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StockMovement(RecordMixin, Base):
    """Proposed and confirmed stock movements (loads / unloads)."""
    __tablename__ = 'stock_movements'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    movement_date = Column(Date, default=date.today)
    movement_type = Column(String(20), nullable=False)  # carico, scarico
    origin_type = Column(String(50), default='manuale')
    item_description = Column(Text, nullable=False)
    quantity = Column(Float, default=0)
    unit = Column(String(20), default='pcs')
    warehouse = Column(String(100), default='principale')
    status = Column(String(20), default='proposto')  # proposto, confermato, annullato, escluso
    customer_id = Column(String(36), ForeignKey('customers.id'))
    supplier_id = Column(String(36), ForeignKey('suppliers.id'))
    work_order_id = Column(String(36), ForeignKey('work_orders.id'))
    material_id = Column(String(36), ForeignKey('materials.id'))
    confirmed_at = Column(DateTime)
    confirmed_by = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)

    customer = relationship("Customer")
    supplier = relationship("Supplier")
    work_order = relationship("WorkOrder")
    material = relationship("Material")


class PickList(RecordMixin, Base):
    """Warehouse picking lists."""
    __tablename__ = 'pick_lists'
    __number_column__ = 'pick_list_number'
    __number_prefix__ = 'PL'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pick_list_number = Column(String(50), unique=True)
    order_reference = Column(String(100))
    customer_name = Column(String(255))
    priority = Column(String(20), default='medium')  # low, medium, high, urgent
    status = Column(String(20), default='pending')  # pending, in_progress, completed, cancelled
    assigned_to = Column(String(255))
    created_date = Column(Date, default=date.today)
    due_date = Column(Date)
    completed_date = Column(DateTime)
    total_items = Column(Integer, default=0)
    picked_items = Column(Integer, default=0)
    progress = Column(Integer, default=0)
    notes = Column(Text)

    items = relationship("PickListItem", back_populates="pick_list")


class PickListItem(RecordMixin, Base):
    """Single line of a picking list."""
    __tablename__ = 'pick_list_items'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    pick_list_id = Column(String(36), ForeignKey('pick_lists.id'), nullable=False)
    item_code = Column(String(100))
    item_name = Column(String(255))
    location = Column(String(100))
    quantity_requested = Column(Float, default=0)
    quantity_picked = Column(Float, default=0)
    unit = Column(String(20), default='pcs')
    status = Column(String(20), default='pending')  # pending, partial, picked, unavailable
    notes = Column(Text)
    picked_by = Column(String(255))
    picked_at = Column(DateTime)

    pick_list = relationship("PickList", back_populates="items")


# =============================================================================
# PARTNERSHIPS & MARKETING
# =============================================================================

class Partner(RecordMixin, Base):
    """Importers, resellers and installers."""
    __tablename__ = 'partners'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    first_name = Column(String(100))
    last_name = Column(String(100))
    company_name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    country = Column(String(100))
    region = Column(String(100))
    partner_type = Column(String(50), nullable=False)  # importatore, rivenditore, installatore
    acquisition_status = Column(String(50), default='prospect')
    acquisition_notes = Column(Text)
    priority = Column(String(20), default='medium')
    latitude = Column(Float)
    longitude = Column(Float)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index('ix_partners_type', 'partner_type'),
    )


class MarketingContent(RecordMixin, Base):
    """Marketing content items tracked on the content board."""
    __tablename__ = 'marketing_content'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    content_type = Column(String(50), default='post')
    status = Column(String(20), default='da_fare')  # da_fare, fatto, da_montare, pubblicato
    platform = Column(String(50))
    priority = Column(String(20), default='medium')
    assigned_to = Column(String(255))
    due_date = Column(Date)
    published_date = Column(Date)
    content_url = Column(Text)
    notes = Column(Text)
    tags = Column(JSONType, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# ACTIVITY LOG
# =============================================================================

class ActivityLog(RecordMixin, Base):
    """Audit trail of what happened to each record."""
    __tablename__ = 'activity_logs'

    id = Column(String(36), primary_key=True, default=generate_uuid)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(36))
    event_type = Column(String(50), nullable=False)
    description = Column(Text)
    details = Column(JSONType, default=dict)

    __table_args__ = (
        Index('ix_activity_logs_entity', 'entity_type', 'entity_id'),
    )


# =============================================================================
# TABLE REGISTRY
# =============================================================================

TABLES = {
    model.__tablename__: model
    for model in (
        Customer, Lead, CallRecord, Offer, Bom, SalesOrder, WorkOrder,
        ServiceWorkOrder, ShippingOrder, ShippingOrderItem, Supplier,
        PurchaseOrder, PurchaseOrderItem, PurchaseOrderConfirmation,
        Serial, Rma, Material, StockMovement, PickList, PickListItem,
        Partner, MarketingContent, ActivityLog,
    )
}


# =============================================================================
# STORE-SIDE NUMBERING
# =============================================================================

def _next_number(connection, model, prefix):
    """Return the next free number for the prefix, e.g. SO-2025-0007."""
    column = model.__table__.c[model.__number_column__]
    last = connection.execute(
        select(column)
        .where(column.like(f'{prefix}%'))
        .order_by(func.length(column).desc(), column.desc())
        .limit(1)
    ).scalar()

    sequence = 1
    if last:
        tail = last[len(prefix):]
        if tail.isdigit():
            sequence = int(tail) + 1

    # rows inserted in the same flush are not visible to the query yet
    issued = connection.info.setdefault('issued_numbers', {})
    key = (model.__tablename__, prefix)
    sequence = max(sequence, issued.get(key, 0) + 1)
    issued[key] = sequence
    return f'{prefix}{sequence:0{model.__number_width__}d}'


@event.listens_for(Base, 'before_insert', propagate=True)
def assign_document_number(mapper, connection, target):
    """Fill empty document numbers / codes the way the store's triggers do."""
    column_name = getattr(target, '__number_column__', None)
    if not column_name or getattr(target, column_name, None):
        return

    prefix = f'{target.__number_prefix__}-'
    if target.__number_yearly__:
        prefix = f'{prefix}{datetime.utcnow().year}-'
    setattr(target, column_name, _next_number(connection, type(target), prefix))
