"""
API Blueprints Package

All HTTP route handlers for the application, organized by page.
Each module defines a Flask Blueprint registered in app/__init__.py.

BLUEPRINT REFERENCE:
====================

CRM:
- customers.py   : Customers and bulk customer emails
- leads.py       : Leads list, kanban board, configurator sync
- offers.py      : Offers, PDF generation, sending

Orders & Production:
- orders.py      : Sales orders (cascade creation, archive, status sync)
- work_orders.py : Production and service work orders
- quality.py     : Serials and RMAs

Warehouse & Procurement:
- warehouse.py   : Shipping orders, stock movements, picking lists
- procurement.py : Purchase orders

Partners & Marketing:
- partners.py    : Importer / reseller / installer boards, content board

Other:
- dashboard.py   : Dashboard counts and activity history
- files.py       : Files attached to records

Every endpoint answers {'success': True, ...} or {'success': False, 'error': ...}.
"""

# All blueprints are imported and registered in app/__init__.py
# This file serves as documentation only

__all__ = []
