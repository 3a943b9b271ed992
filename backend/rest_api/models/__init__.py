"""
SQLAlchemy ORM Models Package.

Models are organized into domain-specific modules:
- base: Base class and AuditMixin
- tenant: Tenant
- billing: Plan, Subscription, Invoice, ResourceUsage
- table: RestaurantArea, Table, TableOccupancyRecord
- qr: QRCode
- user: User
- catalog: MenuItem
- order: Order
"""

from .base import Base, AuditMixin
from .tenant import Tenant
from .billing import Plan, Subscription, Invoice, ResourceUsage
from .qr import QRCode
from .table import RestaurantArea, Table, TableOccupancyRecord
from .user import User
from .catalog import MenuItem
from .order import Order

__all__ = [
    "Base",
    "AuditMixin",
    "Tenant",
    "Plan",
    "Subscription",
    "Invoice",
    "ResourceUsage",
    "QRCode",
    "RestaurantArea",
    "Table",
    "TableOccupancyRecord",
    "User",
    "MenuItem",
    "Order",
]
