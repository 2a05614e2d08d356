"""
Database models package initialization.

Models are imported here so they are registered with the Base metadata and
can be looked up by table name.
"""

from orderflow.database.base import (
    Base,
    BaseModel,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDMixin,
    create_table_args,
)
from orderflow.database.models.audit import (
    AuditLog,
    ClientAdminNote,
    OrderAccessory,
    OrderBackupNumber,
    OrderMargin,
    WorkflowLog,
)
from orderflow.database.models.invoice import Invoice, InvoiceItem
from orderflow.database.models.notification import (
    EmailHistory,
    ManufacturerNotification,
    ManufacturerView,
    Notification,
)
from orderflow.database.models.order import Order, OrderItem, OrderMedia, OrderProduct
from orderflow.database.models.party import Client, Manufacturer

__all__ = [
    "Base",
    "BaseModel",
    "SoftDeleteMixin",
    "TimestampMixin",
    "UUIDMixin",
    "create_table_args",
    "AuditLog",
    "Client",
    "ClientAdminNote",
    "EmailHistory",
    "Invoice",
    "InvoiceItem",
    "Manufacturer",
    "ManufacturerNotification",
    "ManufacturerView",
    "Notification",
    "Order",
    "OrderAccessory",
    "OrderBackupNumber",
    "OrderItem",
    "OrderMargin",
    "OrderMedia",
    "OrderProduct",
    "WorkflowLog",
]
