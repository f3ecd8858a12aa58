"""
Modelli Database SQLAlchemy
Progetto: Garage Documents (Documenti Commerciali Officina)

Import centralizzato di tutti i modelli per create_all e usage generico.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.customer import Customer
from app.models.vehicle import Vehicle
from app.models.catalog import Product, ServiceItem
from app.models.quotation import Quotation, QuotationItem
from app.models.work_order import WorkOrder, WorkOrderItem, WorkOrderServiceLine
from app.models.invoice import Invoice, InvoiceItem

__all__ = [
    "Base",
    "Customer",
    "Vehicle",
    "ServiceItem",
    "Product",
    "Quotation",
    "QuotationItem",
    "WorkOrder",
    "WorkOrderItem",
    "WorkOrderServiceLine",
    "Invoice",
    "InvoiceItem",
]
