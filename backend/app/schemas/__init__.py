"""
Schemas Pydantic per il progetto Garage Documents

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
delle richieste e la serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from app.schemas import QuotationRead, InvoiceStatus, etc.

from app.schemas.common import DataResponse, ListResponse, VersionedRequest
from app.schemas.customer import CustomerCreate, CustomerRead
from app.schemas.vehicle import VehicleCreate, VehicleRead
from app.schemas.catalog import ProductCreate, ProductRead, ServiceItemCreate, ServiceItemRead
from app.schemas.line_item import (
    ItemType,
    LineItemAdd,
    LineItemCreate,
    LineItemRead,
    LineItemUpdate,
)
from app.schemas.quotation import (
    ConversionReadiness,
    ConversionResult,
    QuotationCreate,
    QuotationMetrics,
    QuotationRead,
    QuotationReject,
    QuotationStatus,
    QuotationUpdate,
)
from app.schemas.work_order import (
    InvoiceFromWorkOrder,
    InvoiceLineSource,
    ServiceLineCreate,
    ServiceLineRead,
    WorkOrderCreate,
    WorkOrderMetrics,
    WorkOrderRead,
    WorkOrderStatus,
    WorkOrderStatusUpdate,
    WorkOrderUpdate,
)
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceMetrics,
    InvoicePayment,
    InvoiceRead,
    InvoiceStatus,
    InvoiceUpdate,
    LineSource,
    PaymentMethod,
    ReconciliationResult,
)

__all__ = [
    # Common
    "DataResponse",
    "ListResponse",
    "VersionedRequest",
    # Customer / Vehicle
    "CustomerCreate",
    "CustomerRead",
    "VehicleCreate",
    "VehicleRead",
    # Catalog
    "ServiceItemCreate",
    "ServiceItemRead",
    "ProductCreate",
    "ProductRead",
    # Line items
    "ItemType",
    "LineItemAdd",
    "LineItemCreate",
    "LineItemRead",
    "LineItemUpdate",
    # Quotation
    "ConversionReadiness",
    "ConversionResult",
    "QuotationCreate",
    "QuotationMetrics",
    "QuotationRead",
    "QuotationReject",
    "QuotationStatus",
    "QuotationUpdate",
    # WorkOrder
    "InvoiceFromWorkOrder",
    "InvoiceLineSource",
    "ServiceLineCreate",
    "ServiceLineRead",
    "WorkOrderCreate",
    "WorkOrderMetrics",
    "WorkOrderRead",
    "WorkOrderStatus",
    "WorkOrderStatusUpdate",
    "WorkOrderUpdate",
    # Invoice
    "InvoiceCreate",
    "InvoiceMetrics",
    "InvoicePayment",
    "InvoiceRead",
    "InvoiceStatus",
    "InvoiceUpdate",
    "LineSource",
    "PaymentMethod",
    "ReconciliationResult",
]
