"""
Schemas Pydantic per le Fatture
Progetto: Garage Documents (Documenti Commerciali Officina)

Definisce stati, matrice delle transizioni e schemi di validazione
e serializzazione per l'API delle fatture.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.common import VersionedRequest
from app.schemas.line_item import LineItemCreate, LineItemRead


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class InvoiceStatus(str, Enum):
    """Stati della fattura."""
    DRAFT = "draft"
    SENT = "sent"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Metodi di pagamento accettati."""
    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"
    CHECK = "check"


class LineSource(str, Enum):
    """Origine delle righe registrata sulla fattura."""
    MANUAL = "manual"
    SERVICE_LINES = "service_lines"
    ORDER_ITEMS = "order_items"


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# OVERDUE è assegnato solo dalla riconciliazione periodica (sent con due_date passata).
VALID_TRANSITIONS: dict[InvoiceStatus, list[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: [InvoiceStatus.SENT, InvoiceStatus.CANCELLED],
    InvoiceStatus.SENT: [InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED],
    InvoiceStatus.OVERDUE: [InvoiceStatus.PAID, InvoiceStatus.CANCELLED],
    InvoiceStatus.PAID: [],       # Stato finale, immutabile
    InvoiceStatus.CANCELLED: [],  # Stato finale, immutabile
}

# Campi di testata modificabili
EDITABLE_STATUSES: list[InvoiceStatus] = [
    InvoiceStatus.DRAFT,
    InvoiceStatus.SENT,
    InvoiceStatus.OVERDUE,
]

# Righe modificabili solo in bozza
LINE_EDITABLE_STATUSES: list[InvoiceStatus] = [InvoiceStatus.DRAFT]

# Stati che concorrono al credito aperto
UNPAID_STATUSES: list[InvoiceStatus] = [
    InvoiceStatus.DRAFT,
    InvoiceStatus.SENT,
    InvoiceStatus.OVERDUE,
]


# -------------------------------------------------------------------
# Schemas di input
# -------------------------------------------------------------------

class InvoiceCreate(BaseModel):
    """
    Schema per la creazione diretta di una fattura in bozza.

    Attributes:
        customer_id: Cliente intestatario
        vehicle_id: Veicolo del cliente (opzionale)
        issue_date: Data di emissione (default: oggi)
        due_date: Scadenza (default: emissione + giorni di pagamento configurati)
        items: Righe iniziali
    """
    customer_id: uuid.UUID
    vehicle_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=5000)
    notes: Optional[str] = Field(None, max_length=5000)
    issue_date: Optional[datetime.date] = None
    due_date: Optional[datetime.date] = None
    items: list[LineItemCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_dates(self) -> "InvoiceCreate":
        """La scadenza non può precedere l'emissione."""
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date non può precedere issue_date")
        return self


class InvoiceUpdate(VersionedRequest):
    """Modifica dei campi di testata (draft, sent, overdue)."""
    vehicle_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=5000)
    notes: Optional[str] = Field(None, max_length=5000)
    due_date: Optional[datetime.date] = None


class InvoicePayment(VersionedRequest):
    """
    Registrazione del pagamento (evento unico).

    Attributes:
        payment_method: Metodo di pagamento (obbligatorio)
        paid_date: Data del pagamento (default: oggi)
        reference: Riferimento del pagamento (opzionale)
        notes: Note (opzionali)
    """
    payment_method: PaymentMethod
    paid_date: Optional[datetime.date] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("reference")
    @classmethod
    def normalize_reference(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


# -------------------------------------------------------------------
# Schemas di lettura
# -------------------------------------------------------------------

class InvoiceRead(BaseModel):
    """Schema per la lettura di una fattura con righe e totali."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    number: str
    status: InvoiceStatus
    customer_id: uuid.UUID
    vehicle_id: Optional[uuid.UUID]
    work_order_id: Optional[uuid.UUID]
    line_source: LineSource
    description: Optional[str]
    notes: Optional[str]
    currency: str
    version: int
    issue_date: datetime.date
    due_date: datetime.date
    payment_method: Optional[PaymentMethod]
    paid_date: Optional[datetime.date]
    payment_reference: Optional[str]
    payment_notes: Optional[str]
    sent_at: Optional[datetime.datetime]
    cancelled_at: Optional[datetime.datetime]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    items: list[LineItemRead] = Field(default_factory=list)
    created_at: datetime.datetime
    updated_at: datetime.datetime


class InvoiceMetrics(BaseModel):
    """
    Riepilogo crediti.

    Attributes:
        total_unpaid / count_unpaid: Fatture draft, sent e overdue
        total_overdue / count_overdue: Fatture scadute
        total_paid / count_paid: Fatture pagate
    """
    total_unpaid: Decimal
    count_unpaid: int
    total_overdue: Decimal
    count_overdue: int
    total_paid: Decimal
    count_paid: int


class ReconciliationResult(BaseModel):
    """Esito della riconciliazione delle scadenze."""
    updated: int
