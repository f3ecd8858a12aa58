"""
Schemas Pydantic per gli Ordini di Lavoro
Progetto: Garage Documents (Documenti Commerciali Officina)

Definisce stati, sequenza della pipeline e schemi di validazione
e serializzazione per l'API degli ordini di lavoro.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.common import VersionedRequest
from app.schemas.line_item import LineItemCreate, LineItemRead, strip_description


# -------------------------------------------------------------------
# Enum per gli stati dell'ordine di lavoro
# -------------------------------------------------------------------

class WorkOrderStatus(str, Enum):
    """Stati dell'ordine di lavoro, dalla ricezione alla consegna."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DIAGNOSED = "diagnosed"
    APPROVED = "approved"
    IN_REPAIR = "in_repair"
    WAITING_PARTS = "waiting_parts"
    COMPLETED = "completed"
    DELIVERED = "delivered"


# -------------------------------------------------------------------
# Sequenza della pipeline
# -------------------------------------------------------------------

# Ordine usato da advance/revert. Il cambio diretto di stato (kanban) può
# saltare a qualunque stato; DELIVERED è l'unico stato terminale.
STATUS_SEQUENCE: list[WorkOrderStatus] = [
    WorkOrderStatus.PENDING,
    WorkOrderStatus.IN_PROGRESS,
    WorkOrderStatus.DIAGNOSED,
    WorkOrderStatus.APPROVED,
    WorkOrderStatus.IN_REPAIR,
    WorkOrderStatus.WAITING_PARTS,
    WorkOrderStatus.COMPLETED,
    WorkOrderStatus.DELIVERED,
]

TERMINAL_STATUSES: list[WorkOrderStatus] = [WorkOrderStatus.DELIVERED]

# Stati in cui le righe non sono più modificabili
LOCKED_STATUSES: list[WorkOrderStatus] = [
    WorkOrderStatus.COMPLETED,
    WorkOrderStatus.DELIVERED,
]


class InvoiceLineSource(str, Enum):
    """
    Strategia di generazione delle righe fattura da un ordine.

    AUTO sceglie una sola volta: service_lines se presenti, altrimenti order_items.
    """
    AUTO = "auto"
    SERVICE_LINES = "service_lines"
    ORDER_ITEMS = "order_items"


# -------------------------------------------------------------------
# Schemas per WorkOrderServiceLine
# -------------------------------------------------------------------

class ServiceLineCreate(VersionedRequest):
    """
    Nuova riga di servizio strutturata.

    Se `total` non è indicato vale quantity × unit_price; è l'importo netto
    concordato usato come riferimento in fatturazione.
    """
    service_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0, max_digits=10, decimal_places=2)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    total: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return strip_description(v)


class ServiceLineRead(BaseModel):
    """Riga di servizio dell'ordine di lavoro."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    position: int
    service_id: Optional[uuid.UUID]
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_percent: Decimal
    total: Decimal


# -------------------------------------------------------------------
# Schemas per WorkOrder
# -------------------------------------------------------------------

class WorkOrderCreate(BaseModel):
    """
    Schema per la creazione diretta di un ordine di lavoro (stato pending).

    Attributes:
        customer_id: Cliente intestatario
        vehicle_id: Veicolo del cliente (opzionale)
        description: Descrizione del problema/lavoro
        diagnosis: Diagnosi iniziale
        estimated_completion: Data prevista completamento
        notes: Note interne
        items: Righe iniziali (opzionale)
    """
    customer_id: uuid.UUID
    vehicle_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=5000)
    diagnosis: Optional[str] = Field(None, max_length=5000)
    estimated_completion: Optional[datetime.date] = None
    notes: Optional[str] = Field(None, max_length=5000)
    items: list[LineItemCreate] = Field(default_factory=list)


class WorkOrderUpdate(VersionedRequest):
    """
    Schema per l'aggiornamento dei campi di un ordine di lavoro.

    Lo stato NON può essere cambiato tramite questo schema
    (usare advance/revert o l'endpoint di cambio stato).
    """
    vehicle_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=5000)
    diagnosis: Optional[str] = Field(None, max_length=5000)
    estimated_completion: Optional[datetime.date] = None
    notes: Optional[str] = Field(None, max_length=5000)


class WorkOrderStatusUpdate(VersionedRequest):
    """Cambio diretto di stato (es. trascinamento su kanban)."""
    status: WorkOrderStatus = Field(..., description="Nuovo stato dell'ordine")


class InvoiceFromWorkOrder(VersionedRequest):
    """Richiesta di generazione fattura da ordine completato."""
    line_source: InvoiceLineSource = Field(
        InvoiceLineSource.AUTO,
        description="Origine delle righe: auto, service_lines, order_items",
    )
    issue_date: Optional[datetime.date] = None
    due_date: Optional[datetime.date] = None

    @model_validator(mode="after")
    def validate_dates(self) -> "InvoiceFromWorkOrder":
        """La scadenza non può precedere l'emissione."""
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise ValueError("due_date non può precedere issue_date")
        return self


class WorkOrderRead(BaseModel):
    """
    Schema per la lettura di un ordine di lavoro.

    Include righe generiche, righe di servizio e totali calcolati.
    """
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    number: str
    status: WorkOrderStatus
    customer_id: uuid.UUID
    vehicle_id: Optional[uuid.UUID]
    quotation_id: Optional[uuid.UUID]
    description: Optional[str]
    diagnosis: Optional[str]
    notes: Optional[str]
    currency: str
    version: int
    estimated_completion: Optional[datetime.date]
    completed_at: Optional[datetime.datetime]
    delivered_at: Optional[datetime.datetime]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    items: list[LineItemRead] = Field(default_factory=list)
    service_lines: list[ServiceLineRead] = Field(default_factory=list)
    created_at: datetime.datetime
    updated_at: datetime.datetime


class WorkOrderMetrics(BaseModel):
    """
    Statistiche aggregate degli ordini di lavoro.

    Attributes:
        counts: Numero di ordini per stato
        total: Numero complessivo di ordini
        total_revenue: Somma dei totali degli ordini completati e consegnati
    """
    counts: dict[WorkOrderStatus, int]
    total: int
    total_revenue: Decimal
