"""
Schemas Pydantic per i Preventivi
Progetto: Garage Documents (Documenti Commerciali Officina)

Definisce stati, matrice delle transizioni e schemi di validazione
e serializzazione per l'API dei preventivi.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from app.schemas.common import VersionedRequest
from app.schemas.line_item import LineItemCreate, LineItemRead


# -------------------------------------------------------------------
# Enum per gli stati del preventivo
# -------------------------------------------------------------------

class QuotationStatus(str, Enum):
    """
    Stati del preventivo.

    EXPIRED non viene mai salvato: è lo stato mostrato per un preventivo
    inviato la cui validità è trascorsa.
    """
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CONVERTED = "converted"
    CANCELLED = "cancelled"


STORED_QUOTATION_STATUSES = [s for s in QuotationStatus if s != QuotationStatus.EXPIRED]


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# La validazione avviene nel service layer (app.services.lifecycle).
# CONVERTED è raggiungibile solo tramite la conversione in ordine di lavoro.
VALID_TRANSITIONS: dict[QuotationStatus, list[QuotationStatus]] = {
    QuotationStatus.DRAFT: [QuotationStatus.SENT, QuotationStatus.CANCELLED],
    QuotationStatus.SENT: [
        QuotationStatus.APPROVED,
        QuotationStatus.REJECTED,
        QuotationStatus.CANCELLED,
    ],
    QuotationStatus.APPROVED: [QuotationStatus.CONVERTED, QuotationStatus.CANCELLED],
    QuotationStatus.REJECTED: [QuotationStatus.CANCELLED],
    QuotationStatus.EXPIRED: [],
    QuotationStatus.CONVERTED: [],  # Stato finale
    QuotationStatus.CANCELLED: [],  # Stato finale
}

# Righe e campi sono modificabili solo in bozza
EDITABLE_STATUSES: list[QuotationStatus] = [QuotationStatus.DRAFT]


# -------------------------------------------------------------------
# Funzioni standalone
# -------------------------------------------------------------------

def is_quotation_expired(
    status: str,
    valid_until: Optional[datetime.date],
    today: Optional[datetime.date] = None,
) -> bool:
    """
    Indica se un preventivo va presentato come scaduto.

    Solo un preventivo `sent` con `valid_until` già trascorso è scaduto;
    lo stato salvato non cambia.

    Args:
        status: Stato salvato del preventivo
        valid_until: Data di validità (None = nessuna scadenza)
        today: Data di riferimento (default: oggi)

    Returns:
        bool: True se il preventivo è scaduto
    """
    if status != QuotationStatus.SENT.value or valid_until is None:
        return False
    today = today or datetime.date.today()
    return valid_until < today


# -------------------------------------------------------------------
# Schemas di input
# -------------------------------------------------------------------

class QuotationCreate(BaseModel):
    """
    Schema per la creazione di un preventivo (stato iniziale draft).

    Attributes:
        customer_id: Cliente intestatario (obbligatorio)
        vehicle_id: Veicolo del cliente (opzionale)
        description: Descrizione del lavoro offerto
        notes: Note libere
        valid_until: Validità dell'offerta (default: oggi + giorni configurati)
        items: Righe iniziali (opzionale)
    """
    customer_id: uuid.UUID
    vehicle_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=5000)
    notes: Optional[str] = Field(None, max_length=5000)
    valid_until: Optional[datetime.date] = None
    items: list[LineItemCreate] = Field(default_factory=list)


class QuotationUpdate(VersionedRequest):
    """
    Schema per la modifica dei campi di un preventivo in bozza.

    Tutti i campi sono opzionali; lo stato si cambia solo con le azioni dedicate.
    """
    vehicle_id: Optional[uuid.UUID] = None
    description: Optional[str] = Field(None, max_length=5000)
    notes: Optional[str] = Field(None, max_length=5000)
    valid_until: Optional[datetime.date] = None


class QuotationReject(VersionedRequest):
    """Rifiuto del preventivo: il motivo è obbligatorio."""
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Il motivo del rifiuto è obbligatorio")
        return v


# -------------------------------------------------------------------
# Schemas di lettura
# -------------------------------------------------------------------

class QuotationRead(BaseModel):
    """
    Schema per la lettura di un preventivo con righe e totali.

    `display_status` coincide con lo stato salvato, tranne per i preventivi
    inviati e scaduti, mostrati come "expired".
    """
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    number: str
    status: QuotationStatus
    customer_id: uuid.UUID
    vehicle_id: Optional[uuid.UUID]
    description: Optional[str]
    notes: Optional[str]
    currency: str
    version: int
    valid_until: Optional[datetime.date]
    converted_to_order: bool
    order_id: Optional[uuid.UUID]
    rejection_reason: Optional[str]
    sent_at: Optional[datetime.datetime]
    approved_at: Optional[datetime.datetime]
    rejected_at: Optional[datetime.datetime]
    converted_at: Optional[datetime.datetime]
    cancelled_at: Optional[datetime.datetime]
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    items: list[LineItemRead] = Field(default_factory=list)
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @computed_field
    @property
    def is_expired(self) -> bool:
        """True se il preventivo inviato ha superato la data di validità."""
        return is_quotation_expired(self.status.value, self.valid_until)

    @computed_field
    @property
    def display_status(self) -> QuotationStatus:
        """Stato da mostrare all'utente."""
        return QuotationStatus.EXPIRED if self.is_expired else self.status


class ConversionResult(BaseModel):
    """Esito della conversione preventivo → ordine di lavoro."""
    work_order_id: uuid.UUID
    work_order_number: str


class ConversionChecks(BaseModel):
    """Singoli controlli di convertibilità."""
    is_approved: bool
    has_items: bool
    not_already_converted: bool


class ConversionReadiness(BaseModel):
    """Verifica preventiva della convertibilità, senza modifiche."""
    can_convert: bool
    checks: ConversionChecks
    issues: list[str] = Field(default_factory=list)


class QuotationMetrics(BaseModel):
    """
    Statistiche aggregate dei preventivi.

    Attributes:
        counts: Numero di preventivi per stato mostrato (expired separato da sent)
        total: Numero complessivo di preventivi
        total_value: Somma dei totali esclusi gli annullati
        average_value: Valore medio esclusi gli annullati
        approval_rate: (approved + converted) / (approved + converted + rejected)
        conversion_rate: converted / (approved + converted)
    """
    counts: dict[QuotationStatus, int]
    total: int
    total_value: Decimal
    average_value: Decimal
    approval_rate: Decimal
    conversion_rate: Decimal
