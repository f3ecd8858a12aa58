"""
Schemas Pydantic per le righe documento
Progetto: Garage Documents (Documenti Commerciali Officina)

Le stesse forme valgono per righe di preventivi, ordini di lavoro e fatture.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.common import VersionedRequest


# -------------------------------------------------------------------
# Enum per i tipi di riga
# -------------------------------------------------------------------

class ItemType(str, Enum):
    """Tipo di riga: da catalogo (service/product) o libera (labor/custom)."""
    SERVICE = "service"
    PRODUCT = "product"
    LABOR = "labor"
    CUSTOM = "custom"


FREE_TEXT_ITEM_TYPES = (ItemType.LABOR, ItemType.CUSTOM)


# -------------------------------------------------------------------
# Funzioni di validazione standalone
# -------------------------------------------------------------------

def validate_single_catalog_reference(
    service_id: Optional[uuid.UUID],
    product_id: Optional[uuid.UUID],
) -> None:
    """
    Verifica che la riga non referenzi insieme un servizio e un prodotto.

    Raises:
        ValueError: Se entrambi i riferimenti sono valorizzati
    """
    if service_id is not None and product_id is not None:
        raise ValueError("service_id e product_id sono mutuamente esclusivi")


def strip_description(v: Optional[str]) -> Optional[str]:
    """Normalizza la descrizione rifiutando stringhe vuote."""
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("La descrizione non può essere vuota")
    return v


# -------------------------------------------------------------------
# Schemas di input
# -------------------------------------------------------------------

class LineItemCreate(BaseModel):
    """
    Dati di una nuova riga.

    Con service_id o product_id, descrizione, prezzo e aliquota non indicati
    vengono presi dal catalogo. Una riga libera richiede descrizione e prezzo.
    """
    service_id: Optional[uuid.UUID] = None
    product_id: Optional[uuid.UUID] = None
    item_type: Optional[ItemType] = Field(
        None, description="Solo per righe libere: labor o custom (default custom)"
    )
    description: Optional[str] = Field(None, max_length=500)
    quantity: Decimal = Field(Decimal("1"), gt=0, max_digits=10, decimal_places=2)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    discount_percent: Decimal = Field(Decimal("0"), ge=0, le=100, decimal_places=2)
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return strip_description(v)

    @model_validator(mode="after")
    def validate_references(self) -> "LineItemCreate":
        """Un solo riferimento a catalogo per riga."""
        validate_single_catalog_reference(self.service_id, self.product_id)
        return self


class LineItemAdd(LineItemCreate, VersionedRequest):
    """Aggiunta di una riga a un documento esistente (con versione del documento)."""
    pass


class LineItemUpdate(VersionedRequest):
    """
    Modifica parziale di una riga.

    Il riferimento a catalogo non è modificabile: per cambiarlo si rimuove
    la riga e se ne aggiunge una nuova.
    """
    description: Optional[str] = Field(None, max_length=500)
    quantity: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    unit_price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    discount_percent: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)
    tax_percent: Optional[Decimal] = Field(None, ge=0, le=100, decimal_places=2)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: Optional[str]) -> Optional[str]:
        return strip_description(v)


# -------------------------------------------------------------------
# Schema di lettura
# -------------------------------------------------------------------

class LineItemRead(BaseModel):
    """Riga documento con importi derivati."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    position: int
    item_type: ItemType
    service_id: Optional[uuid.UUID]
    product_id: Optional[uuid.UUID]
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    tax_percent: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total: Decimal
    created_at: datetime.datetime
    updated_at: datetime.datetime
