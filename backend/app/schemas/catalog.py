"""
Schemas Pydantic per il Catalogo
Progetto: Garage Documents (Documenti Commerciali Officina)

Servizi e prodotti a listino referenziabili dalle righe documento.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CatalogEntryBase(BaseModel):
    """Campi comuni a servizi e prodotti."""
    name: str = Field(..., min_length=1, max_length=200)
    unit_price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    tax_percent: Optional[Decimal] = Field(
        None, ge=0, le=100, decimal_places=2,
        description="Aliquota IVA (default: aliquota configurata)",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Il nome è obbligatorio")
        return v


class ServiceItemCreate(CatalogEntryBase):
    """Schema per la creazione di un servizio a catalogo."""
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=5000)


class ProductCreate(CatalogEntryBase):
    """Schema per la creazione di un prodotto a catalogo."""
    sku: Optional[str] = Field(None, max_length=50)
    brand: Optional[str] = Field(None, max_length=100)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip().upper() or None


class CatalogEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    unit_price: Decimal
    tax_percent: Decimal
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ServiceItemRead(CatalogEntryRead):
    """Schema per la lettura di un servizio a catalogo."""
    code: Optional[str]
    description: Optional[str]


class ProductRead(CatalogEntryRead):
    """Schema per la lettura di un prodotto a catalogo."""
    sku: Optional[str]
    brand: Optional[str]
