"""
Schemas Pydantic per l'entità Customer
Progetto: Garage Documents (Documenti Commerciali Officina)
"""

import datetime
import re
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CustomerCreate(BaseModel):
    """
    Schema per la creazione di un cliente.

    Attributes:
        name: Nome o ragione sociale (obbligatorio)
        email: Indirizzo email
        phone: Numero di telefono
        tax_id: Identificativo fiscale
        notes: Note aggiuntive
    """
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    tax_id: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=5000)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Il nome del cliente è obbligatorio")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Normalizza l'email in minuscolo e ne verifica il formato."""
        if v is None or not v.strip():
            return None
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Formato email non valido")
        return v

    @field_validator("tax_id")
    @classmethod
    def normalize_tax_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip().upper() or None


class CustomerRead(BaseModel):
    """Schema per la lettura di un cliente."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    organization_id: uuid.UUID
    name: str
    email: Optional[str]
    phone: Optional[str]
    tax_id: Optional[str]
    notes: Optional[str]
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime
