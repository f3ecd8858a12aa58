"""
Schemas Pydantic per l'entità Vehicle
Progetto: Garage Documents (Documenti Commerciali Officina)
"""

import datetime
import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def normalize_plate(v: Optional[str]) -> Optional[str]:
    """Targa in maiuscolo, senza spazi né trattini."""
    if v is None:
        return v
    v = v.replace(" ", "").replace("-", "").upper()
    return v or None


class VehicleCreate(BaseModel):
    """
    Schema per la registrazione di un veicolo del cliente.

    Attributes:
        brand: Marca (obbligatoria)
        model: Modello (obbligatorio)
        year: Anno del modello
        license_plate: Targa
        vin: Numero telaio (17 caratteri)
    """
    brand: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    license_plate: Optional[str] = Field(None, max_length=20)
    vin: Optional[str] = Field(None, min_length=17, max_length=17)

    @field_validator("license_plate")
    @classmethod
    def validate_plate(cls, v: Optional[str]) -> Optional[str]:
        return normalize_plate(v)

    @field_validator("vin")
    @classmethod
    def validate_vin(cls, v: Optional[str]) -> Optional[str]:
        """Il VIN non contiene le lettere I, O, Q."""
        if v is None:
            return v
        v = v.upper()
        if any(ch in v for ch in "IOQ"):
            raise ValueError("Il VIN non può contenere le lettere I, O, Q")
        return v


class VehicleRead(BaseModel):
    """Schema per la lettura di un veicolo."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    customer_id: uuid.UUID
    brand: str
    model: str
    year: Optional[int]
    license_plate: Optional[str]
    vin: Optional[str]
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @computed_field
    @property
    def display_name(self) -> str:
        """Nome visualizzato: "Marca Modello (Targa)"."""
        return f"{self.brand} {self.model} ({self.license_plate or '-'})"
