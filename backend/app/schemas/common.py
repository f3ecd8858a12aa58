"""
Schemas Pydantic comuni
Progetto: Garage Documents (Documenti Commerciali Officina)

Envelope di risposta e richieste con token di versione condivise
da tutti i tipi di documento.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field, model_validator

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Envelope standard: ogni risposta di successo è {"data": ...}."""
    data: T


class ListResponse(BaseModel, Generic[T]):
    """
    Envelope per liste paginate.

    Attributes:
        data: Elementi della pagina corrente
        total: Numero totale di record
        page: Pagina corrente
        per_page: Record per pagina
        total_pages: Numero totale di pagine (calcolato automaticamente)
    """
    data: list[T]
    total: int
    page: int
    per_page: int
    total_pages: int = 0

    @model_validator(mode="after")
    def compute_total_pages(self) -> "ListResponse":
        """Calcola automaticamente il numero totale di pagine."""
        if self.per_page > 0:
            self.total_pages = (self.total + self.per_page - 1) // self.per_page
        return self


class VersionedRequest(BaseModel):
    """
    Richiesta di modifica con token di concorrenza ottimistica.

    `version` è la versione del documento letta dal client: se nel frattempo
    è cambiata, l'operazione viene rifiutata con 409.
    """
    version: int = Field(..., ge=1, description="Versione del documento letta dal client")
