"""
Modello SQLAlchemy per l'entità Customer
Progetto: Garage Documents (Documenti Commerciali Officina)

Anagrafica clienti minima necessaria ai documenti commerciali.
"""


from __future__ import annotations
import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import SoftDeleteMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.vehicle import Vehicle


class Customer(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Modello per l'anagrafica clienti.

    Attributes:
        id: UUID primary key, generato automaticamente
        organization_id: Organizzazione proprietaria
        name: Nome o ragione sociale
        email: Indirizzo email (opzionale)
        phone: Numero di telefono (opzionale)
        tax_id: Identificativo fiscale (opzionale)
        notes: Note aggiuntive

    Relationships:
        vehicles: Veicoli associati al cliente
    """

    __tablename__ = "customers"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
        doc="Organizzazione proprietaria",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Nome o ragione sociale",
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Indirizzo email",
    )

    phone: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        doc="Numero di telefono",
    )

    tax_id: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Identificativo fiscale",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Note aggiuntive",
    )

    vehicles: Mapped[List["Vehicle"]] = relationship(
        "Vehicle",
        back_populates="customer",
        lazy="noload",
        doc="Veicoli associati al cliente",
    )

    __table_args__ = (
        Index("ix_customers_org_name", "organization_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"
