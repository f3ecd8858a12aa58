"""
Modello SQLAlchemy per l'entità Vehicle
Progetto: Garage Documents (Documenti Commerciali Officina)

Rappresenta i veicoli dei clienti, referenziati opzionalmente dai documenti.
"""


from __future__ import annotations
import uuid
from typing import TYPE_CHECKING, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import SoftDeleteMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.customer import Customer


class Vehicle(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Modello per i veicoli associati ai clienti.

    Un veicolo appartiene a un solo cliente; un documento può citare
    solo veicoli del proprio cliente.

    Attributes:
        id: UUID primary key, generato automaticamente
        organization_id: Organizzazione proprietaria
        customer_id: UUID del cliente proprietario
        brand: Marca del veicolo
        model: Modello del veicolo
        year: Anno (opzionale)
        license_plate: Targa (opzionale)
        vin: Numero telaio (opzionale)

    Relationships:
        customer: Cliente proprietario del veicolo
    """

    __tablename__ = "vehicles"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
        doc="Organizzazione proprietaria",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID del cliente proprietario",
    )

    brand: Mapped[str] = mapped_column(String(100), nullable=False, doc="Marca del veicolo")
    model: Mapped[str] = mapped_column(String(100), nullable=False, doc="Modello del veicolo")
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, doc="Anno del modello")
    license_plate: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, doc="Targa")
    vin: Mapped[Optional[str]] = mapped_column(String(17), nullable=True, doc="Numero telaio (VIN)")

    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="vehicles",
        lazy="noload",
        doc="Cliente proprietario del veicolo",
    )

    __table_args__ = (
        Index("ix_vehicles_customer_plate", "customer_id", "license_plate"),
    )

    def __repr__(self) -> str:
        return f"<Vehicle(id={self.id}, plate={self.license_plate}, brand={self.brand}, model={self.model})>"

    @property
    def display_name(self) -> str:
        """Nome visualizzato: "Marca Modello (Targa)"."""
        return f"{self.brand} {self.model} ({self.license_plate or '-'})"
