"""
Mixin SQLAlchemy per modelli
Progetto: Garage Documents (Documenti Commerciali Officina)

Mixin riutilizzabili per aggiungere funzionalità comuni ai modelli:
identificativo, timestamp, soft delete e le due forme condivise dai
documenti commerciali (testata documento e riga documento).
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional, TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy import event
from sqlalchemy.orm import Mapped, mapped_column, Session
from sqlalchemy.sql import func

if TYPE_CHECKING:
    from app.services.line_calculator import LineAmounts


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class SoftDeleteMixin:
    """
    Mixin per implementare la cancellazione logica (soft delete).

    Aggiunge il campo is_active che, se impostato a False,
    indica che il record è stato "eliminato" ma non rimosso fisicamente.
    """

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        doc="Flag per soft delete: False = eliminato, True = attivo",
    )


class TimestampMixin:
    """
    Mixin per gestione automatica timestamp creazione e aggiornamento.

    Il valore viene assegnato anche lato Python, così l'oggetto appena
    inserito resta serializzabile senza ricaricarlo dal database.
    """

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        doc="Data/ora di creazione del record",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        doc="Data/ora ultimo aggiornamento del record",
    )


class UUIDMixin:
    """Mixin per ID UUID primary key generato automaticamente."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="UUID primary key",
    )


class DocumentMixin:
    """
    Testata comune a preventivi, ordini di lavoro e fatture.

    I totali sono sempre la somma dei valori (già arrotondati) delle righe
    e vengono riscritti a ogni ricalcolo. `version` cresce di esattamente 1
    per ogni modifica riuscita ed è il token di concorrenza ottimistica.
    """

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
        doc="Organizzazione proprietaria del documento",
    )

    number: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Numero progressivo leggibile (es. Q-2025-0001)",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="Cliente intestatario",
    )

    vehicle_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="SET NULL"),
        nullable=True,
        doc="Veicolo oggetto del documento (opzionale)",
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Descrizione del lavoro",
    )

    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Note libere",
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="MXN",
        doc="Valuta di visualizzazione",
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Contatore di versione per concorrenza ottimistica",
    )

    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )

    def apply_totals(self, amounts: "LineAmounts") -> None:
        """Copia il blocco totali calcolato sulla testata."""
        self.subtotal = amounts.subtotal
        self.discount_amount = amounts.discount_amount
        self.tax_amount = amounts.tax_amount
        self.total = amounts.total


class LineItemMixin:
    """
    Riga di documento: servizio a catalogo, prodotto a catalogo o testo libero.

    I quattro campi derivati non vengono mai scritti a mano: si aggiornano
    solo tramite `apply_amounts` con l'output del calcolatore.
    """

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Ordine di visualizzazione della riga",
    )

    item_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="custom",
        doc="Tipo riga: service, product, labor, custom",
    )

    service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("catalog_services.id", ondelete="RESTRICT"),
        nullable=True,
        doc="Servizio a catalogo (alternativo a product_id)",
    )

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("catalog_products.id", ondelete="RESTRICT"),
        nullable=True,
        doc="Prodotto a catalogo (alternativo a service_id)",
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        doc="Descrizione della riga",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("1"),
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"),
    )
    discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0"),
    )
    tax_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("16.00"),
    )

    subtotal: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )
    total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00"),
    )

    def apply_amounts(self, amounts: "LineAmounts") -> None:
        """Copia sulla riga i valori derivati calcolati."""
        self.subtotal = amounts.subtotal
        self.discount_amount = amounts.discount_amount
        self.tax_amount = amounts.tax_amount
        self.total = amounts.total


def line_item_constraints(table: str) -> tuple:
    """
    Vincoli di check comuni alle tabelle delle righe documento.

    Args:
        table: Nome della tabella, usato per nominare i vincoli

    Returns:
        Tupla di CheckConstraint da includere in __table_args__
    """
    return (
        CheckConstraint("quantity > 0", name=f"ck_{table}_quantity"),
        CheckConstraint("unit_price >= 0", name=f"ck_{table}_unit_price"),
        CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100",
            name=f"ck_{table}_discount_percent",
        ),
        CheckConstraint(
            "tax_percent >= 0 AND tax_percent <= 100",
            name=f"ck_{table}_tax_percent",
        ),
        CheckConstraint(
            "NOT (service_id IS NOT NULL AND product_id IS NOT NULL)",
            name=f"ck_{table}_catalog_ref",
        ),
        CheckConstraint(
            "item_type IN ('service', 'product', 'labor', 'custom')",
            name=f"ck_{table}_item_type",
        ),
    )


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def update_timestamp(session: Session, flush_context, instances) -> None:
    """
    Aggiorna automaticamente il campo updated_at prima di ogni flush.

    Args:
        session: Sessione SQLAlchemy
        flush_context: Contesto del flush
        instances: Oggetti instances (non usato)
    """
    now = _utcnow()

    for obj in session.dirty:
        if hasattr(obj, "updated_at"):
            if session.is_modified(obj, include_collections=False):
                obj.updated_at = now

    for obj in session.new:
        if hasattr(obj, "updated_at"):
            obj.updated_at = now
