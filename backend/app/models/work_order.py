"""
Modelli SQLAlchemy per gli Ordini di Lavoro
Progetto: Garage Documents (Documenti Commerciali Officina)

Contiene:
- WorkOrder: Ordine di lavoro principale
- WorkOrderItem: Righe generiche dell'ordine (calcolate come ogni riga documento)
- WorkOrderServiceLine: Righe di servizio strutturate con totale concordato
"""


from __future__ import annotations
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import DocumentMixin, LineItemMixin, TimestampMixin, UUIDMixin, line_item_constraints


# Gli stati sono definiti in app.schemas.work_order.WorkOrderStatus


class WorkOrder(Base, UUIDMixin, TimestampMixin, DocumentMixin):
    """
    Modello per gli ordini di lavoro (work orders).

    Un ordine nasce da creazione diretta o dalla conversione di un preventivo
    approvato; in quest'ultimo caso quotation_id punta al preventivo sorgente.

    Attributes:
        status: Stato corrente nella pipeline di officina
        quotation_id: Preventivo da cui deriva l'ordine (univoco, opzionale)
        diagnosis: Diagnosi del meccanico
        estimated_completion: Data prevista di completamento
        completed_at: Istante di ingresso in completed (azzerato se l'ordine torna indietro)
        delivered_at: Istante di consegna al cliente

    Relationships:
        items: Righe generiche dell'ordine
        service_lines: Righe di servizio strutturate

    States (State Machine):
        pending → in_progress → diagnosed → approved → in_repair
            → waiting_parts → completed → delivered
        (avanzamento/ritorno di un passo o salto diretto; delivered è terminale)
    """

    __tablename__ = "work_orders"

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="pending",
        doc="Stato corrente dell'ordine di lavoro",
    )

    quotation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("quotations.id", ondelete="RESTRICT"),
        nullable=True,
        doc="Preventivo sorgente della conversione",
    )

    diagnosis: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Diagnosi del meccanico dopo ispezione",
    )

    estimated_completion: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data prevista completamento",
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora completamento ordine",
    )

    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Data/ora consegna al cliente",
    )

    items: Mapped[List["WorkOrderItem"]] = relationship(
        "WorkOrderItem",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderItem.position",
        lazy="selectin",
        doc="Righe generiche dell'ordine",
    )

    service_lines: Mapped[List["WorkOrderServiceLine"]] = relationship(
        "WorkOrderServiceLine",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderServiceLine.position",
        lazy="selectin",
        doc="Righe di servizio strutturate",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "number", name="uq_work_orders_org_number"),
        UniqueConstraint("quotation_id", name="uq_work_orders_quotation"),
        Index("ix_work_orders_org_status", "organization_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'diagnosed', 'approved', 'in_repair', "
            "'waiting_parts', 'completed', 'delivered')",
            name="ck_work_orders_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<WorkOrder(id={self.id}, number={self.number}, status={self.status})>"


class WorkOrderItem(Base, UUIDMixin, TimestampMixin, LineItemMixin):
    """
    Riga generica dell'ordine di lavoro.

    I campi derivati sono calcolati come per ogni riga documento; in
    fatturazione il subtotale viene ricavato a ritroso dal totale salvato.
    """

    __tablename__ = "work_order_items"

    work_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID dell'ordine di lavoro padre",
    )

    work_order: Mapped["WorkOrder"] = relationship(
        "WorkOrder",
        back_populates="items",
        doc="Ordine di lavoro padre",
    )

    __table_args__ = line_item_constraints("work_order_items")

    def __repr__(self) -> str:
        return f"<WorkOrderItem(id={self.id}, type={self.item_type}, description={self.description[:30]})>"


class WorkOrderServiceLine(Base, UUIDMixin, TimestampMixin):
    """
    Riga di servizio strutturata dell'ordine di lavoro.

    `total` è l'importo netto concordato per la riga ed è considerato
    autorevole in fatturazione: il prezzo unitario fatturato è total / quantity.

    Attributes:
        service_id: Servizio a catalogo di riferimento (opzionale)
        description: Descrizione dell'intervento
        quantity: Quantità (ore o interventi)
        unit_price: Prezzo unitario indicativo
        tax_percent: Aliquota IVA da applicare in fattura
        total: Importo netto concordato
    """

    __tablename__ = "work_order_service_lines"

    work_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("work_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("catalog_services.id", ondelete="RESTRICT"),
        nullable=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("16.00"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    work_order: Mapped["WorkOrder"] = relationship(
        "WorkOrder",
        back_populates="service_lines",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_work_order_service_lines_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_work_order_service_lines_unit_price"),
        CheckConstraint("total >= 0", name="ck_work_order_service_lines_total"),
        CheckConstraint(
            "tax_percent >= 0 AND tax_percent <= 100",
            name="ck_work_order_service_lines_tax_percent",
        ),
    )

    def __repr__(self) -> str:
        return f"<WorkOrderServiceLine(id={self.id}, total={self.total})>"
