"""
Modelli SQLAlchemy per le Fatture
Progetto: Garage Documents (Documenti Commerciali Officina)

Contiene:
- Invoice: fattura emessa al cliente
- InvoiceItem: righe della fattura
"""


from __future__ import annotations
import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import DocumentMixin, LineItemMixin, TimestampMixin, UUIDMixin, line_item_constraints


class Invoice(Base, UUIDMixin, TimestampMixin, DocumentMixin):
    """
    Modello per le fatture.

    Una fattura nasce in bozza per creazione diretta o dalla conversione di
    un ordine di lavoro completato. Il pagamento è un unico evento.

    Attributes:
        status: draft, sent, overdue, paid, cancelled
        work_order_id: Ordine di lavoro fatturato (univoco, opzionale)
        line_source: Origine delle righe (manual, service_lines, order_items)
        issue_date: Data di emissione
        due_date: Data di scadenza del pagamento
        payment_method: Metodo di pagamento registrato
        paid_date: Data del pagamento
        payment_reference: Riferimento del pagamento (es. CRO)
        payment_notes: Note sul pagamento

    States (State Machine):
        draft → sent → paid
                  ↘ overdue → paid   (overdue assegnato dalla riconciliazione periodica)
        draft | sent | overdue → cancelled
    """

    __tablename__ = "invoices"

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="draft",
        doc="Stato corrente della fattura",
    )

    work_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("work_orders.id", ondelete="RESTRICT"),
        nullable=True,
        doc="Ordine di lavoro di origine",
    )

    line_source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="manual",
        doc="Strategia con cui sono state generate le righe",
    )

    issue_date: Mapped[date] = mapped_column(Date, nullable=False, doc="Data emissione")
    due_date: Mapped[date] = mapped_column(Date, nullable=False, doc="Data scadenza")

    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
        lazy="selectin",
        doc="Righe della fattura",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "number", name="uq_invoices_org_number"),
        UniqueConstraint("work_order_id", name="uq_invoices_work_order"),
        Index("ix_invoices_org_status", "organization_id", "status"),
        Index("ix_invoices_status_due_date", "status", "due_date"),
        CheckConstraint(
            "status IN ('draft', 'sent', 'overdue', 'paid', 'cancelled')",
            name="ck_invoices_status",
        ),
        CheckConstraint(
            "line_source IN ('manual', 'service_lines', 'order_items')",
            name="ck_invoices_line_source",
        ),
        CheckConstraint("due_date >= issue_date", name="ck_invoices_due_date"),
        CheckConstraint(
            "status != 'paid' OR (paid_date IS NOT NULL AND payment_method IS NOT NULL)",
            name="ck_invoices_paid_fields",
        ),
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.number}, status={self.status})>"


class InvoiceItem(Base, UUIDMixin, TimestampMixin, LineItemMixin):
    """Riga di fattura."""

    __tablename__ = "invoice_items"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID della fattura padre",
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="items",
        doc="Fattura padre",
    )

    __table_args__ = line_item_constraints("invoice_items")

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, description={self.description[:30]})>"
