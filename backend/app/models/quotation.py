"""
Modelli SQLAlchemy per i Preventivi
Progetto: Garage Documents (Documenti Commerciali Officina)

Contiene:
- Quotation: preventivo offerto al cliente
- QuotationItem: righe del preventivo
"""


from __future__ import annotations
import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Index, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import DocumentMixin, LineItemMixin, TimestampMixin, UUIDMixin, line_item_constraints


# Gli stati sono definiti in app.schemas.quotation.QuotationStatus.
# "expired" è uno stato solo di presentazione e non viene mai salvato.


class Quotation(Base, UUIDMixin, TimestampMixin, DocumentMixin):
    """
    Modello per i preventivi.

    Attributes:
        status: Stato salvato (draft, sent, approved, rejected, converted, cancelled)
        valid_until: Data di scadenza dell'offerta
        converted_to_order: True dopo la conversione in ordine di lavoro (mai azzerato)
        order_id: UUID dell'ordine generato dalla conversione
        sent_at / approved_at / rejected_at / converted_at / cancelled_at: istanti delle transizioni
        rejection_reason: Motivo del rifiuto (obbligatorio per lo stato rejected)

    Relationships:
        items: Righe del preventivo ordinate per posizione

    States (State Machine):
        draft → sent → approved → converted
                  ↘ rejected
        draft | sent | approved | rejected → cancelled
    """

    __tablename__ = "quotations"

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="draft",
        doc="Stato corrente del preventivo",
    )

    valid_until: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        doc="Data di validità dell'offerta",
    )

    converted_to_order: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Flag di conversione in ordine di lavoro",
    )

    order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        doc="Ordine di lavoro generato dalla conversione",
    )

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rejection_reason: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Motivo del rifiuto",
    )

    items: Mapped[List["QuotationItem"]] = relationship(
        "QuotationItem",
        back_populates="quotation",
        cascade="all, delete-orphan",
        order_by="QuotationItem.position",
        lazy="selectin",
        doc="Righe del preventivo",
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "number", name="uq_quotations_org_number"),
        Index("ix_quotations_org_status", "organization_id", "status"),
        CheckConstraint(
            "status IN ('draft', 'sent', 'approved', 'rejected', 'converted', 'cancelled')",
            name="ck_quotations_status",
        ),
        CheckConstraint(
            "converted_to_order = false OR order_id IS NOT NULL",
            name="ck_quotations_order_ref",
        ),
    )

    def __repr__(self) -> str:
        return f"<Quotation(id={self.id}, number={self.number}, status={self.status})>"


class QuotationItem(Base, UUIDMixin, TimestampMixin, LineItemMixin):
    """Riga di preventivo."""

    __tablename__ = "quotation_items"

    quotation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("quotations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID del preventivo padre",
    )

    quotation: Mapped["Quotation"] = relationship(
        "Quotation",
        back_populates="items",
        doc="Preventivo padre",
    )

    __table_args__ = line_item_constraints("quotation_items")

    def __repr__(self) -> str:
        return f"<QuotationItem(id={self.id}, description={self.description[:30]})>"
