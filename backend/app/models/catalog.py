"""
Modelli SQLAlchemy per il Catalogo
Progetto: Garage Documents (Documenti Commerciali Officina)

Contiene:
- ServiceItem: servizi di officina a listino (manodopera, interventi)
- Product: prodotti/ricambi a listino

Le righe dei documenti possono referenziare un servizio oppure un prodotto
(mai entrambi); i valori del catalogo fanno da default per descrizione,
prezzo e aliquota.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Index, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import SoftDeleteMixin, TimestampMixin, UUIDMixin


class ServiceItem(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Servizio a catalogo.

    Attributes:
        organization_id: Organizzazione proprietaria
        name: Nome del servizio (usato come descrizione di default della riga)
        code: Codice interno (opzionale)
        unit_price: Prezzo di listino
        tax_percent: Aliquota IVA applicata di default
        is_active: False se il servizio non è più utilizzabile
    """

    __tablename__ = "catalog_services"

    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("16.00"))

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_catalog_services_unit_price"),
        CheckConstraint("tax_percent >= 0 AND tax_percent <= 100", name="ck_catalog_services_tax_percent"),
        Index("ix_catalog_services_org_name", "organization_id", "name"),
    )

    def __repr__(self) -> str:
        return f"<ServiceItem(id={self.id}, name={self.name})>"


class Product(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Prodotto a catalogo.

    Attributes:
        organization_id: Organizzazione proprietaria
        name: Nome del prodotto
        sku: Codice articolo (opzionale)
        unit_price: Prezzo di vendita
        tax_percent: Aliquota IVA applicata di default
        is_active: False se il prodotto è fuori listino
    """

    __tablename__ = "catalog_products"

    organization_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("16.00"))

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_catalog_products_unit_price"),
        CheckConstraint("tax_percent >= 0 AND tax_percent <= 100", name="ck_catalog_products_tax_percent"),
        Index("ix_catalog_products_org_sku", "organization_id", "sku"),
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name}, sku={self.sku})>"
