"""
Service tests for document conversions.

Line strategies are pure; the all-or-nothing behaviour of both
conversions is checked against the SQLite test database by injecting
failures into the persistence steps.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import BusinessValidationError, IntegrityFailureError
from app.models import Invoice, WorkOrder
from app.schemas.invoice import LineSource
from app.schemas.line_item import LineItemCreate
from app.schemas.quotation import QuotationCreate, QuotationStatus
from app.schemas.work_order import (
    InvoiceFromWorkOrder,
    InvoiceLineSource,
    WorkOrderCreate,
    WorkOrderStatus,
    WorkOrderStatusUpdate,
)
from app.services.conversion_service import (
    conversion_service,
    order_item_values,
    select_line_source,
    service_line_values,
)
from app.services.line_calculator import compute_line
from app.services.quotation_service import quotation_service
from app.services.work_order_service import work_order_service
from tests.conftest import ORG_ID


def labor_line(quantity="2", unit_price="150.00", discount="0") -> LineItemCreate:
    return LineItemCreate(
        description="Mano de obra",
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        discount_percent=Decimal(discount),
    )


def stored_item(quantity, unit_price, discount, tax):
    amounts = compute_line(quantity, unit_price, discount, tax)
    return SimpleNamespace(
        item_type="custom",
        service_id=None,
        product_id=None,
        description="Riga",
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        discount_percent=Decimal(discount),
        tax_percent=Decimal(tax),
        total=amounts.total,
    )


async def count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar()


# ============================================================
# Tests for line strategies
# ============================================================


class TestLineStrategies:
    """Tests for invoice line derivation."""

    def test_service_line_uses_agreed_total(self):
        """Test riga di servizio: prezzo = totale concordato / quantità, senza sconto."""
        service_line = SimpleNamespace(
            service_id=None,
            description="Revisione",
            quantity=Decimal("3"),
            unit_price=Decimal("400.00"),
            tax_percent=Decimal("16"),
            total=Decimal("1000.00"),
        )

        values = service_line_values(service_line)

        assert values["item_type"] == "labor"
        assert values["unit_price"] == Decimal("333.33")
        assert values["discount_percent"] == Decimal("0")
        assert values["tax_percent"] == Decimal("16")

    @pytest.mark.parametrize(
        "quantity,unit_price,discount,tax",
        [
            ("2", "150.00", "0", "16"),
            ("1", "100.00", "10", "16"),
            ("4", "25.00", "50", "0"),
        ],
    )
    def test_order_item_reconstructs_price(self, quantity, unit_price, discount, tax):
        """Test riga ordine: prezzo lordo ricostruito dal totale salvato."""
        item = stored_item(quantity, unit_price, discount, tax)

        values = order_item_values(item)

        assert values["unit_price"] == Decimal(unit_price)
        assert values["discount_percent"] == Decimal(discount)
        rebuilt = compute_line(values["quantity"], values["unit_price"], values["discount_percent"], values["tax_percent"])
        assert rebuilt.total == item.total

    def test_order_item_full_discount(self):
        """Test sconto 100%: prezzo da quantity × unit_price."""
        item = stored_item("2", "50.00", "100", "16")
        assert item.total == Decimal("0.00")

        values = order_item_values(item)

        assert values["unit_price"] == Decimal("50.00")

    def test_select_source(self):
        """Test scelta dell'origine delle righe."""
        with_lines = SimpleNamespace(number="WO-1", service_lines=["s"], items=["i"])
        without_lines = SimpleNamespace(number="WO-2", service_lines=[], items=["i"])

        assert select_line_source(with_lines, InvoiceLineSource.AUTO) == LineSource.SERVICE_LINES
        assert select_line_source(without_lines, InvoiceLineSource.AUTO) == LineSource.ORDER_ITEMS
        assert select_line_source(with_lines, InvoiceLineSource.ORDER_ITEMS) == LineSource.ORDER_ITEMS
        with pytest.raises(BusinessValidationError):
            select_line_source(without_lines, InvoiceLineSource.SERVICE_LINES)


# ============================================================
# Tests for quotation → work order
# ============================================================


class TestQuotationConversionAtomicity:
    """Tests for the all-or-nothing quotation conversion."""

    async def approved(self, db, customer):
        quotation = await quotation_service.create(
            db, ORG_ID, QuotationCreate(customer_id=customer.id, items=[labor_line()])
        )
        await quotation_service.send(db, ORG_ID, quotation.id, 1)
        await quotation_service.approve(db, ORG_ID, quotation.id, 2)
        return quotation

    async def test_conversion(self, db, customer):
        """Test conversione: preventivo convertito e ordine con le stesse righe."""
        quotation = await self.approved(db, customer)

        work_order = await conversion_service.quotation_to_work_order(db, ORG_ID, quotation.id, 3)

        assert work_order.status == WorkOrderStatus.PENDING.value
        assert work_order.quotation_id == quotation.id
        assert work_order.total == Decimal("348.00")
        reloaded = await quotation_service.get_by_id(db, ORG_ID, quotation.id)
        assert reloaded.status == QuotationStatus.CONVERTED.value
        assert reloaded.order_id == work_order.id
        assert reloaded.version == 4

    async def test_failed_insert_leaves_quotation_approved(self, db, customer, monkeypatch):
        """Test errore nell'inserimento dell'ordine: preventivo invariato, nessun ordine."""
        quotation = await self.approved(db, customer)
        monkeypatch.setattr(
            work_order_service, "insert_document", AsyncMock(side_effect=SQLAlchemyError("boom"))
        )

        with pytest.raises(IntegrityFailureError):
            await conversion_service.quotation_to_work_order(db, ORG_ID, quotation.id, 3)

        # Stesso oggetto della sessione, senza rilettura
        assert quotation.status == QuotationStatus.APPROVED.value
        assert quotation.version == 3
        assert quotation.order_id is None
        reloaded = await quotation_service.get_by_id(db, ORG_ID, quotation.id)
        assert reloaded.status == QuotationStatus.APPROVED.value
        assert reloaded.converted_to_order is False
        assert reloaded.order_id is None
        assert reloaded.version == 3
        assert await count(db, WorkOrder) == 0


# ============================================================
# Tests for work order → invoice
# ============================================================


class TestInvoiceCompensation:
    """Tests for invoice generation rollback."""

    async def completed(self, db, customer):
        work_order = await work_order_service.create(
            db, ORG_ID, WorkOrderCreate(customer_id=customer.id, items=[labor_line()])
        )
        return await work_order_service.set_status(
            db, ORG_ID, work_order.id,
            WorkOrderStatusUpdate(version=1, status=WorkOrderStatus.COMPLETED),
        )

    async def test_invoice_created(self, db, customer):
        """Test fattura generata con righe e totali dell'ordine."""
        work_order = await self.completed(db, customer)

        invoice = await conversion_service.work_order_to_invoice(
            db, ORG_ID, work_order.id, InvoiceFromWorkOrder(version=2)
        )

        assert invoice.line_source == LineSource.ORDER_ITEMS.value
        assert len(invoice.items) == 1
        assert invoice.total == work_order.total
        assert await work_order_service.get_invoice_id(db, work_order.id) == invoice.id

    async def test_failed_lines_remove_invoice(self, db, customer, monkeypatch):
        """Test errore nell'inserimento delle righe: fattura eliminata, errore di integrità."""
        work_order = await self.completed(db, customer)
        monkeypatch.setattr(
            conversion_service, "_attach_items", AsyncMock(side_effect=SQLAlchemyError("boom"))
        )

        with pytest.raises(IntegrityFailureError) as exc_info:
            await conversion_service.work_order_to_invoice(
                db, ORG_ID, work_order.id, InvoiceFromWorkOrder(version=2)
            )

        assert exc_info.value.status_code == 500
        assert await count(db, Invoice) == 0
        assert await work_order_service.get_invoice_id(db, work_order.id) is None
