"""
Tests for document numbering.

Format helpers are pure; allocation runs against the SQLite test database.
"""

import datetime
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import IntegrityFailureError, StateConflictError
from app.models import Quotation
from app.services.numbering import (
    DocumentType,
    format_number,
    number_generator,
    parse_number,
)
from tests.conftest import ORG_ID, OTHER_ORG_ID


def new_quotation(customer, organization_id=ORG_ID):
    return Quotation(
        organization_id=organization_id,
        customer_id=customer.id,
        status="draft",
        currency="MXN",
        version=1,
        converted_to_order=False,
        items=[],
    )


# ============================================================
# Tests for number format
# ============================================================


class TestNumberFormat:
    """Tests for format_number / parse_number."""

    def test_format(self):
        """Test formato {PREFISSO}-{ANNO}-{NNNN}."""
        assert format_number(DocumentType.QUOTATION, 2025, 1) == "Q-2025-0001"
        assert format_number(DocumentType.WORK_ORDER, 2025, 42) == "WO-2025-0042"
        assert format_number(DocumentType.INVOICE, 2026, 9999) == "INV-2026-9999"

    def test_sequence_limit(self):
        """Test oltre 9999 documenti nell'anno: errore esplicito."""
        with pytest.raises(StateConflictError) as exc_info:
            format_number(DocumentType.INVOICE, 2025, 10000)
        assert exc_info.value.error_code == "NUMBERING_LIMIT_REACHED"

    def test_parse(self):
        """Test scomposizione del numero."""
        assert parse_number("WO-2025-0007") == (DocumentType.WORK_ORDER, 2025, 7)
        assert parse_number("INV-2024-1234") == (DocumentType.INVOICE, 2024, 1234)

    @pytest.mark.parametrize("value", ["", "Q-25-0001", "X-2025-0001", "Q-2025-001", "Q-2025-00001"])
    def test_parse_invalid(self, value):
        """Test numeri non conformi."""
        assert parse_number(value) is None


# ============================================================
# Tests for number allocation
# ============================================================


class TestNumberAllocation:
    """Tests for sequential allocation and collision retry."""

    async def test_first_number_of_year(self, db):
        """Test prima numerazione dell'anno: 0001."""
        number = await number_generator.next_number(db, ORG_ID, DocumentType.QUOTATION, 2025)
        assert number == "Q-2025-0001"

    async def test_sequential_creations_are_contiguous(self, db, customer):
        """Test creazioni sequenziali: numeri distinti e contigui."""
        numbers = []
        for _ in range(5):
            document = await number_generator.insert_with_number(
                db, new_quotation(customer), DocumentType.QUOTATION, 2025
            )
            numbers.append(document.number)

        assert numbers == [f"Q-2025-{n:04d}" for n in range(1, 6)]

    async def test_sequence_is_per_year_and_organization(self, db, customer):
        """Test sequenze indipendenti per anno e organizzazione."""
        await number_generator.insert_with_number(db, new_quotation(customer), DocumentType.QUOTATION, 2024)

        assert await number_generator.next_number(db, ORG_ID, DocumentType.QUOTATION, 2024) == "Q-2024-0002"
        assert await number_generator.next_number(db, ORG_ID, DocumentType.QUOTATION, 2025) == "Q-2025-0001"
        assert await number_generator.next_number(db, OTHER_ORG_ID, DocumentType.QUOTATION, 2024) == "Q-2024-0001"

    async def test_non_conforming_number_ignored(self, db, customer):
        """Test un numero non conforme non blocca la sequenza."""
        document = new_quotation(customer)
        document.number = "Q-2025-ABCD"
        db.add(document)
        await db.flush()

        assert await number_generator.next_number(db, ORG_ID, DocumentType.QUOTATION, 2025) == "Q-2025-0001"

    async def test_collision_is_retried(self, db, customer, monkeypatch):
        """Test collisione sul vincolo univoco: nuovo tentativo con il numero successivo."""
        await number_generator.insert_with_number(db, new_quotation(customer), DocumentType.QUOTATION, 2025)

        # Simula una richiesta concorrente che ha letto lo stesso massimo
        next_number = AsyncMock(side_effect=["Q-2025-0001", "Q-2025-0002"])
        monkeypatch.setattr(number_generator, "next_number", next_number)

        document = await number_generator.insert_with_number(
            db, new_quotation(customer), DocumentType.QUOTATION, 2025
        )

        assert document.number == "Q-2025-0002"
        assert next_number.await_count == 2

    async def test_retries_exhausted(self, db, customer, monkeypatch):
        """Test tentativi esauriti: IntegrityFailureError, nessun documento inserito."""
        await number_generator.insert_with_number(db, new_quotation(customer), DocumentType.QUOTATION, 2025)
        monkeypatch.setattr(number_generator, "next_number", AsyncMock(return_value="Q-2025-0001"))

        document = new_quotation(customer)
        with pytest.raises(IntegrityFailureError) as exc_info:
            await number_generator.insert_with_number(db, document, DocumentType.QUOTATION, 2025)

        assert exc_info.value.error_code == "NUMBER_ALLOCATION_FAILED"
        assert document not in db

    async def test_document_year_from_today(self, db, customer):
        """Test l'anno della numerazione segue la data di creazione."""
        year = datetime.date.today().year
        number = await number_generator.next_number(db, ORG_ID, DocumentType.WORK_ORDER, year)
        assert number.startswith(f"WO-{year}-")
