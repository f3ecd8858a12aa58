"""
Unit tests for the line item calculator.

Pure functions: no database, no fixtures.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.core.exceptions import BusinessValidationError
from app.services.line_calculator import (
    MAX_AMOUNT,
    LineAmounts,
    compute_document_totals,
    compute_line,
    recalculate_document,
    round_money,
)


# ============================================================
# Tests for compute_line
# ============================================================


class TestComputeLine:
    """Tests for the amounts of a single line."""

    def test_labor_line_with_tax(self):
        """Test 2 × 150.00 con IVA 16%: 300.00 + 48.00 = 348.00."""
        amounts = compute_line("2", "150.00", "0", "16")

        assert amounts.subtotal == Decimal("300.00")
        assert amounts.discount_amount == Decimal("0.00")
        assert amounts.tax_amount == Decimal("48.00")
        assert amounts.total == Decimal("348.00")

    def test_tax_applies_to_discounted_base(self):
        """Test IVA calcolata sull'imponibile scontato."""
        amounts = compute_line(Decimal("1"), Decimal("1000.00"), Decimal("10"), Decimal("16"))

        assert amounts.discount_amount == Decimal("100.00")
        assert amounts.tax_amount == Decimal("144.00")
        assert amounts.total == Decimal("1044.00")

    def test_full_discount(self):
        """Test sconto 100%: totale zero."""
        amounts = compute_line(3, "25.50", 100, 16)

        assert amounts.subtotal == Decimal("76.50")
        assert amounts.discount_amount == Decimal("76.50")
        assert amounts.tax_amount == Decimal("0.00")
        assert amounts.total == Decimal("0.00")

    def test_zero_tax(self):
        """Test aliquota zero (esente)."""
        amounts = compute_line("4", "12.25", "0", "0")

        assert amounts.tax_amount == Decimal("0.00")
        assert amounts.total == amounts.subtotal == Decimal("49.00")

    def test_half_up_rounding(self):
        """Test arrotondamento ROUND_HALF_UP su ogni valore derivato."""
        amounts = compute_line("1", "0.125", "0", "0")
        assert amounts.subtotal == Decimal("0.13")

        amounts = compute_line("1", "10.05", "0", "5")
        # 10.05 × 5% = 0.5025 → 0.50
        assert amounts.tax_amount == Decimal("0.50")

    def test_total_is_exact_sum_of_rounded_parts(self):
        """Test total = subtotal − discount + tax senza arrotondamenti ulteriori."""
        amounts = compute_line("3.33", "7.77", "12.5", "16")

        assert amounts.total == amounts.subtotal - amounts.discount_amount + amounts.tax_amount
        for value in (amounts.subtotal, amounts.discount_amount, amounts.tax_amount, amounts.total):
            assert value == round_money(value)

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"quantity": "0"}, "quantity"),
            ({"quantity": "-1"}, "quantity"),
            ({"unit_price": "-0.01"}, "unit_price"),
            ({"discount_percent": "100.01"}, "discount_percent"),
            ({"discount_percent": "-5"}, "discount_percent"),
            ({"tax_percent": "101"}, "tax_percent"),
            ({"quantity": "abc"}, "quantity"),
            ({"unit_price": "NaN"}, "unit_price"),
        ],
    )
    def test_out_of_domain_inputs(self, kwargs, field):
        """Test input fuori dominio rifiutati con il campo responsabile."""
        values = {"quantity": "1", "unit_price": "10", "discount_percent": "0", "tax_percent": "16"}
        values.update(kwargs)

        with pytest.raises(BusinessValidationError) as exc_info:
            compute_line(**values)

        assert exc_info.value.status_code == 400
        assert exc_info.value.extra == {"field": field}
        assert field in exc_info.value.detail

    def test_amount_over_column_limit(self):
        """Test importo riga oltre Numeric(12, 2): rifiutato come errore di validazione."""
        with pytest.raises(BusinessValidationError) as exc_info:
            compute_line("99999999.99", "9999999999.99", "0", "16")

        assert exc_info.value.status_code == 400
        assert exc_info.value.extra == {"field": "quantity"}

    def test_amount_at_column_limit(self):
        """Test importo esattamente al massimo rappresentabile."""
        amounts = compute_line("1", "9999999999.99", "0", "0")

        assert amounts.total == MAX_AMOUNT


# ============================================================
# Tests for document totals
# ============================================================


class TestDocumentTotals:
    """Tests for document-level totals."""

    def test_empty_document(self):
        """Test documento senza righe: tutti i totali a 0.00."""
        totals = compute_document_totals([])

        assert totals == LineAmounts()
        assert totals.total == Decimal("0.00")

    def test_totals_are_field_wise_sums(self):
        """Test totali documento = somma campo per campo delle righe."""
        lines = [
            compute_line("2", "150.00", "0", "16"),
            compute_line("1", "99.99", "15", "16"),
            compute_line("0.5", "80.00", "100", "0"),
        ]

        totals = compute_document_totals(lines)

        assert totals.subtotal == sum(line.subtotal for line in lines)
        assert totals.discount_amount == sum(line.discount_amount for line in lines)
        assert totals.tax_amount == sum(line.tax_amount for line in lines)
        assert totals.total == sum(line.total for line in lines)

    def test_totals_over_column_limit(self):
        """Test somma delle righe oltre il massimo: errore sul campo items."""
        lines = [compute_line("1", "6000000000.00", "0", "0")] * 2

        with pytest.raises(BusinessValidationError) as exc_info:
            compute_document_totals(lines)

        assert exc_info.value.extra == {"field": "items"}

    def test_recalculate_document_rewrites_stored_amounts(self):
        """Test ricalcolo: i valori salvati in precedenza vengono ignorati."""
        applied = {}

        def _apply_amounts(self_item, amounts):
            applied[self_item.description] = amounts

        item = SimpleNamespace(
            description="Mano de obra",
            quantity=Decimal("2"),
            unit_price=Decimal("150.00"),
            discount_percent=Decimal("0"),
            tax_percent=Decimal("16"),
            total=Decimal("999.99"),
        )
        item.apply_amounts = lambda amounts: _apply_amounts(item, amounts)

        document = SimpleNamespace(items=[item], totals=None)
        document.apply_totals = lambda totals: setattr(document, "totals", totals)

        totals = recalculate_document(document)

        assert applied["Mano de obra"].total == Decimal("348.00")
        assert document.totals == totals
        assert totals.total == Decimal("348.00")
