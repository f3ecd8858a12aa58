"""
Unit tests for the document state machines.

The machines work on plain objects, so documents are stubbed with
SimpleNamespace.
"""

import datetime
from types import SimpleNamespace

import pytest

from app.core.exceptions import BusinessValidationError, StateConflictError
from app.schemas.invoice import InvoiceStatus
from app.schemas.quotation import QuotationStatus
from app.schemas.work_order import STATUS_SEQUENCE, WorkOrderStatus
from app.services.lifecycle import invoice_machine, quotation_machine, work_order_machine

TODAY = datetime.date(2025, 6, 15)
NOW = datetime.datetime(2025, 6, 15, 10, 30, tzinfo=datetime.timezone.utc)


def quotation(status, items=("x",), valid_until=None):
    return SimpleNamespace(number="Q-2025-0001", status=status, items=list(items), valid_until=valid_until)


def work_order(status):
    return SimpleNamespace(number="WO-2025-0001", status=status)


def invoice(status, items=("x",)):
    return SimpleNamespace(number="INV-2025-0001", status=status, items=list(items))


# ============================================================
# Tests for quotations
# ============================================================


class TestQuotationMachine:
    """Tests for quotation transitions."""

    def test_send_requires_draft(self):
        """Test invio consentito solo da bozza."""
        quotation_machine.ensure_can_send(quotation("draft"))

        for status in ("sent", "approved", "rejected", "converted", "cancelled"):
            with pytest.raises(StateConflictError):
                quotation_machine.ensure_can_send(quotation(status))

    def test_send_requires_items(self):
        """Test invio di preventivo senza righe rifiutato."""
        with pytest.raises(BusinessValidationError):
            quotation_machine.ensure_can_send(quotation("draft", items=()))

    def test_approve_only_from_sent(self):
        """Test approvazione solo da sent."""
        quotation_machine.ensure_can_approve(quotation("sent"), allow_expired=False, today=TODAY)

        with pytest.raises(StateConflictError):
            quotation_machine.ensure_can_approve(quotation("draft"), allow_expired=False, today=TODAY)

    def test_expired_approval_depends_on_setting(self):
        """Test approvazione di preventivo scaduto solo se configurata."""
        expired = quotation("sent", valid_until=TODAY - datetime.timedelta(days=1))

        with pytest.raises(StateConflictError) as exc_info:
            quotation_machine.ensure_can_approve(expired, allow_expired=False, today=TODAY)
        assert exc_info.value.error_code == "QUOTATION_EXPIRED"

        quotation_machine.ensure_can_approve(expired, allow_expired=True, today=TODAY)

    def test_display_status(self):
        """Test stato mostrato: expired solo per sent oltre la validità."""
        yesterday = TODAY - datetime.timedelta(days=1)

        assert quotation_machine.display_status(quotation("sent", valid_until=yesterday), TODAY) == QuotationStatus.EXPIRED
        assert quotation_machine.display_status(quotation("sent", valid_until=TODAY), TODAY) == QuotationStatus.SENT
        assert quotation_machine.display_status(quotation("draft", valid_until=yesterday), TODAY) == QuotationStatus.DRAFT
        assert quotation_machine.display_status(quotation("sent"), TODAY) == QuotationStatus.SENT

    def test_cancel_sources(self):
        """Test annullamento da ogni stato non finale."""
        for status in ("draft", "sent", "approved", "rejected"):
            quotation_machine.ensure_can_cancel(quotation(status))
        for status in ("converted", "cancelled"):
            with pytest.raises(StateConflictError):
                quotation_machine.ensure_can_cancel(quotation(status))

    def test_converted_reachable_only_from_approved(self):
        """Test conversione solo da approved."""
        assert quotation_machine.allowed_sources(QuotationStatus.CONVERTED) == [QuotationStatus.APPROVED]

    def test_only_draft_is_editable(self):
        """Test modifiche consentite solo in bozza."""
        quotation_machine.ensure_editable(quotation("draft"))
        with pytest.raises(StateConflictError):
            quotation_machine.ensure_editable(quotation("sent"))


# ============================================================
# Tests for work orders
# ============================================================


class TestWorkOrderMachine:
    """Tests for the work order pipeline."""

    def test_advance_follows_sequence(self):
        """Test avanzamento di un passo lungo la pipeline."""
        for current, expected in zip(STATUS_SEQUENCE, STATUS_SEQUENCE[1:]):
            assert work_order_machine.next_status(work_order(current.value)) == expected

    def test_delivered_is_terminal(self):
        """Test nessuna transizione da delivered."""
        delivered = work_order("delivered")

        with pytest.raises(StateConflictError):
            work_order_machine.next_status(delivered)
        with pytest.raises(StateConflictError):
            work_order_machine.previous_status(delivered)
        with pytest.raises(StateConflictError):
            work_order_machine.ensure_status_change(delivered, WorkOrderStatus.PENDING)

    def test_revert_from_pending_rejected(self):
        """Test ritorno impossibile dal primo stato."""
        with pytest.raises(StateConflictError):
            work_order_machine.previous_status(work_order("pending"))

    def test_direct_change_to_same_status_rejected(self):
        """Test cambio diretto verso lo stato attuale rifiutato."""
        with pytest.raises(StateConflictError):
            work_order_machine.ensure_status_change(work_order("in_repair"), WorkOrderStatus.IN_REPAIR)
        work_order_machine.ensure_status_change(work_order("pending"), WorkOrderStatus.COMPLETED)

    def test_completed_at_set_on_entry(self):
        """Test ingresso in completed registra completed_at."""
        values = work_order_machine.transition_values(work_order("waiting_parts"), WorkOrderStatus.COMPLETED, NOW)
        assert values == {"status": "completed", "completed_at": NOW}

    def test_completed_at_cleared_when_leaving_backwards(self):
        """Test uscita da completed verso stato diverso da delivered azzera completed_at."""
        values = work_order_machine.transition_values(work_order("completed"), WorkOrderStatus.IN_REPAIR, NOW)
        assert values == {"status": "in_repair", "completed_at": None}

    def test_delivered_keeps_completed_at(self):
        """Test consegna: delivered_at registrato, completed_at invariato."""
        values = work_order_machine.transition_values(work_order("completed"), WorkOrderStatus.DELIVERED, NOW)
        assert values == {"status": "delivered", "delivered_at": NOW}

    def test_lines_locked_when_completed(self):
        """Test righe bloccate in completed e delivered."""
        work_order_machine.ensure_lines_editable(work_order("waiting_parts"))
        for status in ("completed", "delivered"):
            with pytest.raises(StateConflictError):
                work_order_machine.ensure_lines_editable(work_order(status))


# ============================================================
# Tests for invoices
# ============================================================


class TestInvoiceMachine:
    """Tests for invoice transitions."""

    def test_pay_from_sent_or_overdue(self):
        """Test pagamento da sent o overdue."""
        assert set(invoice_machine.allowed_sources(InvoiceStatus.PAID)) == {
            InvoiceStatus.SENT,
            InvoiceStatus.OVERDUE,
        }
        with pytest.raises(StateConflictError):
            invoice_machine.ensure_can_pay(invoice("draft"))

    def test_paid_and_cancelled_are_immutable(self):
        """Test fatture pagate e annullate non modificabili."""
        for status in ("paid", "cancelled"):
            document = invoice(status)
            with pytest.raises(StateConflictError):
                invoice_machine.ensure_editable(document)
            with pytest.raises(StateConflictError):
                invoice_machine.ensure_can_pay(document)
            with pytest.raises(StateConflictError):
                invoice_machine.ensure_can_cancel(document)

    def test_send_requires_items(self):
        """Test invio fattura senza righe rifiutato."""
        with pytest.raises(BusinessValidationError):
            invoice_machine.ensure_can_send(invoice("draft", items=()))

    def test_lines_editable_only_in_draft(self):
        """Test righe modificabili solo in bozza, testata anche in sent."""
        invoice_machine.ensure_lines_editable(invoice("draft"))
        invoice_machine.ensure_editable(invoice("sent"))
        with pytest.raises(StateConflictError):
            invoice_machine.ensure_lines_editable(invoice("sent"))
