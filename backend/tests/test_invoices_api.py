"""
API tests for invoices.

Covers direct creation, sending, payment, cancellation, immutability of
closed invoices and overdue reconciliation.
"""

import datetime
from decimal import Decimal

import pytest

from tests.conftest import OTHER_ORG_ID, create_invoice, line

BASE = "/api/v1/invoices"
TODAY = datetime.date.today()


async def get_invoice(client, invoice_id) -> dict:
    response = await client.get(f"{BASE}/{invoice_id}")
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def invoice_action(client, invoice: dict, action: str, **body):
    return await client.post(
        f"{BASE}/{invoice['id']}/{action}",
        json={"version": invoice["version"], **body},
    )


async def sent_invoice(client, customer_id, **extra) -> dict:
    invoice = await create_invoice(client, customer_id, **extra)
    response = await invoice_action(client, invoice, "send")
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def past_due_invoice(client, customer_id) -> dict:
    return await sent_invoice(
        client,
        customer_id,
        issue_date=(TODAY - datetime.timedelta(days=40)).isoformat(),
        due_date=(TODAY - datetime.timedelta(days=10)).isoformat(),
    )


# ============================================================
# Tests for creation and editing
# ============================================================


class TestInvoiceCreation:
    """Tests for direct invoice creation."""

    async def test_create_draft(self, client, customer):
        """Test fattura manuale in bozza con scadenza di default."""
        invoice = await create_invoice(client, customer.id)

        assert invoice["number"] == f"INV-{TODAY.year}-0001"
        assert invoice["status"] == "draft"
        assert invoice["line_source"] == "manual"
        assert invoice["work_order_id"] is None
        assert invoice["issue_date"] == TODAY.isoformat()
        assert invoice["due_date"] == (TODAY + datetime.timedelta(days=30)).isoformat()
        assert Decimal(invoice["total"]) == Decimal("348.00")

    async def test_numbering_year_follows_issue_date(self, client, customer):
        """Test anno del numero = anno della data di emissione."""
        invoice = await create_invoice(
            client, customer.id, issue_date="2023-12-31", due_date="2024-01-30"
        )
        assert invoice["number"] == "INV-2023-0001"

    async def test_due_date_before_issue_date(self, client, customer):
        """Test scadenza precedente all'emissione: 400."""
        response = await client.post(
            f"{BASE}/",
            json={
                "customer_id": str(customer.id),
                "issue_date": "2025-03-10",
                "due_date": "2025-03-01",
                "items": [line()],
            },
        )
        assert response.status_code == 400

    async def test_update_due_date(self, client, customer):
        """Test modifica scadenza validata rispetto all'emissione."""
        invoice = await create_invoice(client, customer.id)

        response = await client.put(
            f"{BASE}/{invoice['id']}",
            json={"version": 1, "due_date": (TODAY - datetime.timedelta(days=1)).isoformat()},
        )
        assert response.status_code == 400

        new_due = (TODAY + datetime.timedelta(days=60)).isoformat()
        response = await client.put(f"{BASE}/{invoice['id']}", json={"version": 1, "due_date": new_due})
        assert response.status_code == 200
        assert response.json()["data"]["due_date"] == new_due
        assert response.json()["data"]["version"] == 2

    async def test_null_due_date_rejected(self, client, customer):
        """Test scadenza esplicitamente nulla: 400 e versione invariata."""
        invoice = await create_invoice(client, customer.id)

        response = await client.put(f"{BASE}/{invoice['id']}", json={"version": 1, "due_date": None})

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        current = await get_invoice(client, invoice["id"])
        assert current["version"] == 1
        assert current["due_date"] == invoice["due_date"]

    async def test_other_organization(self, client, customer):
        """Test fattura non visibile da un'altra organizzazione."""
        invoice = await create_invoice(client, customer.id)

        response = await client.get(f"{BASE}/{invoice['id']}", headers={"X-Organization-ID": str(OTHER_ORG_ID)})

        assert response.status_code == 404


# ============================================================
# Tests for lifecycle
# ============================================================


class TestInvoiceLifecycle:
    """Tests for send / pay / cancel."""

    async def test_send_requires_items(self, client, customer):
        """Test invio fattura senza righe: 400."""
        invoice = await create_invoice(client, customer.id, items=[])

        response = await invoice_action(client, invoice, "send")

        assert response.status_code == 400
        assert (await get_invoice(client, invoice["id"]))["status"] == "draft"

    async def test_pay_twice(self, client, customer):
        """Test pagamento ripetuto: il primo 200 con paid_date, il secondo 400."""
        invoice = await sent_invoice(client, customer.id)

        response = await invoice_action(client, invoice, "pay", payment_method="transfer", reference="TRF-001")

        assert response.status_code == 200
        paid = response.json()["data"]
        assert paid["status"] == "paid"
        assert paid["paid_date"] == TODAY.isoformat()
        assert paid["payment_method"] == "transfer"
        assert paid["payment_reference"] == "TRF-001"

        response = await invoice_action(client, paid, "pay", payment_method="cash")

        assert response.status_code == 400
        assert response.json()["error_code"] == "STATE_CONFLICT"
        current = await get_invoice(client, invoice["id"])
        assert current["payment_method"] == "transfer"
        assert current["version"] == paid["version"]

    async def test_pay_draft_rejected(self, client, customer):
        """Test pagamento di una bozza: 400."""
        invoice = await create_invoice(client, customer.id)

        response = await invoice_action(client, invoice, "pay", payment_method="cash")

        assert response.status_code == 400

    async def test_pay_with_date(self, client, customer):
        """Test data di pagamento esplicita."""
        invoice = await sent_invoice(client, customer.id)

        response = await invoice_action(client, invoice, "pay", payment_method="card", paid_date="2025-01-15")

        assert response.json()["data"]["paid_date"] == "2025-01-15"

    async def test_cancel(self, client, customer):
        """Test annullamento di una fattura inviata."""
        invoice = await sent_invoice(client, customer.id)

        response = await client.delete(f"{BASE}/{invoice['id']}", params={"version": invoice["version"]})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "cancelled"
        assert data["cancelled_at"] is not None

    @pytest.mark.parametrize("closing", ["pay", "cancel"])
    async def test_closed_invoice_is_immutable(self, client, customer, closing):
        """Test fattura pagata o annullata: ogni modifica rifiutata."""
        invoice = await sent_invoice(client, customer.id)
        if closing == "pay":
            response = await invoice_action(client, invoice, "pay", payment_method="cash")
        else:
            response = await client.delete(f"{BASE}/{invoice['id']}", params={"version": invoice["version"]})
        closed = response.json()["data"]
        version = closed["version"]

        responses = [
            await client.put(f"{BASE}/{invoice['id']}", json={"version": version, "notes": "x"}),
            await client.delete(f"{BASE}/{invoice['id']}", params={"version": version}),
            await invoice_action(client, closed, "send"),
            await invoice_action(client, closed, "items", **line()),
        ]

        assert [r.status_code for r in responses] == [400, 400, 400, 400]
        current = await get_invoice(client, invoice["id"])
        assert current["status"] == closed["status"]
        assert current["version"] == version

    async def test_lines_locked_after_send(self, client, customer):
        """Test righe modificabili solo in bozza; note modificabili in sent."""
        invoice = await sent_invoice(client, customer.id)

        response = await invoice_action(client, invoice, "items", **line())
        assert response.status_code == 400

        response = await client.put(f"{BASE}/{invoice['id']}", json={"version": invoice["version"], "notes": "Sollecito"})
        assert response.status_code == 200


# ============================================================
# Tests for overdue reconciliation
# ============================================================


class TestOverdueReconciliation:
    """Tests for marking past-due invoices overdue."""

    async def test_reconcile_marks_past_due(self, client, customer):
        """Test solo le fatture sent con scadenza trascorsa diventano overdue."""
        past_due = await past_due_invoice(client, customer.id)
        current = await sent_invoice(client, customer.id)
        draft = await create_invoice(
            client,
            customer.id,
            issue_date=(TODAY - datetime.timedelta(days=40)).isoformat(),
            due_date=(TODAY - datetime.timedelta(days=10)).isoformat(),
        )

        response = await client.post(f"{BASE}/reconcile-overdue")

        assert response.status_code == 200
        assert response.json()["data"]["updated"] == 1

        overdue = await get_invoice(client, past_due["id"])
        assert overdue["status"] == "overdue"
        assert overdue["version"] == past_due["version"] + 1
        assert (await get_invoice(client, current["id"]))["status"] == "sent"
        assert (await get_invoice(client, draft["id"]))["status"] == "draft"

        response = await client.post(f"{BASE}/reconcile-overdue")
        assert response.json()["data"]["updated"] == 0

    async def test_reconcile_scoped_to_organization(self, client, customer):
        """Test riconciliazione limitata all'organizzazione del chiamante."""
        await past_due_invoice(client, customer.id)

        response = await client.post(f"{BASE}/reconcile-overdue", headers={"X-Organization-ID": str(OTHER_ORG_ID)})

        assert response.json()["data"]["updated"] == 0

    async def test_overdue_can_be_paid(self, client, customer):
        """Test pagamento di una fattura scaduta."""
        invoice = await past_due_invoice(client, customer.id)
        await client.post(f"{BASE}/reconcile-overdue")
        overdue = await get_invoice(client, invoice["id"])

        response = await invoice_action(client, overdue, "pay", payment_method="cash")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "paid"

    async def test_stale_version_after_reconciliation(self, client, customer):
        """Test la riconciliazione incrementa la versione: una modifica con la versione letta prima è 409."""
        invoice = await past_due_invoice(client, customer.id)
        await client.post(f"{BASE}/reconcile-overdue")

        response = await invoice_action(client, invoice, "pay", payment_method="cash")

        assert response.status_code == 409


# ============================================================
# Tests for metrics
# ============================================================


class TestInvoiceMetrics:
    """Tests for the receivables summary."""

    async def test_metrics(self, client, customer):
        """Test crediti aperti, scaduti e incassati."""
        await create_invoice(client, customer.id)
        paid = await sent_invoice(client, customer.id)
        await invoice_action(client, paid, "pay", payment_method="cash")
        await past_due_invoice(client, customer.id)
        await client.post(f"{BASE}/reconcile-overdue")
        cancelled = await create_invoice(client, customer.id)
        await client.delete(f"{BASE}/{cancelled['id']}", params={"version": 1})

        response = await client.get(f"{BASE}/metrics")

        metrics = response.json()["data"]
        assert metrics["count_unpaid"] == 2
        assert Decimal(metrics["total_unpaid"]) == Decimal("696.00")
        assert metrics["count_overdue"] == 1
        assert Decimal(metrics["total_overdue"]) == Decimal("348.00")
        assert metrics["count_paid"] == 1
        assert Decimal(metrics["total_paid"]) == Decimal("348.00")
