"""
Service per la gestione delle Fatture
Progetto: Garage Documents (Documenti Commerciali Officina)

Creazione diretta in bozza, modifica, invio, registrazione del pagamento,
annullamento e riepilogo crediti. La generazione da ordine di lavoro è in
app.services.conversion_service, la marcatura delle scadute in
app.services.reconciliation.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BusinessValidationError
from app.models import Invoice, InvoiceItem
from app.schemas.invoice import (
    EDITABLE_STATUSES,
    LINE_EDITABLE_STATUSES,
    UNPAID_STATUSES,
    InvoiceCreate,
    InvoiceMetrics,
    InvoicePayment,
    InvoiceStatus,
    InvoiceUpdate,
    LineSource,
)
from app.services.document_base import DocumentService
from app.services.guards import claim_document, ensure_version, utcnow
from app.services.lifecycle import invoice_machine
from app.services.line_calculator import ZERO, round_money
from app.services.numbering import DocumentType

# Logger per questo modulo
logger = logging.getLogger(__name__)


def default_due_date(issue_date: datetime.date) -> datetime.date:
    """Scadenza di default: emissione + giorni di pagamento configurati."""
    return issue_date + datetime.timedelta(days=settings.invoice_payment_terms_days)


def _check_dates(issue_date: datetime.date, due_date: Optional[datetime.date]) -> None:
    if due_date is not None and due_date < issue_date:
        raise BusinessValidationError(
            "due_date non può precedere issue_date",
            extra={"field": "due_date"},
        )


def _validate_due_date(invoice: Invoice, changes: dict) -> None:
    _check_dates(invoice.issue_date, changes.get("due_date"))


class InvoiceService(DocumentService):
    """
    Service per la gestione delle fatture.

    Una fattura pagata o annullata è immutabile: ogni modifica viene
    rifiutata dalla macchina a stati prima di qualunque scrittura.
    """

    model = Invoice
    item_model = InvoiceItem
    document_type = DocumentType.INVOICE
    label = "Fattura"
    line_editable_statuses = LINE_EDITABLE_STATUSES

    async def ensure_lines_editable(self, db: AsyncSession, document, action: str) -> None:
        invoice_machine.ensure_lines_editable(document, action)

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: InvoiceCreate,
    ) -> Invoice:
        """
        Crea una fattura in bozza con numero INV-YYYY-NNNN.

        L'anno di numerazione è quello della data di emissione.

        Raises:
            NotFoundError: Cliente, veicolo o voce di catalogo inesistente
            BusinessValidationError: Righe o date non valide
        """
        header = await self.prepare_header(db, organization_id, data.customer_id, data.vehicle_id)
        items = await self.build_items(db, organization_id, data.items)

        issue_date = data.issue_date or datetime.date.today()
        due_date = data.due_date or default_due_date(issue_date)
        _check_dates(issue_date, due_date)

        invoice = Invoice(
            **header,
            status=InvoiceStatus.DRAFT.value,
            line_source=LineSource.MANUAL.value,
            description=data.description,
            notes=data.notes,
            issue_date=issue_date,
            due_date=due_date,
            items=items,
        )
        return await self.insert_document(db, invoice, year=issue_date.year)

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: InvoiceUpdate,
    ) -> Invoice:
        """Modifica i campi di testata di una fattura non pagata né annullata."""
        return await self.update_fields(
            db,
            organization_id,
            invoice_id,
            data,
            EDITABLE_STATUSES,
            invoice_machine.ensure_editable,
            validate=_validate_due_date,
        )

    # ------------------------------------------------------------
    # Transizioni di stato
    # ------------------------------------------------------------
    async def send(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        version: int,
    ) -> Invoice:
        """
        draft → sent.

        Raises:
            StateConflictError: Se la fattura non è in bozza
            BusinessValidationError: Se la fattura non ha righe
        """
        invoice = await self.get_by_id(db, organization_id, invoice_id)
        invoice_machine.ensure_can_send(invoice)
        ensure_version(invoice, version)

        await claim_document(
            db, invoice, version,
            invoice_machine.allowed_sources(InvoiceStatus.SENT),
            {"status": InvoiceStatus.SENT.value, "sent_at": utcnow()},
        )
        logger.info("Fattura %s inviata", invoice.number)
        return invoice

    async def pay(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: InvoicePayment,
    ) -> Invoice:
        """
        Registra il pagamento (sent | overdue → paid).

        Il pagamento è un evento unico: una seconda registrazione sulla
        stessa fattura viene rifiutata.

        Raises:
            StateConflictError: Se la fattura non è in attesa di pagamento
            VersionConflictError: Versione non aggiornata
        """
        invoice = await self.get_by_id(db, organization_id, invoice_id)
        invoice_machine.ensure_can_pay(invoice)
        ensure_version(invoice, data.version)

        await claim_document(
            db, invoice, data.version,
            invoice_machine.allowed_sources(InvoiceStatus.PAID),
            {
                "status": InvoiceStatus.PAID.value,
                "payment_method": data.payment_method.value,
                "paid_date": data.paid_date or datetime.date.today(),
                "payment_reference": data.reference,
                "payment_notes": data.notes,
            },
        )
        logger.info(
            "Fattura %s pagata (%s, %s)",
            invoice.number, invoice.payment_method, invoice.total,
        )
        return invoice

    async def cancel(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        invoice_id: uuid.UUID,
        version: int,
    ) -> Invoice:
        """
        Annullamento (draft | sent | overdue → cancelled).

        L'eventuale ordine di lavoro collegato resta fatturato: la fattura
        annullata continua a occupare il riferimento.
        """
        invoice = await self.get_by_id(db, organization_id, invoice_id)
        invoice_machine.ensure_can_cancel(invoice)
        ensure_version(invoice, version)

        await claim_document(
            db, invoice, version,
            invoice_machine.allowed_sources(InvoiceStatus.CANCELLED),
            {"status": InvoiceStatus.CANCELLED.value, "cancelled_at": utcnow()},
        )
        logger.info("Fattura %s annullata", invoice.number)
        return invoice

    # ------------------------------------------------------------
    # Statistiche
    # ------------------------------------------------------------
    async def get_metrics(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> InvoiceMetrics:
        """Riepilogo crediti aperti, scaduti e incassati."""
        result = await db.execute(
            select(Invoice.status, func.count(), func.coalesce(func.sum(Invoice.total), 0))
            .where(Invoice.organization_id == organization_id)
            .group_by(Invoice.status)
        )
        by_status = {
            status: (count, Decimal(str(amount)))
            for status, count, amount in result.all()
        }

        def _sum(statuses) -> tuple[int, Decimal]:
            count, amount = 0, ZERO
            for status in statuses:
                c, a = by_status.get(status.value, (0, ZERO))
                count += c
                amount += a
            return count, round_money(amount)

        count_unpaid, total_unpaid = _sum(UNPAID_STATUSES)
        count_overdue, total_overdue = _sum([InvoiceStatus.OVERDUE])
        count_paid, total_paid = _sum([InvoiceStatus.PAID])

        return InvoiceMetrics(
            total_unpaid=total_unpaid,
            count_unpaid=count_unpaid,
            total_overdue=total_overdue,
            count_overdue=count_overdue,
            total_paid=total_paid,
            count_paid=count_paid,
        )


# Istanza singleton del service
invoice_service = InvoiceService()
