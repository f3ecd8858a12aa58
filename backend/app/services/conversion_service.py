"""
Conversioni tra documenti
Progetto: Garage Documents (Documenti Commerciali Officina)

- Preventivo approvato → Ordine di lavoro: claim del preventivo e
  creazione dell'ordine nello stesso savepoint (tutto o niente).
- Ordine completato → Fattura: righe generate con una strategia esplicita
  (righe di servizio oppure righe dell'ordine), registrata sulla fattura.
  Se l'inserimento delle righe fallisce la fattura appena creata viene
  eliminata prima di propagare l'errore.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BusinessValidationError,
    DuplicateConversionError,
    IntegrityFailureError,
    StateConflictError,
)
from app.models import Invoice, InvoiceItem, Quotation, WorkOrder
from app.schemas.invoice import InvoiceStatus, LineSource
from app.schemas.quotation import QuotationStatus
from app.schemas.work_order import InvoiceFromWorkOrder, InvoiceLineSource, WorkOrderStatus
from app.services.guards import claim_document, ensure_version, utcnow
from app.services.invoice_service import default_due_date, invoice_service
from app.services.lifecycle import quotation_machine
from app.services.line_calculator import HUNDRED, ZERO, recalculate_document, round_money
from app.services.quotation_service import quotation_service
from app.services.work_order_service import work_order_service

# Logger per questo modulo
logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Strategie di generazione righe fattura
# ------------------------------------------------------------

def service_line_values(line) -> dict[str, Any]:
    """
    Riga fattura da una riga di servizio.

    Il totale concordato della riga è autorevole: il prezzo unitario
    fatturato è total / quantity, senza sconto.
    """
    return {
        "item_type": "service" if line.service_id else "labor",
        "service_id": line.service_id,
        "product_id": None,
        "description": line.description,
        "quantity": line.quantity,
        "unit_price": round_money(line.total / line.quantity),
        "discount_percent": ZERO,
        "tax_percent": line.tax_percent,
    }


def order_item_values(item) -> dict[str, Any]:
    """
    Riga fattura da una riga generica dell'ordine.

    Il lordo viene ricavato dal totale salvato togliendo IVA e sconto:
    net = total / (1 + tax/100), gross = net / (1 - discount/100).
    Con sconto al 100% il totale è zero e si usa quantity × unit_price.
    """
    discount = Decimal(item.discount_percent)
    tax = Decimal(item.tax_percent)
    if discount == HUNDRED:
        gross = item.quantity * item.unit_price
    else:
        net = item.total / (1 + tax / HUNDRED)
        gross = net / (1 - discount / HUNDRED)
    return {
        "item_type": item.item_type,
        "service_id": item.service_id,
        "product_id": item.product_id,
        "description": item.description,
        "quantity": item.quantity,
        "unit_price": round_money(gross / item.quantity),
        "discount_percent": discount,
        "tax_percent": tax,
    }


def select_line_source(work_order: WorkOrder, requested: InvoiceLineSource) -> LineSource:
    """
    Sceglie una sola volta l'origine delle righe.

    AUTO usa le righe di servizio se presenti, altrimenti le righe
    dell'ordine. Le due origini non vengono mai mescolate.

    Raises:
        BusinessValidationError: Se l'origine scelta non ha righe
    """
    if requested == InvoiceLineSource.AUTO:
        source = LineSource.SERVICE_LINES if work_order.service_lines else LineSource.ORDER_ITEMS
    else:
        source = LineSource(requested.value)

    records = work_order.service_lines if source == LineSource.SERVICE_LINES else work_order.items
    if not records:
        raise BusinessValidationError(
            f"L'ordine {work_order.number} non ha righe da fatturare ({source.value})",
            extra={"field": "line_source"},
        )
    return source


def _is_constraint(exc: IntegrityError, *markers: str) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in markers)


class ConversionService:
    """Orchestrazione delle conversioni tra tipi di documento."""

    # ------------------------------------------------------------
    # Preventivo → Ordine di lavoro
    # ------------------------------------------------------------
    async def quotation_to_work_order(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
        version: int,
    ) -> WorkOrder:
        """
        Converte un preventivo approvato in un ordine di lavoro pending.

        Il claim del preventivo (approved → converted, converted_to_order,
        order_id) e l'inserimento dell'ordine con le sue righe avvengono
        nello stesso savepoint: una seconda conversione trova il preventivo
        già convertito e fallisce.

        Args:
            db: Sessione database
            organization_id: Organizzazione del chiamante
            quotation_id: Preventivo da convertire
            version: Versione del preventivo letta dal client

        Returns:
            WorkOrder: L'ordine creato

        Raises:
            StateConflictError: Preventivo non approvato o già convertito
            VersionConflictError: Versione non aggiornata
            IntegrityFailureError: Errore di persistenza durante la conversione
        """
        quotation: Quotation = await quotation_service.get_by_id(db, organization_id, quotation_id)
        quotation_machine.ensure_transition(quotation, QuotationStatus.CONVERTED, "conversione")
        if quotation.converted_to_order:
            raise StateConflictError(
                f"Il preventivo {quotation.number} è già stato convertito",
                error_code="ALREADY_CONVERTED",
                extra={"order_id": str(quotation.order_id)},
            )
        if not quotation.items:
            raise BusinessValidationError(
                f"Il preventivo {quotation.number} non ha righe",
                extra={"field": "items"},
            )
        ensure_version(quotation, version)

        items = [
            work_order_service.new_item(
                {
                    "item_type": item.item_type,
                    "service_id": item.service_id,
                    "product_id": item.product_id,
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "discount_percent": item.discount_percent,
                    "tax_percent": item.tax_percent,
                },
                item.position,
            )
            for item in quotation.items
        ]
        work_order_id = uuid.uuid4()

        try:
            async with db.begin_nested():
                await claim_document(
                    db, quotation, version,
                    [QuotationStatus.APPROVED],
                    {
                        "status": QuotationStatus.CONVERTED.value,
                        "converted_to_order": True,
                        "order_id": work_order_id,
                        "converted_at": utcnow(),
                    },
                )
                work_order = WorkOrder(
                    id=work_order_id,
                    organization_id=organization_id,
                    customer_id=quotation.customer_id,
                    vehicle_id=quotation.vehicle_id,
                    quotation_id=quotation.id,
                    status=WorkOrderStatus.PENDING.value,
                    description=quotation.description,
                    notes=quotation.notes,
                    currency=quotation.currency,
                    version=1,
                    items=items,
                    service_lines=[],
                )
                await work_order_service.insert_document(db, work_order)
        except IntegrityError as exc:
            # I valori del claim non vengono scaduti dal rollback del savepoint
            await db.refresh(quotation)
            if _is_constraint(exc, "uq_work_orders_quotation", "work_orders.quotation_id"):
                raise StateConflictError(
                    f"Il preventivo {quotation.number} è già stato convertito",
                    error_code="ALREADY_CONVERTED",
                ) from exc
            logger.error("Errore di integrità nella conversione di %s: %s", quotation.number, exc)
            raise IntegrityFailureError(
                f"Conversione del preventivo {quotation.number} non riuscita"
            ) from exc
        except SQLAlchemyError as exc:
            await db.refresh(quotation)
            logger.error("Errore database nella conversione di %s: %s", quotation.number, exc)
            raise IntegrityFailureError(
                f"Conversione del preventivo {quotation.number} non riuscita"
            ) from exc

        logger.info("Preventivo %s convertito nell'ordine %s", quotation.number, work_order.number)
        return work_order

    # ------------------------------------------------------------
    # Ordine di lavoro → Fattura
    # ------------------------------------------------------------
    async def work_order_to_invoice(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        data: InvoiceFromWorkOrder,
    ) -> Invoice:
        """
        Genera la fattura in bozza di un ordine completato.

        Args:
            db: Sessione database
            organization_id: Organizzazione del chiamante
            work_order_id: Ordine da fatturare
            data: Versione dell'ordine, strategia delle righe e date

        Returns:
            Invoice: La fattura creata, con line_source valorizzato

        Raises:
            DuplicateConversionError: Se l'ordine ha già una fattura
            StateConflictError: Se l'ordine non è completato
            BusinessValidationError: Se l'origine scelta non ha righe
            IntegrityFailureError: Se l'inserimento delle righe fallisce
        """
        work_order: WorkOrder = await work_order_service.get_by_id(db, organization_id, work_order_id)

        existing = await work_order_service.get_invoice_id(db, work_order.id)
        if existing is not None:
            raise self._duplicate(work_order, existing)

        if work_order.status != WorkOrderStatus.COMPLETED.value:
            logger.warning("Fatturazione rifiutata: ordine %s in stato %s", work_order.number, work_order.status)
            raise StateConflictError(
                f"L'ordine {work_order.number} deve essere completato per essere fatturato "
                f"(stato attuale: '{work_order.status}')",
                extra={"status": work_order.status, "action": "fatturazione"},
            )
        ensure_version(work_order, data.version)

        source = select_line_source(work_order, data.line_source)
        if source == LineSource.SERVICE_LINES:
            values = [service_line_values(line) for line in work_order.service_lines]
        else:
            values = [order_item_values(item) for item in work_order.items]
        items = [invoice_service.new_item(v, position) for position, v in enumerate(values, start=1)]

        issue_date = data.issue_date or datetime.date.today()
        due_date = data.due_date or default_due_date(issue_date)

        # L'ordine deve essere ancora completed al momento della scrittura
        await claim_document(db, work_order, data.version, [WorkOrderStatus.COMPLETED])

        invoice = Invoice(
            organization_id=organization_id,
            customer_id=work_order.customer_id,
            vehicle_id=work_order.vehicle_id,
            work_order_id=work_order.id,
            status=InvoiceStatus.DRAFT.value,
            line_source=source.value,
            description=work_order.description,
            currency=work_order.currency,
            version=1,
            issue_date=issue_date,
            due_date=due_date,
            items=[],
        )
        try:
            await invoice_service.insert_document(db, invoice, year=issue_date.year)
        except IntegrityError as exc:
            if _is_constraint(exc, "uq_invoices_work_order", "invoices.work_order_id"):
                raise self._duplicate(work_order, None) from exc
            raise

        # Il rollback del savepoint scade la fattura: id e numero vanno letti prima
        invoice_id, invoice_number = invoice.id, invoice.number
        try:
            await self._attach_items(db, invoice, items)
        except SQLAlchemyError as exc:
            logger.error(
                "Inserimento righe fallito per la fattura %s: %s. Fattura eliminata",
                invoice_number, exc,
            )
            await self._discard_invoice(db, invoice, invoice_id)
            raise IntegrityFailureError(
                f"Generazione della fattura per l'ordine {work_order.number} non riuscita"
            ) from exc

        logger.info(
            "Ordine %s fatturato con %s (%s, %d righe)",
            work_order.number, invoice.number, source.value, len(items),
        )
        return invoice

    async def _attach_items(self, db: AsyncSession, invoice: Invoice, items: list) -> None:
        """Inserisce le righe della fattura e ne ricalcola i totali."""
        async with db.begin_nested():
            invoice.items.extend(items)
            recalculate_document(invoice)
            await db.flush()

    async def _discard_invoice(self, db: AsyncSession, invoice: Invoice, invoice_id: uuid.UUID) -> None:
        """Elimina la fattura rimasta senza righe e la rimuove dalla sessione."""
        await db.execute(
            delete(InvoiceItem)
            .where(InvoiceItem.invoice_id == invoice_id)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            delete(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(synchronize_session=False)
        )
        db.expunge(invoice)

    def _duplicate(self, work_order: WorkOrder, invoice_id: Optional[uuid.UUID]) -> DuplicateConversionError:
        logger.warning("Ordine %s già fatturato", work_order.number)
        return DuplicateConversionError(
            f"L'ordine {work_order.number} è già stato fatturato",
            extra={"invoice_id": str(invoice_id)} if invoice_id else None,
        )


# Istanza singleton del service
conversion_service = ConversionService()
