"""
Service per la gestione degli Ordini di Lavoro
Progetto: Garage Documents (Documenti Commerciali Officina)

Creazione diretta, modifica, pipeline di stato (avanzamento, ritorno,
cambio diretto), righe generiche, righe di servizio e statistiche.
La generazione della fattura è in app.services.conversion_service.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BusinessValidationError, NotFoundError, StateConflictError
from app.models import Invoice, ServiceItem, WorkOrder, WorkOrderItem, WorkOrderServiceLine
from app.schemas.work_order import (
    LOCKED_STATUSES,
    TERMINAL_STATUSES,
    ServiceLineCreate,
    WorkOrderCreate,
    WorkOrderMetrics,
    WorkOrderStatus,
    WorkOrderStatusUpdate,
    WorkOrderUpdate,
)
from app.services.document_base import DocumentService
from app.services.guards import (
    claim_document,
    ensure_version,
    get_catalog_entry,
    next_position,
    utcnow,
)
from app.services.lifecycle import work_order_machine
from app.services.line_calculator import ZERO, round_money
from app.services.numbering import DocumentType

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Stati in cui righe e righe di servizio sono modificabili
LINE_EDITABLE_STATUSES = [s for s in WorkOrderStatus if s not in LOCKED_STATUSES]

# Stati in cui i campi di testata sono modificabili
EDITABLE_STATUSES = [s for s in WorkOrderStatus if s not in TERMINAL_STATUSES]


class WorkOrderService(DocumentService):
    """
    Service per la gestione degli ordini di lavoro.

    I totali dell'ordine derivano dalle righe generiche; le righe di
    servizio portano un totale concordato usato solo in fatturazione.
    """

    model = WorkOrder
    item_model = WorkOrderItem
    document_type = DocumentType.WORK_ORDER
    label = "Ordine di lavoro"
    line_editable_statuses = LINE_EDITABLE_STATUSES

    async def get_invoice_id(self, db: AsyncSession, work_order_id: uuid.UUID) -> Optional[uuid.UUID]:
        """ID della fattura generata dall'ordine, se esiste."""
        result = await db.execute(
            select(Invoice.id).where(Invoice.work_order_id == work_order_id)
        )
        return result.scalar_one_or_none()

    async def ensure_lines_editable(self, db: AsyncSession, document, action: str) -> None:
        """
        Righe modificabili fuori da completed/delivered e solo finché
        l'ordine non è stato fatturato.
        """
        work_order_machine.ensure_lines_editable(document, action)
        invoice_id = await self.get_invoice_id(db, document.id)
        if invoice_id is not None:
            logger.warning("Ordine %s già fatturato: %s rifiutata", document.number, action)
            raise StateConflictError(
                f"L'ordine {document.number} è già stato fatturato: righe non modificabili",
                extra={"invoice_id": str(invoice_id), "action": action},
            )

    # ------------------------------------------------------------
    # Creazione e modifica
    # ------------------------------------------------------------
    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: WorkOrderCreate,
    ) -> WorkOrder:
        """
        Crea un ordine di lavoro in stato pending con numero WO-YYYY-NNNN.

        Raises:
            NotFoundError: Cliente, veicolo o voce di catalogo inesistente
            BusinessValidationError: Righe non valide
        """
        header = await self.prepare_header(db, organization_id, data.customer_id, data.vehicle_id)
        items = await self.build_items(db, organization_id, data.items)

        work_order = WorkOrder(
            **header,
            status=WorkOrderStatus.PENDING.value,
            description=data.description,
            diagnosis=data.diagnosis,
            estimated_completion=data.estimated_completion,
            notes=data.notes,
            items=items,
            service_lines=[],
        )
        return await self.insert_document(db, work_order)

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        data: WorkOrderUpdate,
    ) -> WorkOrder:
        """Aggiorna i campi di testata (non lo stato)."""
        return await self.update_fields(
            db,
            organization_id,
            work_order_id,
            data,
            EDITABLE_STATUSES,
            work_order_machine.ensure_editable,
        )

    # ------------------------------------------------------------
    # Pipeline di stato
    # ------------------------------------------------------------
    async def _move(self, db: AsyncSession, work_order: WorkOrder, target: WorkOrderStatus, version: int) -> WorkOrder:
        """Scrive il nuovo stato con il claim condizionato sullo stato letto."""
        previous = work_order.status
        values = work_order_machine.transition_values(work_order, target, utcnow())
        await claim_document(db, work_order, version, [previous], values)
        logger.info("Ordine %s: %s → %s", work_order.number, previous, target.value)
        return work_order

    async def advance(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        version: int,
    ) -> WorkOrder:
        """
        Avanza l'ordine allo stato successivo della pipeline.

        Raises:
            StateConflictError: Se l'ordine è già consegnato
            VersionConflictError: Versione non aggiornata
        """
        work_order = await self.get_by_id(db, organization_id, work_order_id)
        target = work_order_machine.next_status(work_order)
        ensure_version(work_order, version)
        return await self._move(db, work_order, target, version)

    async def revert(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        version: int,
    ) -> WorkOrder:
        """
        Riporta l'ordine allo stato precedente della pipeline.

        Raises:
            StateConflictError: Se l'ordine è pending o consegnato
        """
        work_order = await self.get_by_id(db, organization_id, work_order_id)
        target = work_order_machine.previous_status(work_order)
        ensure_version(work_order, version)
        return await self._move(db, work_order, target, version)

    async def set_status(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        data: WorkOrderStatusUpdate,
    ) -> WorkOrder:
        """Cambio diretto di stato verso qualunque stato diverso dall'attuale."""
        work_order = await self.get_by_id(db, organization_id, work_order_id)
        work_order_machine.ensure_status_change(work_order, data.status)
        ensure_version(work_order, data.version)
        return await self._move(db, work_order, data.status, data.version)

    # ------------------------------------------------------------
    # Righe di servizio
    # ------------------------------------------------------------
    async def list_service_lines(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
    ) -> list[WorkOrderServiceLine]:
        work_order = await self.get_by_id(db, organization_id, work_order_id)
        return list(work_order.service_lines)

    async def add_service_line(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        data: ServiceLineCreate,
    ) -> WorkOrder:
        """
        Aggiunge una riga di servizio.

        Con service_id, descrizione, prezzo e aliquota mancanti vengono presi
        dal catalogo. Se total non è indicato vale quantity × unit_price.

        Raises:
            NotFoundError: Servizio a catalogo inesistente
            BusinessValidationError: Descrizione o prezzo mancanti
        """
        work_order = await self.get_by_id(db, organization_id, work_order_id)
        await self.ensure_lines_editable(db, work_order, "aggiunta riga di servizio")
        ensure_version(work_order, data.version)

        entry = None
        if data.service_id is not None:
            entry = await get_catalog_entry(db, organization_id, ServiceItem, data.service_id, "service_id")

        description = data.description or (entry.name if entry is not None else None)
        unit_price = data.unit_price if data.unit_price is not None else (
            entry.unit_price if entry is not None else None
        )
        tax_percent = data.tax_percent if data.tax_percent is not None else (
            entry.tax_percent if entry is not None else settings.default_tax_percent
        )
        if not description:
            raise BusinessValidationError(
                "description è obbligatoria per le righe di servizio libere",
                extra={"field": "description"},
            )
        if unit_price is None:
            raise BusinessValidationError(
                "unit_price è obbligatorio per le righe di servizio libere",
                extra={"field": "unit_price"},
            )
        total = data.total if data.total is not None else round_money(data.quantity * Decimal(unit_price))

        await claim_document(db, work_order, data.version, LINE_EDITABLE_STATUSES)
        work_order.service_lines.append(
            WorkOrderServiceLine(
                service_id=data.service_id,
                position=next_position(work_order.service_lines),
                description=description,
                quantity=data.quantity,
                unit_price=Decimal(unit_price),
                tax_percent=Decimal(tax_percent),
                total=total,
            )
        )
        await db.flush()

        logger.info("Aggiunta riga di servizio all'ordine %s", work_order.number)
        return work_order

    async def remove_service_line(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        work_order_id: uuid.UUID,
        line_id: uuid.UUID,
        version: int,
    ) -> WorkOrder:
        """
        Rimuove una riga di servizio.

        Raises:
            NotFoundError: Se la riga non appartiene all'ordine
        """
        work_order = await self.get_by_id(db, organization_id, work_order_id)
        await self.ensure_lines_editable(db, work_order, "rimozione riga di servizio")
        ensure_version(work_order, version)

        line = next((sl for sl in work_order.service_lines if sl.id == line_id), None)
        if line is None:
            raise NotFoundError(f"Riga di servizio con ID {line_id} non trovata")

        await claim_document(db, work_order, version, LINE_EDITABLE_STATUSES)
        work_order.service_lines.remove(line)
        await db.flush()

        logger.info("Rimossa riga di servizio %s dall'ordine %s", line_id, work_order.number)
        return work_order

    # ------------------------------------------------------------
    # Statistiche
    # ------------------------------------------------------------
    async def get_metrics(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> WorkOrderMetrics:
        """Conteggi per stato e ricavi degli ordini completati e consegnati."""
        result = await db.execute(
            select(WorkOrder.status, func.count(), func.coalesce(func.sum(WorkOrder.total), 0))
            .where(WorkOrder.organization_id == organization_id)
            .group_by(WorkOrder.status)
        )

        counts = {status: 0 for status in WorkOrderStatus}
        revenue = ZERO
        for status, count, amount in result.all():
            counts[WorkOrderStatus(status)] = count
            if status in (WorkOrderStatus.COMPLETED.value, WorkOrderStatus.DELIVERED.value):
                revenue += Decimal(str(amount))

        return WorkOrderMetrics(
            counts=counts,
            total=sum(counts.values()),
            total_revenue=round_money(revenue),
        )


# Istanza singleton del service
work_order_service = WorkOrderService()
