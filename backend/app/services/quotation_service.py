"""
Service per la gestione dei Preventivi
Progetto: Garage Documents (Documenti Commerciali Officina)

Creazione, modifica, ciclo di vita (invio, approvazione, rifiuto,
annullamento), duplicazione, verifica di convertibilità e statistiche.
La conversione in ordine di lavoro è in app.services.conversion_service.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.models import Quotation, QuotationItem
from app.schemas.quotation import (
    EDITABLE_STATUSES,
    ConversionChecks,
    ConversionReadiness,
    QuotationCreate,
    QuotationMetrics,
    QuotationReject,
    QuotationStatus,
    QuotationUpdate,
)
from app.services.document_base import DocumentService
from app.services.guards import claim_document, ensure_version, utcnow
from app.services.lifecycle import quotation_machine
from app.services.line_calculator import ZERO, round_money
from app.services.numbering import DocumentType

# Logger per questo modulo
logger = logging.getLogger(__name__)


class QuotationService(DocumentService):
    """
    Service per la gestione dei preventivi.

    I metodi di transizione seguono tutti lo stesso schema: controllo di
    stato sulla copia letta, confronto di versione, claim condizionato
    che scrive stato e timestamp nello stesso UPDATE.
    """

    model = Quotation
    item_model = QuotationItem
    document_type = DocumentType.QUOTATION
    label = "Preventivo"
    line_editable_statuses = EDITABLE_STATUSES

    async def ensure_lines_editable(self, db: AsyncSession, document, action: str) -> None:
        quotation_machine.ensure_editable(document, action)

    def status_conditions(self, status_filter: Optional[QuotationStatus]) -> list:
        """
        Il filtro "expired" seleziona i preventivi inviati oltre la validità;
        il filtro "sent" li esclude.
        """
        if status_filter is None:
            return []
        today = datetime.date.today()
        if status_filter == QuotationStatus.EXPIRED:
            return [
                Quotation.status == QuotationStatus.SENT.value,
                Quotation.valid_until < today,
            ]
        if status_filter == QuotationStatus.SENT:
            return [
                Quotation.status == QuotationStatus.SENT.value,
                or_(Quotation.valid_until.is_(None), Quotation.valid_until >= today),
            ]
        return [Quotation.status == status_filter.value]

    # ------------------------------------------------------------
    # Creazione e modifica
    # ------------------------------------------------------------
    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        data: QuotationCreate,
    ) -> Quotation:
        """
        Crea un preventivo in bozza con numero Q-YYYY-NNNN.

        Args:
            db: Sessione database
            organization_id: Organizzazione del chiamante
            data: Dati del preventivo con righe opzionali

        Returns:
            Quotation: Il preventivo creato con totali calcolati

        Raises:
            NotFoundError: Cliente, veicolo o voce di catalogo inesistente
            BusinessValidationError: Righe non valide
        """
        header = await self.prepare_header(db, organization_id, data.customer_id, data.vehicle_id)
        items = await self.build_items(db, organization_id, data.items)

        valid_until = data.valid_until or (
            datetime.date.today() + datetime.timedelta(days=settings.quotation_validity_days)
        )
        quotation = Quotation(
            **header,
            status=QuotationStatus.DRAFT.value,
            description=data.description,
            notes=data.notes,
            valid_until=valid_until,
            converted_to_order=False,
            items=items,
        )
        return await self.insert_document(db, quotation)

    async def update(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
        data: QuotationUpdate,
    ) -> Quotation:
        """Modifica i campi di un preventivo in bozza."""
        return await self.update_fields(
            db,
            organization_id,
            quotation_id,
            data,
            EDITABLE_STATUSES,
            quotation_machine.ensure_editable,
        )

    async def duplicate(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
    ) -> Quotation:
        """
        Crea una nuova bozza copiando testata e righe di un preventivo esistente.

        Il preventivo di origine non viene modificato; la copia riceve un
        nuovo numero e una nuova data di validità.
        """
        source = await self.get_by_id(db, organization_id, quotation_id)
        # Le righe restano quelle salvate anche se il catalogo è cambiato
        items = [
            self.new_item(
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
            for item in source.items
        ]
        copy = Quotation(
            organization_id=organization_id,
            customer_id=source.customer_id,
            vehicle_id=source.vehicle_id,
            currency=source.currency,
            version=1,
            status=QuotationStatus.DRAFT.value,
            description=source.description,
            notes=source.notes,
            valid_until=datetime.date.today() + datetime.timedelta(days=settings.quotation_validity_days),
            converted_to_order=False,
            items=items,
        )
        await self.insert_document(db, copy)
        logger.info("Preventivo %s duplicato in %s", source.number, copy.number)
        return copy

    # ------------------------------------------------------------
    # Transizioni di stato
    # ------------------------------------------------------------
    async def send(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
        version: int,
    ) -> Quotation:
        """
        draft → sent.

        Raises:
            StateConflictError: Se il preventivo non è in bozza
            BusinessValidationError: Se il preventivo non ha righe
            VersionConflictError: Versione non aggiornata
        """
        quotation = await self.get_by_id(db, organization_id, quotation_id)
        quotation_machine.ensure_can_send(quotation)
        ensure_version(quotation, version)

        await claim_document(
            db, quotation, version,
            quotation_machine.allowed_sources(QuotationStatus.SENT),
            {"status": QuotationStatus.SENT.value, "sent_at": utcnow()},
        )
        logger.info("Preventivo %s inviato", quotation.number)
        return quotation

    async def approve(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
        version: int,
    ) -> Quotation:
        """
        sent → approved.

        Raises:
            StateConflictError: Se il preventivo non è inviato o è scaduto
        """
        quotation = await self.get_by_id(db, organization_id, quotation_id)
        quotation_machine.ensure_can_approve(quotation, settings.allow_expired_quotation_approval)
        ensure_version(quotation, version)

        await claim_document(
            db, quotation, version,
            quotation_machine.allowed_sources(QuotationStatus.APPROVED),
            {"status": QuotationStatus.APPROVED.value, "approved_at": utcnow()},
        )
        logger.info("Preventivo %s approvato", quotation.number)
        return quotation

    async def reject(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
        data: QuotationReject,
    ) -> Quotation:
        """sent → rejected, con motivo obbligatorio."""
        quotation = await self.get_by_id(db, organization_id, quotation_id)
        quotation_machine.ensure_transition(quotation, QuotationStatus.REJECTED, "rifiuto")
        ensure_version(quotation, data.version)

        await claim_document(
            db, quotation, data.version,
            quotation_machine.allowed_sources(QuotationStatus.REJECTED),
            {
                "status": QuotationStatus.REJECTED.value,
                "rejected_at": utcnow(),
                "rejection_reason": data.reason,
            },
        )
        logger.info("Preventivo %s rifiutato", quotation.number)
        return quotation

    async def cancel(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
        version: int,
    ) -> Quotation:
        """
        Annullamento (soft): il preventivo resta consultabile in stato cancelled.

        Raises:
            StateConflictError: Se il preventivo è già convertito o annullato
        """
        quotation = await self.get_by_id(db, organization_id, quotation_id)
        quotation_machine.ensure_can_cancel(quotation)
        ensure_version(quotation, version)

        await claim_document(
            db, quotation, version,
            quotation_machine.allowed_sources(QuotationStatus.CANCELLED),
            {"status": QuotationStatus.CANCELLED.value, "cancelled_at": utcnow()},
        )
        logger.info("Preventivo %s annullato", quotation.number)
        return quotation

    # ------------------------------------------------------------
    # Letture aggregate
    # ------------------------------------------------------------
    async def conversion_readiness(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        quotation_id: uuid.UUID,
    ) -> ConversionReadiness:
        """Verifica se il preventivo è convertibile, senza modificarlo."""
        quotation = await self.get_by_id(db, organization_id, quotation_id)

        checks = ConversionChecks(
            is_approved=quotation.status == QuotationStatus.APPROVED.value,
            has_items=bool(quotation.items),
            not_already_converted=not quotation.converted_to_order,
        )
        issues = []
        if not checks.is_approved:
            issues.append(f"Il preventivo è in stato '{quotation.status}', deve essere 'approved'")
        if not checks.has_items:
            issues.append("Il preventivo non ha righe")
        if not checks.not_already_converted:
            issues.append(f"Il preventivo è già stato convertito nell'ordine {quotation.order_id}")

        return ConversionReadiness(
            can_convert=not issues,
            checks=checks,
            issues=issues,
        )

    async def get_metrics(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
    ) -> QuotationMetrics:
        """
        Statistiche dei preventivi dell'organizzazione.

        I preventivi scaduti sono contati separatamente dagli inviati.
        """
        result = await db.execute(
            select(Quotation.status, Quotation.valid_until, Quotation.total).where(
                Quotation.organization_id == organization_id
            )
        )
        rows = result.all()

        today = datetime.date.today()
        counts = {status: 0 for status in QuotationStatus}
        total_value = ZERO
        valued = 0
        for row in rows:
            status = quotation_machine.display_status(row, today)
            counts[status] += 1
            if status != QuotationStatus.CANCELLED:
                total_value += row.total
                valued += 1

        approved = counts[QuotationStatus.APPROVED]
        converted = counts[QuotationStatus.CONVERTED]
        rejected = counts[QuotationStatus.REJECTED]

        return QuotationMetrics(
            counts=counts,
            total=len(rows),
            total_value=round_money(total_value),
            average_value=round_money(total_value / valued) if valued else ZERO,
            approval_rate=_rate(approved + converted, approved + converted + rejected),
            conversion_rate=_rate(converted, approved + converted),
        )


def _rate(numerator: int, denominator: int) -> Decimal:
    """Rapporto arrotondato a 4 decimali, 0 se il denominatore è 0."""
    if not denominator:
        return Decimal("0")
    return (Decimal(numerator) / Decimal(denominator)).quantize(Decimal("0.0001"))


# Istanza singleton del service
quotation_service = QuotationService()
