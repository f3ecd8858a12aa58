"""
Service base per i documenti commerciali
Progetto: Garage Documents (Documenti Commerciali Officina)

Logica comune a preventivi, ordini di lavoro e fatture: caricamento per
organizzazione, lista paginata, creazione con numerazione, modifica dei
campi di testata e gestione delle righe con ricalcolo dei totali.

Ordine dei controlli in ogni operazione di modifica:
caricamento (404) → stato (400) → versione (409) → validazione input (400)
→ claim atomico della versione → scrittura. Un'operazione rifiutata non
modifica né lo stato né la versione del documento.
"""

import datetime
import logging
import uuid
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BusinessValidationError, NotFoundError
from app.schemas.line_item import LineItemAdd, LineItemCreate, LineItemUpdate
from app.services.guards import (
    claim_document,
    ensure_customer,
    ensure_vehicle,
    ensure_version,
    next_position,
    resolve_line_values,
)
from app.services.line_calculator import compute_line, recalculate_document
from app.services.numbering import DocumentType, number_generator

# Logger per questo modulo
logger = logging.getLogger(__name__)


class DocumentService:
    """
    Service base parametrizzato sul tipo di documento.

    Le sottoclassi definiscono modello, modello riga, tipo di numerazione,
    gli stati in cui le righe sono modificabili e il controllo di stato
    da applicare prima di ogni modifica alle righe.
    """

    model: Any = None
    item_model: Any = None
    document_type: DocumentType
    label: str = "Documento"
    line_editable_statuses: list = []

    # ------------------------------------------------------------
    # Hook per le sottoclassi
    # ------------------------------------------------------------
    async def ensure_lines_editable(self, db: AsyncSession, document, action: str) -> None:
        """Verifica che le righe del documento siano modificabili."""
        raise NotImplementedError

    def status_conditions(self, status_filter: Optional[str]) -> list:
        """Condizioni SQL per il filtro di stato della lista."""
        if status_filter is None:
            return []
        return [self.model.status == getattr(status_filter, "value", status_filter)]

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------
    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_id: uuid.UUID,
    ):
        """
        Recupera un documento dell'organizzazione con le sue righe.

        Lo stato viene sempre riletto dal database, anche se l'oggetto
        è già presente nella sessione.

        Raises:
            NotFoundError: Se il documento non esiste o è di un'altra organizzazione
        """
        result = await db.execute(
            select(self.model)
            .where(
                self.model.id == document_id,
                self.model.organization_id == organization_id,
            )
            .execution_options(populate_existing=True)
        )
        document = result.scalar_one_or_none()
        if not document:
            logger.warning("%s non trovato: %s", self.label, document_id)
            raise NotFoundError(f"{self.label} con ID {document_id} non trovato")
        return document

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        status_filter: Optional[str] = None,
        customer_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list, int]:
        """
        Recupera la lista paginata dei documenti.

        Args:
            db: Sessione database
            organization_id: Organizzazione del chiamante
            status_filter: Filtro opzionale per stato
            customer_id: Filtro opzionale per cliente
            search: Ricerca su numero e descrizione
            page: Numero pagina (da 1)
            per_page: Elementi per pagina

        Returns:
            Tuple di (lista documenti, totale count)
        """
        conditions = [self.model.organization_id == organization_id]
        conditions.extend(self.status_conditions(status_filter))

        if customer_id:
            conditions.append(self.model.customer_id == customer_id)

        if search:
            search_term = f"%{search.strip()}%"
            conditions.append(
                self.model.number.ilike(search_term)
                | self.model.description.ilike(search_term)
            )

        query = (
            select(self.model)
            .where(and_(*conditions))
            .order_by(self.model.created_at.desc(), self.model.number.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(query)
        documents = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(self.model).where(and_(*conditions))
        )
        total = count_result.scalar() or 0

        logger.debug("Recuperati %d %s su %d totali", len(documents), self.label, total)
        return documents, total

    async def list_items(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_id: uuid.UUID,
    ) -> list:
        """Righe del documento ordinate per posizione."""
        document = await self.get_by_id(db, organization_id, document_id)
        return list(document.items)

    # ------------------------------------------------------------
    # Creazione
    # ------------------------------------------------------------
    async def build_items(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        items_data: Iterable[LineItemCreate],
        start_position: int = 1,
    ) -> list:
        """
        Valida l'input delle righe e costruisce i modelli riga calcolati.

        Tutte le righe vengono validate prima di qualunque scrittura.
        """
        items = []
        for offset, item_data in enumerate(items_data):
            values = await resolve_line_values(db, organization_id, item_data)
            items.append(self.new_item(values, start_position + offset))
        return items

    def new_item(self, values: dict[str, Any], position: int):
        """Crea un modello riga con importi derivati dal calcolatore."""
        amounts = compute_line(
            values["quantity"],
            values["unit_price"],
            values["discount_percent"],
            values["tax_percent"],
        )
        item = self.item_model(position=position, **values)
        item.apply_amounts(amounts)
        return item

    async def insert_document(self, db: AsyncSession, document, year: Optional[int] = None):
        """
        Ricalcola i totali e inserisce il documento con un nuovo numero.

        Returns:
            Il documento inserito
        """
        recalculate_document(document)
        year = year or datetime.date.today().year
        await number_generator.insert_with_number(db, document, self.document_type, year)
        logger.info("Creato %s %s", self.label.lower(), document.number)
        return document

    async def prepare_header(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
        vehicle_id: Optional[uuid.UUID],
    ) -> dict[str, Any]:
        """Verifica cliente e veicolo e restituisce i campi comuni di testata."""
        await ensure_customer(db, organization_id, customer_id)
        await ensure_vehicle(db, organization_id, customer_id, vehicle_id)
        return {
            "organization_id": organization_id,
            "customer_id": customer_id,
            "vehicle_id": vehicle_id,
            "currency": settings.default_currency,
            "version": 1,
        }

    # ------------------------------------------------------------
    # Modifica testata
    # ------------------------------------------------------------
    async def update_fields(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_id: uuid.UUID,
        data,
        allowed_statuses: list,
        ensure_editable: Callable[[Any], None],
        validate: Optional[Callable[[Any, dict], None]] = None,
    ):
        """
        Aggiorna i campi di testata indicati nella richiesta.

        Args:
            data: Schema di update con `version` e campi opzionali
            allowed_statuses: Stati salvati in cui la modifica è ammessa
            ensure_editable: Controllo di stato della macchina a stati
            validate: Controllo opzionale dei nuovi valori rispetto al documento

        Returns:
            Il documento aggiornato (versione incrementata di 1)
        """
        document = await self.get_by_id(db, organization_id, document_id)
        ensure_editable(document)
        ensure_version(document, data.version)

        changes = data.model_dump(exclude_unset=True, exclude={"version"})
        columns = document.__table__.c
        for field, value in changes.items():
            if value is None and not columns[field].nullable:
                raise BusinessValidationError(
                    f"{field} non può essere nullo",
                    extra={"field": field},
                )
        if "vehicle_id" in changes:
            await ensure_vehicle(db, organization_id, document.customer_id, changes["vehicle_id"])
        if validate is not None:
            validate(document, changes)

        await claim_document(db, document, data.version, allowed_statuses)
        for field, value in changes.items():
            setattr(document, field, value)
        await db.flush()

        logger.info("Aggiornato %s %s (v%d)", self.label.lower(), document.number, document.version)
        return document

    # ------------------------------------------------------------
    # Righe
    # ------------------------------------------------------------
    async def add_item(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_id: uuid.UUID,
        data: LineItemAdd,
    ):
        """
        Aggiunge una riga e ricalcola i totali.

        Raises:
            NotFoundError: Documento o voce di catalogo inesistente
            StateConflictError: Righe non modificabili nello stato corrente
            VersionConflictError: Versione non aggiornata
            BusinessValidationError: Input della riga non valido
        """
        document = await self.get_by_id(db, organization_id, document_id)
        await self.ensure_lines_editable(db, document, "aggiunta riga")
        ensure_version(document, data.version)

        values = await resolve_line_values(db, organization_id, data)
        item = self.new_item(values, next_position(document.items))

        await claim_document(db, document, data.version, self.line_editable_statuses)
        document.items.append(item)
        recalculate_document(document)
        await db.flush()

        logger.info("Aggiunta riga a %s %s", self.label.lower(), document.number)
        return document

    async def update_item(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_id: uuid.UUID,
        item_id: uuid.UUID,
        data: LineItemUpdate,
    ):
        """
        Modifica una riga esistente e ricalcola i totali.

        Raises:
            NotFoundError: Se la riga non appartiene al documento
        """
        document = await self.get_by_id(db, organization_id, document_id)
        await self.ensure_lines_editable(db, document, "modifica riga")
        ensure_version(document, data.version)

        item = self._find_item(document, item_id)
        changes = data.model_dump(exclude_unset=True, exclude={"version"})
        changes = {k: v for k, v in changes.items() if v is not None}

        merged = {
            "quantity": changes.get("quantity", item.quantity),
            "unit_price": changes.get("unit_price", item.unit_price),
            "discount_percent": changes.get("discount_percent", item.discount_percent),
            "tax_percent": changes.get("tax_percent", item.tax_percent),
        }
        amounts = compute_line(**merged)

        await claim_document(db, document, data.version, self.line_editable_statuses)
        for field, value in changes.items():
            setattr(item, field, value)
        item.apply_amounts(amounts)
        recalculate_document(document)
        await db.flush()

        logger.info("Modificata riga %s di %s %s", item_id, self.label.lower(), document.number)
        return document

    async def remove_item(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_id: uuid.UUID,
        item_id: uuid.UUID,
        version: int,
    ):
        """
        Rimuove una riga e ricalcola i totali.

        Raises:
            NotFoundError: Se la riga non appartiene al documento
        """
        document = await self.get_by_id(db, organization_id, document_id)
        await self.ensure_lines_editable(db, document, "rimozione riga")
        ensure_version(document, version)

        item = self._find_item(document, item_id)

        await claim_document(db, document, version, self.line_editable_statuses)
        document.items.remove(item)
        recalculate_document(document)
        await db.flush()

        logger.info("Rimossa riga %s da %s %s", item_id, self.label.lower(), document.number)
        return document

    def _find_item(self, document, item_id: uuid.UUID):
        for item in document.items:
            if item.id == item_id:
                return item
        logger.warning("Riga %s non trovata in %s %s", item_id, self.label.lower(), document.number)
        raise NotFoundError(f"Riga con ID {item_id} non trovata")
