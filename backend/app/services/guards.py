"""
Controlli di integrità trasversali
Progetto: Garage Documents (Documenti Commerciali Officina)

Controlli invocati da ogni operazione di modifica:
- concorrenza ottimistica: la versione inviata dal client deve coincidere
  con quella salvata, e la scrittura avviene con un UPDATE condizionato
  (id + versione + stati ammessi) che ri-verifica lo stato al momento
  della scrittura invece di fidarsi di quello letto;
- riferimenti: cliente, veicolo e voci di catalogo devono esistere
  nell'organizzazione del chiamante;
- input delle righe: default dal catalogo e riferimenti mutuamente esclusivi.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from app.core.config import settings
from app.core.exceptions import (
    BusinessValidationError,
    NotFoundError,
    StateConflictError,
    VersionConflictError,
)
from app.models import Customer, Product, ServiceItem, Vehicle
from app.schemas.line_item import FREE_TEXT_ITEM_TYPES, ItemType, LineItemCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# ------------------------------------------------------------
# Concorrenza ottimistica
# ------------------------------------------------------------

def ensure_version(document, expected_version: int) -> None:
    """
    Confronta la versione inviata dal client con quella letta.

    Raises:
        VersionConflictError: Se le versioni differiscono
    """
    if document.version != expected_version:
        logger.warning(
            "Conflitto di versione su %s %s: attesa %d, salvata %d",
            type(document).__name__,
            document.number,
            expected_version,
            document.version,
        )
        raise VersionConflictError(
            f"Il documento {document.number} è stato modificato da un'altra richiesta "
            f"(versione attuale {document.version}, inviata {expected_version})",
            extra={"current_version": document.version, "submitted_version": expected_version},
        )


async def claim_document(
    db: AsyncSession,
    document,
    expected_version: int,
    allowed_statuses: Iterable[str],
    values: Optional[dict[str, Any]] = None,
) -> None:
    """
    Incrementa atomicamente la versione del documento, ri-verificando stato e versione.

    Esegue un UPDATE condizionato su id, versione attesa e stati ammessi;
    le colonne in `values` (es. il nuovo stato) vengono scritte nello stesso
    statement. Se nessuna riga viene aggiornata, un'altra richiesta ha
    modificato il documento dopo la lettura.

    Args:
        db: Sessione database
        document: Documento già caricato nella sessione
        expected_version: Versione inviata dal client
        allowed_statuses: Stati salvati in cui l'operazione è consentita
        values: Colonne aggiuntive da scrivere con il claim

    Raises:
        VersionConflictError: Se la versione salvata è cambiata
        StateConflictError: Se lo stato salvato non è più ammesso
        NotFoundError: Se il documento non esiste più
    """
    model = type(document)
    statuses = [getattr(s, "value", s) for s in allowed_statuses]
    now = utcnow()
    values = dict(values or {})

    result = await db.execute(
        update(model)
        .where(
            model.id == document.id,
            model.version == expected_version,
            model.status.in_(statuses),
        )
        .values(version=model.version + 1, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        row = (
            await db.execute(
                select(model.status, model.version).where(model.id == document.id)
            )
        ).one_or_none()
        if row is None:
            raise NotFoundError(f"Documento con ID {document.id} non trovato")
        if row.version != expected_version:
            logger.warning(
                "Claim fallito su %s %s: versione %d → %d",
                model.__name__, document.number, expected_version, row.version,
            )
            raise VersionConflictError(
                f"Il documento {document.number} è stato modificato da un'altra richiesta",
                extra={"current_version": row.version, "submitted_version": expected_version},
            )
        logger.warning(
            "Claim fallito su %s %s: stato salvato '%s' non ammesso",
            model.__name__, document.number, row.status,
        )
        raise StateConflictError(
            f"Operazione non consentita: il documento {document.number} è ora in stato '{row.status}'",
            extra={"status": row.status},
        )

    set_committed_value(document, "version", expected_version + 1)
    set_committed_value(document, "updated_at", now)
    for key, value in values.items():
        set_committed_value(document, key, value)


# ------------------------------------------------------------
# Riferimenti anagrafici
# ------------------------------------------------------------

async def ensure_customer(
    db: AsyncSession,
    organization_id: uuid.UUID,
    customer_id: uuid.UUID,
) -> Customer:
    """
    Verifica che il cliente esista nell'organizzazione.

    Raises:
        NotFoundError: Se il cliente non esiste o appartiene ad altra organizzazione
    """
    result = await db.execute(
        select(Customer).where(
            Customer.id == customer_id,
            Customer.organization_id == organization_id,
            Customer.is_active.is_(True),
        )
    )
    customer = result.scalar_one_or_none()
    if not customer:
        logger.warning("Cliente non trovato: %s", customer_id)
        raise NotFoundError(f"Cliente con ID {customer_id} non trovato")
    return customer


async def ensure_vehicle(
    db: AsyncSession,
    organization_id: uuid.UUID,
    customer_id: uuid.UUID,
    vehicle_id: Optional[uuid.UUID],
) -> Optional[Vehicle]:
    """
    Verifica che il veicolo (se indicato) esista e appartenga al cliente.

    Raises:
        NotFoundError: Se il veicolo non esiste
        BusinessValidationError: Se il veicolo appartiene a un altro cliente
    """
    if vehicle_id is None:
        return None
    result = await db.execute(
        select(Vehicle).where(
            Vehicle.id == vehicle_id,
            Vehicle.organization_id == organization_id,
        )
    )
    vehicle = result.scalar_one_or_none()
    if not vehicle:
        logger.warning("Veicolo non trovato: %s", vehicle_id)
        raise NotFoundError(f"Veicolo con ID {vehicle_id} non trovato")
    if vehicle.customer_id != customer_id:
        logger.warning("Veicolo %s non appartiene al cliente %s", vehicle_id, customer_id)
        raise BusinessValidationError(
            "Il veicolo non appartiene al cliente selezionato",
            extra={"field": "vehicle_id"},
        )
    return vehicle


# ------------------------------------------------------------
# Righe documento
# ------------------------------------------------------------

async def get_catalog_entry(
    db: AsyncSession,
    organization_id: uuid.UUID,
    model,
    entry_id: uuid.UUID,
    field: str,
):
    """
    Carica una voce di catalogo attiva dell'organizzazione.

    Raises:
        NotFoundError: Se la voce non esiste, è di altra organizzazione o è disattivata
    """
    result = await db.execute(
        select(model).where(
            model.id == entry_id,
            model.organization_id == organization_id,
            model.is_active.is_(True),
        )
    )
    entry = result.scalar_one_or_none()
    if not entry:
        logger.warning("Riferimento a catalogo non valido: %s=%s", field, entry_id)
        raise NotFoundError(
            f"Voce di catalogo {field}={entry_id} non trovata",
            extra={"field": field},
        )
    return entry


async def resolve_line_values(
    db: AsyncSession,
    organization_id: uuid.UUID,
    data: LineItemCreate,
) -> dict[str, Any]:
    """
    Traduce l'input di una riga nelle colonne da salvare.

    Con un riferimento a catalogo, descrizione, prezzo e aliquota mancanti
    vengono presi dalla voce di catalogo; una riga libera richiede
    descrizione e prezzo. Il tipo riga è derivato dal riferimento.

    Returns:
        dict: item_type, service_id, product_id, description, quantity,
            unit_price, discount_percent, tax_percent

    Raises:
        BusinessValidationError: Riferimenti multipli o campi obbligatori mancanti
        NotFoundError: Riferimento a catalogo inesistente
    """
    if data.service_id is not None and data.product_id is not None:
        raise BusinessValidationError(
            "service_id e product_id sono mutuamente esclusivi",
            extra={"field": "service_id"},
        )

    entry = None
    if data.service_id is not None:
        entry = await get_catalog_entry(db, organization_id, ServiceItem, data.service_id, "service_id")
        item_type = ItemType.SERVICE
    elif data.product_id is not None:
        entry = await get_catalog_entry(db, organization_id, Product, data.product_id, "product_id")
        item_type = ItemType.PRODUCT
    else:
        item_type = data.item_type or ItemType.CUSTOM
        if item_type not in FREE_TEXT_ITEM_TYPES:
            raise BusinessValidationError(
                f"Una riga di tipo '{item_type.value}' richiede il riferimento a catalogo",
                extra={"field": "item_type"},
            )

    description = data.description or (entry.name if entry is not None else None)
    unit_price = data.unit_price if data.unit_price is not None else (
        entry.unit_price if entry is not None else None
    )
    tax_percent = data.tax_percent if data.tax_percent is not None else (
        entry.tax_percent if entry is not None else settings.default_tax_percent
    )

    if not description:
        raise BusinessValidationError(
            "description è obbligatoria per le righe libere",
            extra={"field": "description"},
        )
    if unit_price is None:
        raise BusinessValidationError(
            "unit_price è obbligatorio per le righe libere",
            extra={"field": "unit_price"},
        )

    return {
        "item_type": item_type.value,
        "service_id": data.service_id,
        "product_id": data.product_id,
        "description": description,
        "quantity": data.quantity,
        "unit_price": Decimal(unit_price),
        "discount_percent": data.discount_percent,
        "tax_percent": Decimal(tax_percent),
    }


def next_position(items: Iterable) -> int:
    """Posizione per una nuova riga: massimo corrente + 1."""
    return max((item.position for item in items), default=0) + 1
