"""
Riconciliazione delle fatture scadute
Progetto: Garage Documents (Documenti Commerciali Officina)

Le fatture inviate con scadenza trascorsa passano a overdue. La marcatura
è un unico UPDATE condizionato, quindi non interferisce con le modifiche
concorrenti degli utenti: la versione viene incrementata come per ogni
altra scrittura.
"""

import asyncio
import datetime
import logging
import uuid
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.models import Invoice
from app.schemas.invoice import InvoiceStatus
from app.services.guards import utcnow

# Logger per questo modulo
logger = logging.getLogger(__name__)


async def mark_overdue_invoices(
    db: AsyncSession,
    organization_id: Optional[uuid.UUID] = None,
    today: Optional[datetime.date] = None,
) -> int:
    """
    Porta in overdue le fatture sent con due_date precedente a oggi.

    Args:
        db: Sessione database
        organization_id: Limita la riconciliazione a un'organizzazione (default: tutte)
        today: Data di riferimento (default: oggi)

    Returns:
        int: Numero di fatture aggiornate
    """
    today = today or datetime.date.today()
    conditions = [
        Invoice.status == InvoiceStatus.SENT.value,
        Invoice.due_date < today,
    ]
    if organization_id is not None:
        conditions.append(Invoice.organization_id == organization_id)

    result = await db.execute(
        update(Invoice)
        .where(*conditions)
        .values(
            status=InvoiceStatus.OVERDUE.value,
            version=Invoice.version + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    updated = result.rowcount or 0
    if updated:
        logger.info("Riconciliazione scadenze: %d fatture marcate overdue", updated)
    return updated


async def run_overdue_sweep(session_factory: async_sessionmaker) -> None:
    """
    Ciclo periodico di riconciliazione, avviato dal lifespan dell'app.

    Un errore in un passaggio viene registrato e il ciclo prosegue al
    passaggio successivo; la cancellazione del task termina il ciclo.
    """
    interval = settings.overdue_sweep_interval_seconds
    logger.info("Riconciliazione scadenze avviata (intervallo %ds)", interval)
    while True:
        try:
            async with session_factory() as db:
                await mark_overdue_invoices(db)
                await db.commit()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Errore durante la riconciliazione delle scadenze")
        await asyncio.sleep(interval)
