"""
Numerazione progressiva dei documenti
Progetto: Garage Documents (Documenti Commerciali Officina)

Formato: {PREFISSO}-{ANNO}-{NNNN}, con sequenza a 4 cifre per
(organizzazione, tipo documento, anno), a partire da 0001.

"Leggi il massimo, poi inserisci" non è atomico: due creazioni concorrenti
possono calcolare lo stesso numero. La collisione viene intercettata dal
vincolo UNIQUE(organization_id, number) di ogni tabella documento e
l'inserimento viene ritentato (nuova lettura, nuovo numero) per un numero
limitato di volte, senza mai bloccare l'intera sequenza.
"""

import logging
import re
import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import IntegrityFailureError, StateConflictError
from app.models import Invoice, Quotation, WorkOrder

# Logger per questo modulo
logger = logging.getLogger(__name__)

MAX_SEQUENCE = 9999
NUMBER_PATTERN = re.compile(r"^(Q|WO|INV)-(\d{4})-(\d{4})$")


class DocumentType(str, Enum):
    """Tipi di documento numerati, con relativo prefisso."""
    QUOTATION = "Q"
    WORK_ORDER = "WO"
    INVOICE = "INV"


DOCUMENT_MODELS = {
    DocumentType.QUOTATION: Quotation,
    DocumentType.WORK_ORDER: WorkOrder,
    DocumentType.INVOICE: Invoice,
}


def format_number(document_type: DocumentType, year: int, sequence: int) -> str:
    """
    Compone il numero documento.

    Args:
        document_type: Tipo documento (determina il prefisso)
        year: Anno di riferimento
        sequence: Progressivo (1..9999)

    Returns:
        str: Numero formattato (es. "WO-2025-0001")

    Raises:
        StateConflictError: Se il progressivo supera 9999
    """
    if sequence > MAX_SEQUENCE:
        raise StateConflictError(
            f"Raggiunto il limite di {MAX_SEQUENCE} documenti {document_type.value} per l'anno {year}",
            error_code="NUMBERING_LIMIT_REACHED",
        )
    return f"{document_type.value}-{year:04d}-{sequence:04d}"


def parse_number(number: str) -> Optional[tuple[DocumentType, int, int]]:
    """
    Scompone un numero documento nelle sue parti.

    Returns:
        Tupla (tipo, anno, progressivo) oppure None se il formato non è valido
    """
    match = NUMBER_PATTERN.match(number or "")
    if not match:
        return None
    prefix, year, sequence = match.groups()
    return DocumentType(prefix), int(year), int(sequence)


def _is_number_collision(exc: IntegrityError, table: str) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return f"uq_{table}_org_number" in message or f"{table}.number" in message


class DocumentNumberGenerator:
    """
    Generatore dei numeri progressivi per preventivi, ordini e fatture.

    Il generatore non mantiene stato: la sequenza è sempre ricavata dai
    documenti già presenti.
    """

    async def next_number(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        document_type: DocumentType,
        year: int,
    ) -> str:
        """
        Calcola il prossimo numero disponibile.

        Cerca il numero più alto (ordinamento lessicografico) che inizia
        con "{PREFISSO}-{ANNO}-", ne interpreta il suffisso e aggiunge 1.

        Args:
            db: Sessione database
            organization_id: Organizzazione proprietaria
            document_type: Tipo documento
            year: Anno di riferimento

        Returns:
            str: Numero formattato
        """
        model = DOCUMENT_MODELS[document_type]
        prefix = f"{document_type.value}-{year:04d}-"

        result = await db.execute(
            select(model.number)
            .where(
                model.organization_id == organization_id,
                model.number.like(f"{prefix}%"),
            )
            .order_by(model.number.desc())
            .limit(1)
        )
        last_number = result.scalar_one_or_none()

        sequence = 1
        if last_number:
            parsed = parse_number(last_number)
            if parsed is not None:
                sequence = parsed[2] + 1
            else:
                logger.warning("Numero documento non conforme ignorato: %s", last_number)

        return format_number(document_type, year, sequence)

    async def insert_with_number(
        self,
        db: AsyncSession,
        document,
        document_type: DocumentType,
        year: int,
    ):
        """
        Assegna il numero al documento e lo inserisce, ritentando in caso di collisione.

        Ogni tentativo avviene in un savepoint: una collisione annulla solo
        l'inserimento corrente e lascia intatta la transazione del chiamante.

        Args:
            db: Sessione database
            document: Nuovo documento (con eventuali righe in cascata)
            document_type: Tipo documento
            year: Anno di riferimento

        Returns:
            Il documento inserito, con numero assegnato

        Raises:
            IntegrityFailureError: Se tutti i tentativi collidono
        """
        table = DOCUMENT_MODELS[document_type].__tablename__
        max_attempts = settings.numbering_max_retries

        for attempt in range(1, max_attempts + 1):
            document.number = await self.next_number(
                db, document.organization_id, document_type, year
            )
            try:
                async with db.begin_nested():
                    db.add(document)
                    await db.flush()
            except IntegrityError as exc:
                if not _is_number_collision(exc, table):
                    raise
                logger.warning(
                    "Collisione numero %s (tentativo %d/%d), nuovo tentativo",
                    document.number,
                    attempt,
                    max_attempts,
                )
                continue

            logger.debug("Assegnato numero %s", document.number)
            return document

        logger.error(
            "Impossibile assegnare un numero %s dopo %d tentativi",
            document_type.value,
            max_attempts,
        )
        raise IntegrityFailureError(
            "Impossibile assegnare un numero al documento, riprovare",
            error_code="NUMBER_ALLOCATION_FAILED",
        )


# Istanza condivisa del generatore
number_generator = DocumentNumberGenerator()
