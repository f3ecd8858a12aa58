"""
Router FastAPI per i Preventivi
Progetto: Garage Documents (Documenti Commerciali Officina)

Endpoint per creazione, modifica, righe, ciclo di vita, conversione in
ordine di lavoro, duplicazione e statistiche dei preventivi.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from app.core.deps import DbSession, OrganizationId
from app.schemas.common import DataResponse, ListResponse, VersionedRequest
from app.schemas.line_item import LineItemAdd, LineItemRead, LineItemUpdate
from app.schemas.quotation import (
    ConversionReadiness,
    ConversionResult,
    QuotationCreate,
    QuotationMetrics,
    QuotationRead,
    QuotationReject,
    QuotationStatus,
    QuotationUpdate,
)
from app.services.conversion_service import conversion_service
from app.services.quotation_service import quotation_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/quotations",
    tags=["Preventivi"],
)


def _read(quotation) -> DataResponse[QuotationRead]:
    return DataResponse[QuotationRead](data=QuotationRead.model_validate(quotation))


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

# IMPORTANTE: /metrics deve essere definito PRIMA di /{quotation_id}
# per evitare che FastAPI interpreti "metrics" come un UUID.

@router.get(
    "/",
    name="preventivi_lista",
    summary="Lista preventivi",
    description="Lista paginata con filtri per stato (incluso 'expired'), cliente e ricerca testuale.",
    response_model=ListResponse[QuotationRead],
)
async def list_quotations(
    organization_id: OrganizationId,
    db: DbSession,
    status_filter: Optional[QuotationStatus] = Query(None, alias="status", description="Filtro per stato"),
    customer_id: Optional[uuid.UUID] = Query(None, description="Filtro per cliente"),
    search: Optional[str] = Query(None, description="Ricerca su numero e descrizione"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
) -> ListResponse[QuotationRead]:
    quotations, total = await quotation_service.get_all(
        db,
        organization_id,
        status_filter=status_filter,
        customer_id=customer_id,
        search=search,
        page=page,
        per_page=per_page,
    )
    return ListResponse[QuotationRead](
        data=[QuotationRead.model_validate(q) for q in quotations],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/metrics",
    name="preventivi_statistiche",
    summary="Statistiche preventivi",
    response_model=DataResponse[QuotationMetrics],
)
async def get_quotation_metrics(
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationMetrics]:
    """Conteggi per stato, valore totale e medio, tassi di approvazione e conversione."""
    metrics = await quotation_service.get_metrics(db, organization_id)
    return DataResponse[QuotationMetrics](data=metrics)


@router.post(
    "/",
    name="preventivo_crea",
    summary="Crea preventivo",
    description="Crea un preventivo in bozza con numero Q-YYYY-NNNN.",
    response_model=DataResponse[QuotationRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_quotation(
    data: QuotationCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.create(db, organization_id, data)
    await db.commit()
    return _read(quotation)


@router.get(
    "/{quotation_id}",
    name="preventivo_dettaglio",
    summary="Dettaglio preventivo",
    response_model=DataResponse[QuotationRead],
)
async def get_quotation(
    quotation_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.get_by_id(db, organization_id, quotation_id)
    return _read(quotation)


@router.put(
    "/{quotation_id}",
    name="preventivo_modifica",
    summary="Modifica preventivo",
    description="Modifica i campi di un preventivo in bozza. Richiede la versione corrente.",
    response_model=DataResponse[QuotationRead],
)
async def update_quotation(
    quotation_id: uuid.UUID,
    data: QuotationUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.update(db, organization_id, quotation_id, data)
    await db.commit()
    return _read(quotation)


@router.delete(
    "/{quotation_id}",
    name="preventivo_annulla",
    summary="Annulla preventivo",
    description="Annullamento logico: il preventivo passa in stato cancelled.",
    response_model=DataResponse[QuotationRead],
)
async def cancel_quotation(
    quotation_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
    version: int = Query(..., ge=1, description="Versione del preventivo letta dal client"),
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.cancel(db, organization_id, quotation_id, version)
    await db.commit()
    return _read(quotation)


# -------------------------------------------------------------------
# Righe
# -------------------------------------------------------------------

@router.get(
    "/{quotation_id}/items",
    name="preventivo_righe",
    summary="Righe del preventivo",
    response_model=DataResponse[list[LineItemRead]],
)
async def list_quotation_items(
    quotation_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[list[LineItemRead]]:
    items = await quotation_service.list_items(db, organization_id, quotation_id)
    return DataResponse[list[LineItemRead]](data=[LineItemRead.model_validate(i) for i in items])


@router.post(
    "/{quotation_id}/items",
    name="preventivo_aggiungi_riga",
    summary="Aggiungi riga",
    description="Aggiunge una riga (da catalogo o libera) e ricalcola i totali.",
    response_model=DataResponse[QuotationRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_quotation_item(
    quotation_id: uuid.UUID,
    data: LineItemAdd,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.add_item(db, organization_id, quotation_id, data)
    await db.commit()
    return _read(quotation)


@router.put(
    "/{quotation_id}/items/{item_id}",
    name="preventivo_modifica_riga",
    summary="Modifica riga",
    response_model=DataResponse[QuotationRead],
)
async def update_quotation_item(
    quotation_id: uuid.UUID,
    item_id: uuid.UUID,
    data: LineItemUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.update_item(db, organization_id, quotation_id, item_id, data)
    await db.commit()
    return _read(quotation)


@router.delete(
    "/{quotation_id}/items/{item_id}",
    name="preventivo_rimuovi_riga",
    summary="Rimuovi riga",
    response_model=DataResponse[QuotationRead],
)
async def remove_quotation_item(
    quotation_id: uuid.UUID,
    item_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
    version: int = Query(..., ge=1, description="Versione del preventivo letta dal client"),
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.remove_item(db, organization_id, quotation_id, item_id, version)
    await db.commit()
    return _read(quotation)


# -------------------------------------------------------------------
# Ciclo di vita
# -------------------------------------------------------------------

@router.post(
    "/{quotation_id}/send",
    name="preventivo_invia",
    summary="Invia preventivo",
    description="draft → sent. Richiede almeno una riga.",
    response_model=DataResponse[QuotationRead],
)
async def send_quotation(
    quotation_id: uuid.UUID,
    data: VersionedRequest,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.send(db, organization_id, quotation_id, data.version)
    await db.commit()
    return _read(quotation)


@router.post(
    "/{quotation_id}/approve",
    name="preventivo_approva",
    summary="Approva preventivo",
    description="sent → approved.",
    response_model=DataResponse[QuotationRead],
)
async def approve_quotation(
    quotation_id: uuid.UUID,
    data: VersionedRequest,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.approve(db, organization_id, quotation_id, data.version)
    await db.commit()
    return _read(quotation)


@router.post(
    "/{quotation_id}/reject",
    name="preventivo_rifiuta",
    summary="Rifiuta preventivo",
    description="sent → rejected. Il motivo è obbligatorio.",
    response_model=DataResponse[QuotationRead],
)
async def reject_quotation(
    quotation_id: uuid.UUID,
    data: QuotationReject,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.reject(db, organization_id, quotation_id, data)
    await db.commit()
    return _read(quotation)


@router.get(
    "/{quotation_id}/convert",
    name="preventivo_convertibilita",
    summary="Verifica convertibilità",
    description="Controlla se il preventivo può essere convertito, senza modificarlo.",
    response_model=DataResponse[ConversionReadiness],
)
async def check_quotation_conversion(
    quotation_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ConversionReadiness]:
    readiness = await quotation_service.conversion_readiness(db, organization_id, quotation_id)
    return DataResponse[ConversionReadiness](data=readiness)


@router.post(
    "/{quotation_id}/convert",
    name="preventivo_converti",
    summary="Converti in ordine di lavoro",
    description="Crea un ordine di lavoro pending dal preventivo approvato.",
    response_model=DataResponse[ConversionResult],
)
async def convert_quotation(
    quotation_id: uuid.UUID,
    data: VersionedRequest,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ConversionResult]:
    work_order = await conversion_service.quotation_to_work_order(
        db, organization_id, quotation_id, data.version
    )
    await db.commit()
    return DataResponse[ConversionResult](
        data=ConversionResult(work_order_id=work_order.id, work_order_number=work_order.number)
    )


@router.post(
    "/{quotation_id}/duplicate",
    name="preventivo_duplica",
    summary="Duplica preventivo",
    description="Crea una nuova bozza con le stesse righe e un nuovo numero.",
    response_model=DataResponse[QuotationRead],
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_quotation(
    quotation_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[QuotationRead]:
    quotation = await quotation_service.duplicate(db, organization_id, quotation_id)
    await db.commit()
    return _read(quotation)
