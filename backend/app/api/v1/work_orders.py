"""
Router FastAPI per gli Ordini di Lavoro
Progetto: Garage Documents (Documenti Commerciali Officina)

Endpoint per creazione, modifica, pipeline di stato, righe, righe di
servizio, generazione fattura e statistiche degli ordini di lavoro.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from app.core.deps import DbSession, OrganizationId
from app.schemas.common import DataResponse, ListResponse, VersionedRequest
from app.schemas.invoice import InvoiceRead
from app.schemas.line_item import LineItemAdd, LineItemRead, LineItemUpdate
from app.schemas.work_order import (
    InvoiceFromWorkOrder,
    ServiceLineCreate,
    ServiceLineRead,
    WorkOrderCreate,
    WorkOrderMetrics,
    WorkOrderRead,
    WorkOrderStatus,
    WorkOrderStatusUpdate,
    WorkOrderUpdate,
)
from app.services.conversion_service import conversion_service
from app.services.work_order_service import work_order_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/work-orders",
    tags=["Ordini di Lavoro"],
)


def _read(work_order) -> DataResponse[WorkOrderRead]:
    return DataResponse[WorkOrderRead](data=WorkOrderRead.model_validate(work_order))


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="ordini_lista",
    summary="Lista ordini di lavoro",
    response_model=ListResponse[WorkOrderRead],
)
async def list_work_orders(
    organization_id: OrganizationId,
    db: DbSession,
    status_filter: Optional[WorkOrderStatus] = Query(None, alias="status", description="Filtro per stato"),
    customer_id: Optional[uuid.UUID] = Query(None, description="Filtro per cliente"),
    search: Optional[str] = Query(None, description="Ricerca su numero e descrizione"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
) -> ListResponse[WorkOrderRead]:
    work_orders, total = await work_order_service.get_all(
        db,
        organization_id,
        status_filter=status_filter,
        customer_id=customer_id,
        search=search,
        page=page,
        per_page=per_page,
    )
    return ListResponse[WorkOrderRead](
        data=[WorkOrderRead.model_validate(wo) for wo in work_orders],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/metrics",
    name="ordini_statistiche",
    summary="Statistiche ordini di lavoro",
    response_model=DataResponse[WorkOrderMetrics],
)
async def get_work_order_metrics(
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderMetrics]:
    metrics = await work_order_service.get_metrics(db, organization_id)
    return DataResponse[WorkOrderMetrics](data=metrics)


@router.post(
    "/",
    name="ordine_crea",
    summary="Crea ordine di lavoro",
    description="Creazione diretta in stato pending con numero WO-YYYY-NNNN.",
    response_model=DataResponse[WorkOrderRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_work_order(
    data: WorkOrderCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.create(db, organization_id, data)
    await db.commit()
    return _read(work_order)


@router.get(
    "/{work_order_id}",
    name="ordine_dettaglio",
    summary="Dettaglio ordine di lavoro",
    response_model=DataResponse[WorkOrderRead],
)
async def get_work_order(
    work_order_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.get_by_id(db, organization_id, work_order_id)
    return _read(work_order)


@router.put(
    "/{work_order_id}",
    name="ordine_modifica",
    summary="Modifica ordine di lavoro",
    description="Modifica i campi di testata (non lo stato). Richiede la versione corrente.",
    response_model=DataResponse[WorkOrderRead],
)
async def update_work_order(
    work_order_id: uuid.UUID,
    data: WorkOrderUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.update(db, organization_id, work_order_id, data)
    await db.commit()
    return _read(work_order)


# -------------------------------------------------------------------
# Pipeline di stato
# -------------------------------------------------------------------

@router.post(
    "/{work_order_id}/advance",
    name="ordine_avanza",
    summary="Avanza stato",
    response_model=DataResponse[WorkOrderRead],
)
async def advance_work_order(
    work_order_id: uuid.UUID,
    data: VersionedRequest,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.advance(db, organization_id, work_order_id, data.version)
    await db.commit()
    return _read(work_order)


@router.post(
    "/{work_order_id}/revert",
    name="ordine_ritorna",
    summary="Torna allo stato precedente",
    response_model=DataResponse[WorkOrderRead],
)
async def revert_work_order(
    work_order_id: uuid.UUID,
    data: VersionedRequest,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.revert(db, organization_id, work_order_id, data.version)
    await db.commit()
    return _read(work_order)


@router.put(
    "/{work_order_id}/status",
    name="ordine_cambia_stato",
    summary="Cambio diretto di stato",
    description="Salto a qualunque stato diverso dall'attuale; delivered è terminale.",
    response_model=DataResponse[WorkOrderRead],
)
async def set_work_order_status(
    work_order_id: uuid.UUID,
    data: WorkOrderStatusUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.set_status(db, organization_id, work_order_id, data)
    await db.commit()
    return _read(work_order)


@router.post(
    "/{work_order_id}/invoice",
    name="ordine_fattura",
    summary="Genera fattura",
    description="Genera la fattura in bozza di un ordine completato (una sola per ordine).",
    response_model=DataResponse[InvoiceRead],
    status_code=status.HTTP_201_CREATED,
)
async def invoice_work_order(
    work_order_id: uuid.UUID,
    data: InvoiceFromWorkOrder,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await conversion_service.work_order_to_invoice(db, organization_id, work_order_id, data)
    await db.commit()
    return DataResponse[InvoiceRead](data=InvoiceRead.model_validate(invoice))


# -------------------------------------------------------------------
# Righe
# -------------------------------------------------------------------

@router.get(
    "/{work_order_id}/items",
    name="ordine_righe",
    summary="Righe dell'ordine",
    response_model=DataResponse[list[LineItemRead]],
)
async def list_work_order_items(
    work_order_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[list[LineItemRead]]:
    items = await work_order_service.list_items(db, organization_id, work_order_id)
    return DataResponse[list[LineItemRead]](data=[LineItemRead.model_validate(i) for i in items])


@router.post(
    "/{work_order_id}/items",
    name="ordine_aggiungi_riga",
    summary="Aggiungi riga",
    response_model=DataResponse[WorkOrderRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_work_order_item(
    work_order_id: uuid.UUID,
    data: LineItemAdd,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.add_item(db, organization_id, work_order_id, data)
    await db.commit()
    return _read(work_order)


@router.put(
    "/{work_order_id}/items/{item_id}",
    name="ordine_modifica_riga",
    summary="Modifica riga",
    response_model=DataResponse[WorkOrderRead],
)
async def update_work_order_item(
    work_order_id: uuid.UUID,
    item_id: uuid.UUID,
    data: LineItemUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.update_item(db, organization_id, work_order_id, item_id, data)
    await db.commit()
    return _read(work_order)


@router.delete(
    "/{work_order_id}/items/{item_id}",
    name="ordine_rimuovi_riga",
    summary="Rimuovi riga",
    response_model=DataResponse[WorkOrderRead],
)
async def remove_work_order_item(
    work_order_id: uuid.UUID,
    item_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
    version: int = Query(..., ge=1, description="Versione dell'ordine letta dal client"),
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.remove_item(db, organization_id, work_order_id, item_id, version)
    await db.commit()
    return _read(work_order)


# -------------------------------------------------------------------
# Righe di servizio
# -------------------------------------------------------------------

@router.get(
    "/{work_order_id}/service-lines",
    name="ordine_righe_servizio",
    summary="Righe di servizio",
    response_model=DataResponse[list[ServiceLineRead]],
)
async def list_service_lines(
    work_order_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[list[ServiceLineRead]]:
    lines = await work_order_service.list_service_lines(db, organization_id, work_order_id)
    return DataResponse[list[ServiceLineRead]](data=[ServiceLineRead.model_validate(sl) for sl in lines])


@router.post(
    "/{work_order_id}/service-lines",
    name="ordine_aggiungi_riga_servizio",
    summary="Aggiungi riga di servizio",
    response_model=DataResponse[WorkOrderRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_service_line(
    work_order_id: uuid.UUID,
    data: ServiceLineCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.add_service_line(db, organization_id, work_order_id, data)
    await db.commit()
    return _read(work_order)


@router.delete(
    "/{work_order_id}/service-lines/{line_id}",
    name="ordine_rimuovi_riga_servizio",
    summary="Rimuovi riga di servizio",
    response_model=DataResponse[WorkOrderRead],
)
async def remove_service_line(
    work_order_id: uuid.UUID,
    line_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
    version: int = Query(..., ge=1, description="Versione dell'ordine letta dal client"),
) -> DataResponse[WorkOrderRead]:
    work_order = await work_order_service.remove_service_line(db, organization_id, work_order_id, line_id, version)
    await db.commit()
    return _read(work_order)
