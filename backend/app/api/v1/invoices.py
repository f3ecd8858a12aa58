"""
Router FastAPI per le Fatture
Progetto: Garage Documents (Documenti Commerciali Officina)

Endpoint per creazione, modifica, righe, invio, pagamento, annullamento,
riconciliazione delle scadenze e riepilogo crediti.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from app.core.deps import DbSession, OrganizationId
from app.schemas.common import DataResponse, ListResponse, VersionedRequest
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceMetrics,
    InvoicePayment,
    InvoiceRead,
    InvoiceStatus,
    InvoiceUpdate,
    ReconciliationResult,
)
from app.schemas.line_item import LineItemAdd, LineItemRead, LineItemUpdate
from app.services.invoice_service import invoice_service
from app.services.reconciliation import mark_overdue_invoices

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/invoices",
    tags=["Fatture"],
)


def _read(invoice) -> DataResponse[InvoiceRead]:
    return DataResponse[InvoiceRead](data=InvoiceRead.model_validate(invoice))


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="fatture_lista",
    summary="Lista fatture",
    response_model=ListResponse[InvoiceRead],
)
async def list_invoices(
    organization_id: OrganizationId,
    db: DbSession,
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filtro per stato"),
    customer_id: Optional[uuid.UUID] = Query(None, description="Filtro per cliente"),
    search: Optional[str] = Query(None, description="Ricerca su numero e descrizione"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
) -> ListResponse[InvoiceRead]:
    invoices, total = await invoice_service.get_all(
        db,
        organization_id,
        status_filter=status_filter,
        customer_id=customer_id,
        search=search,
        page=page,
        per_page=per_page,
    )
    return ListResponse[InvoiceRead](
        data=[InvoiceRead.model_validate(i) for i in invoices],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/metrics",
    name="fatture_statistiche",
    summary="Riepilogo crediti",
    response_model=DataResponse[InvoiceMetrics],
)
async def get_invoice_metrics(
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceMetrics]:
    metrics = await invoice_service.get_metrics(db, organization_id)
    return DataResponse[InvoiceMetrics](data=metrics)


@router.post(
    "/reconcile-overdue",
    name="fatture_riconcilia_scadenze",
    summary="Riconcilia scadenze",
    description="Porta in overdue le fatture inviate con scadenza trascorsa.",
    response_model=DataResponse[ReconciliationResult],
)
async def reconcile_overdue_invoices(
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ReconciliationResult]:
    updated = await mark_overdue_invoices(db, organization_id)
    await db.commit()
    return DataResponse[ReconciliationResult](data=ReconciliationResult(updated=updated))


@router.post(
    "/",
    name="fattura_crea",
    summary="Crea fattura",
    description="Creazione diretta in bozza con numero INV-YYYY-NNNN.",
    response_model=DataResponse[InvoiceRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.create(db, organization_id, data)
    await db.commit()
    return _read(invoice)


@router.get(
    "/{invoice_id}",
    name="fattura_dettaglio",
    summary="Dettaglio fattura",
    response_model=DataResponse[InvoiceRead],
)
async def get_invoice(
    invoice_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.get_by_id(db, organization_id, invoice_id)
    return _read(invoice)


@router.put(
    "/{invoice_id}",
    name="fattura_modifica",
    summary="Modifica fattura",
    description="Modifica i campi di testata di una fattura non pagata né annullata.",
    response_model=DataResponse[InvoiceRead],
)
async def update_invoice(
    invoice_id: uuid.UUID,
    data: InvoiceUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.update(db, organization_id, invoice_id, data)
    await db.commit()
    return _read(invoice)


@router.delete(
    "/{invoice_id}",
    name="fattura_annulla",
    summary="Annulla fattura",
    response_model=DataResponse[InvoiceRead],
)
async def cancel_invoice(
    invoice_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
    version: int = Query(..., ge=1, description="Versione della fattura letta dal client"),
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.cancel(db, organization_id, invoice_id, version)
    await db.commit()
    return _read(invoice)


@router.post(
    "/{invoice_id}/send",
    name="fattura_invia",
    summary="Invia fattura",
    description="draft → sent. Richiede almeno una riga.",
    response_model=DataResponse[InvoiceRead],
)
async def send_invoice(
    invoice_id: uuid.UUID,
    data: VersionedRequest,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.send(db, organization_id, invoice_id, data.version)
    await db.commit()
    return _read(invoice)


@router.post(
    "/{invoice_id}/pay",
    name="fattura_paga",
    summary="Registra pagamento",
    description="sent | overdue → paid. Metodo obbligatorio, data di default oggi.",
    response_model=DataResponse[InvoiceRead],
)
async def pay_invoice(
    invoice_id: uuid.UUID,
    data: InvoicePayment,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.pay(db, organization_id, invoice_id, data)
    await db.commit()
    return _read(invoice)


# -------------------------------------------------------------------
# Righe
# -------------------------------------------------------------------

@router.get(
    "/{invoice_id}/items",
    name="fattura_righe",
    summary="Righe della fattura",
    response_model=DataResponse[list[LineItemRead]],
)
async def list_invoice_items(
    invoice_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[list[LineItemRead]]:
    items = await invoice_service.list_items(db, organization_id, invoice_id)
    return DataResponse[list[LineItemRead]](data=[LineItemRead.model_validate(i) for i in items])


@router.post(
    "/{invoice_id}/items",
    name="fattura_aggiungi_riga",
    summary="Aggiungi riga",
    response_model=DataResponse[InvoiceRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_invoice_item(
    invoice_id: uuid.UUID,
    data: LineItemAdd,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.add_item(db, organization_id, invoice_id, data)
    await db.commit()
    return _read(invoice)


@router.put(
    "/{invoice_id}/items/{item_id}",
    name="fattura_modifica_riga",
    summary="Modifica riga",
    response_model=DataResponse[InvoiceRead],
)
async def update_invoice_item(
    invoice_id: uuid.UUID,
    item_id: uuid.UUID,
    data: LineItemUpdate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.update_item(db, organization_id, invoice_id, item_id, data)
    await db.commit()
    return _read(invoice)


@router.delete(
    "/{invoice_id}/items/{item_id}",
    name="fattura_rimuovi_riga",
    summary="Rimuovi riga",
    response_model=DataResponse[InvoiceRead],
)
async def remove_invoice_item(
    invoice_id: uuid.UUID,
    item_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
    version: int = Query(..., ge=1, description="Versione della fattura letta dal client"),
) -> DataResponse[InvoiceRead]:
    invoice = await invoice_service.remove_item(db, organization_id, invoice_id, item_id, version)
    await db.commit()
    return _read(invoice)
