"""
Router FastAPI per il Catalogo
Progetto: Garage Documents (Documenti Commerciali Officina)

Servizi e prodotti a listino referenziabili dalle righe documento.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from app.core.deps import DbSession, OrganizationId
from app.schemas.catalog import ProductCreate, ProductRead, ServiceItemCreate, ServiceItemRead
from app.schemas.common import DataResponse, ListResponse
from app.services.catalog_service import catalog_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/catalog",
    tags=["Catalogo"],
)


# -------------------------------------------------------------------
# Servizi
# -------------------------------------------------------------------

@router.get(
    "/services",
    name="catalogo_servizi",
    summary="Lista servizi",
    response_model=ListResponse[ServiceItemRead],
)
async def list_services(
    organization_id: OrganizationId,
    db: DbSession,
    search: Optional[str] = Query(None, description="Ricerca su nome e codice"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> ListResponse[ServiceItemRead]:
    services, total = await catalog_service.list_services(db, organization_id, search, page, per_page)
    return ListResponse[ServiceItemRead](
        data=[ServiceItemRead.model_validate(s) for s in services],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "/services",
    name="catalogo_crea_servizio",
    summary="Crea servizio",
    response_model=DataResponse[ServiceItemRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    data: ServiceItemCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ServiceItemRead]:
    service = await catalog_service.create_service(db, organization_id, data)
    await db.commit()
    return DataResponse[ServiceItemRead](data=ServiceItemRead.model_validate(service))


@router.delete(
    "/services/{service_id}",
    name="catalogo_disattiva_servizio",
    summary="Disattiva servizio",
    response_model=DataResponse[ServiceItemRead],
)
async def deactivate_service(
    service_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ServiceItemRead]:
    service = await catalog_service.deactivate_service(db, organization_id, service_id)
    await db.commit()
    return DataResponse[ServiceItemRead](data=ServiceItemRead.model_validate(service))


# -------------------------------------------------------------------
# Prodotti
# -------------------------------------------------------------------

@router.get(
    "/products",
    name="catalogo_prodotti",
    summary="Lista prodotti",
    response_model=ListResponse[ProductRead],
)
async def list_products(
    organization_id: OrganizationId,
    db: DbSession,
    search: Optional[str] = Query(None, description="Ricerca su nome e SKU"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
) -> ListResponse[ProductRead]:
    products, total = await catalog_service.list_products(db, organization_id, search, page, per_page)
    return ListResponse[ProductRead](
        data=[ProductRead.model_validate(p) for p in products],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "/products",
    name="catalogo_crea_prodotto",
    summary="Crea prodotto",
    response_model=DataResponse[ProductRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    data: ProductCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ProductRead]:
    product = await catalog_service.create_product(db, organization_id, data)
    await db.commit()
    return DataResponse[ProductRead](data=ProductRead.model_validate(product))


@router.delete(
    "/products/{product_id}",
    name="catalogo_disattiva_prodotto",
    summary="Disattiva prodotto",
    response_model=DataResponse[ProductRead],
)
async def deactivate_product(
    product_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[ProductRead]:
    product = await catalog_service.deactivate_product(db, organization_id, product_id)
    await db.commit()
    return DataResponse[ProductRead](data=ProductRead.model_validate(product))
