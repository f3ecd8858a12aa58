"""
Router FastAPI per Clienti e Veicoli
Progetto: Garage Documents (Documenti Commerciali Officina)

Anagrafiche minime necessarie a intestare i documenti.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, status

from app.core.deps import DbSession, OrganizationId
from app.schemas.common import DataResponse, ListResponse
from app.schemas.customer import CustomerCreate, CustomerRead
from app.schemas.vehicle import VehicleCreate, VehicleRead
from app.services.customer_service import customer_service

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/customers",
    tags=["Clienti"],
)


@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    response_model=ListResponse[CustomerRead],
)
async def list_customers(
    organization_id: OrganizationId,
    db: DbSession,
    search: Optional[str] = Query(None, description="Ricerca su nome, email, telefono, identificativo fiscale"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
) -> ListResponse[CustomerRead]:
    customers, total = await customer_service.get_all(
        db, organization_id, page=page, per_page=per_page, search=search
    )
    return ListResponse[CustomerRead](
        data=[CustomerRead.model_validate(c) for c in customers],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "/",
    name="cliente_crea",
    summary="Crea cliente",
    response_model=DataResponse[CustomerRead],
    status_code=status.HTTP_201_CREATED,
)
async def create_customer(
    data: CustomerCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[CustomerRead]:
    customer = await customer_service.create(db, organization_id, data)
    await db.commit()
    return DataResponse[CustomerRead](data=CustomerRead.model_validate(customer))


@router.get(
    "/{customer_id}",
    name="cliente_dettaglio",
    summary="Dettaglio cliente",
    response_model=DataResponse[CustomerRead],
)
async def get_customer(
    customer_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[CustomerRead]:
    customer = await customer_service.get_by_id(db, organization_id, customer_id)
    return DataResponse[CustomerRead](data=CustomerRead.model_validate(customer))


@router.get(
    "/{customer_id}/vehicles",
    name="cliente_veicoli",
    summary="Veicoli del cliente",
    response_model=DataResponse[list[VehicleRead]],
)
async def list_customer_vehicles(
    customer_id: uuid.UUID,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[list[VehicleRead]]:
    vehicles = await customer_service.get_vehicles(db, organization_id, customer_id)
    return DataResponse[list[VehicleRead]](data=[VehicleRead.model_validate(v) for v in vehicles])


@router.post(
    "/{customer_id}/vehicles",
    name="cliente_aggiungi_veicolo",
    summary="Registra veicolo",
    response_model=DataResponse[VehicleRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_customer_vehicle(
    customer_id: uuid.UUID,
    data: VehicleCreate,
    organization_id: OrganizationId,
    db: DbSession,
) -> DataResponse[VehicleRead]:
    vehicle = await customer_service.add_vehicle(db, organization_id, customer_id, data)
    await db.commit()
    return DataResponse[VehicleRead](data=VehicleRead.model_validate(vehicle))
