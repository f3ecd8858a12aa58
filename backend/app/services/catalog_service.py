"""
Service Layer per il Catalogo
Progetto: Garage Documents (Documenti Commerciali Officina)

Servizi e prodotti a listino. Le righe documento che li referenziano
ne ereditano descrizione, prezzo e aliquota di default.
"""

import logging
import uuid
from typing import Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.models import Product, ServiceItem
from app.schemas.catalog import ProductCreate, ServiceItemCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)

CatalogModel = Union[type[ServiceItem], type[Product]]


class CatalogService:
    """Service per servizi e prodotti a catalogo."""

    async def _list(
        self,
        db: AsyncSession,
        model: CatalogModel,
        organization_id: uuid.UUID,
        search: Optional[str],
        page: int,
        per_page: int,
    ) -> tuple[list, int]:
        conditions = [model.organization_id == organization_id, model.is_active.is_(True)]
        if search:
            search_term = f"%{search.strip()}%"
            code_column = model.code if model is ServiceItem else model.sku
            conditions.append(or_(model.name.ilike(search_term), code_column.ilike(search_term)))

        result = await db.execute(
            select(model)
            .where(*conditions)
            .order_by(model.name.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        entries = list(result.scalars().all())

        count_result = await db.execute(select(func.count()).select_from(model).where(*conditions))
        return entries, count_result.scalar() or 0

    async def _get(self, db: AsyncSession, model: CatalogModel, organization_id: uuid.UUID, entry_id: uuid.UUID):
        result = await db.execute(
            select(model).where(
                model.id == entry_id,
                model.organization_id == organization_id,
                model.is_active.is_(True),
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            logger.warning("Voce di catalogo non trovata: %s", entry_id)
            raise NotFoundError(f"Voce di catalogo con ID {entry_id} non trovata")
        return entry

    async def _create(self, db: AsyncSession, model: CatalogModel, organization_id: uuid.UUID, data):
        values = data.model_dump()
        if values.get("tax_percent") is None:
            values["tax_percent"] = settings.default_tax_percent
        entry = model(organization_id=organization_id, **values)
        db.add(entry)
        await db.flush()
        logger.info("Creata voce di catalogo %s: %s (%s)", model.__tablename__, entry.name, entry.id)
        return entry

    async def _deactivate(self, db: AsyncSession, model: CatalogModel, organization_id: uuid.UUID, entry_id: uuid.UUID):
        """Disattivazione logica: le righe esistenti restano valide."""
        entry = await self._get(db, model, organization_id, entry_id)
        entry.is_active = False
        await db.flush()
        logger.info("Disattivata voce di catalogo %s: %s", model.__tablename__, entry.id)
        return entry

    # ------------------------------------------------------------
    # Servizi
    # ------------------------------------------------------------
    async def list_services(self, db, organization_id, search=None, page=1, per_page=20):
        return await self._list(db, ServiceItem, organization_id, search, page, per_page)

    async def get_service(self, db, organization_id, service_id) -> ServiceItem:
        return await self._get(db, ServiceItem, organization_id, service_id)

    async def create_service(self, db: AsyncSession, organization_id: uuid.UUID, data: ServiceItemCreate) -> ServiceItem:
        return await self._create(db, ServiceItem, organization_id, data)

    async def deactivate_service(self, db, organization_id, service_id) -> ServiceItem:
        return await self._deactivate(db, ServiceItem, organization_id, service_id)

    # ------------------------------------------------------------
    # Prodotti
    # ------------------------------------------------------------
    async def list_products(self, db, organization_id, search=None, page=1, per_page=20):
        return await self._list(db, Product, organization_id, search, page, per_page)

    async def get_product(self, db, organization_id, product_id) -> Product:
        return await self._get(db, Product, organization_id, product_id)

    async def create_product(self, db: AsyncSession, organization_id: uuid.UUID, data: ProductCreate) -> Product:
        return await self._create(db, Product, organization_id, data)

    async def deactivate_product(self, db, organization_id, product_id) -> Product:
        return await self._deactivate(db, Product, organization_id, product_id)


# Istanza singleton del service
catalog_service = CatalogService()
