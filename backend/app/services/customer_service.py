"""
Service Layer per Clienti e Veicoli
Progetto: Garage Documents (Documenti Commerciali Officina)

Anagrafiche minime referenziate dai documenti: ogni cliente e ogni
veicolo appartiene a una sola organizzazione, e un veicolo a un solo
cliente.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import IntegrityFailureError, NotFoundError
from app.models import Customer, Vehicle
from app.schemas.customer import CustomerCreate
from app.schemas.vehicle import VehicleCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class CustomerService:
    """
    Service per la gestione dei clienti e dei loro veicoli.

    Fornisce metodi asincroni senza dipendenze da FastAPI; il commit
    è responsabilità del chiamante.
    """

    async def get_all(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        page: int = 1,
        per_page: int = 20,
        search: Optional[str] = None,
    ) -> tuple[list[Customer], int]:
        """
        Recupera la lista paginata dei clienti attivi.

        Args:
            db: Sessione database
            organization_id: Organizzazione del chiamante
            page: Numero pagina (default 1)
            per_page: Elementi per pagina
            search: Ricerca su nome, email, telefono e identificativo fiscale

        Returns:
            Tuple di (lista clienti, totale count)
        """
        conditions = [
            Customer.organization_id == organization_id,
            Customer.is_active.is_(True),
        ]
        if search:
            search_term = f"%{search.strip()}%"
            conditions.append(
                or_(
                    Customer.name.ilike(search_term),
                    Customer.email.ilike(search_term),
                    Customer.phone.ilike(search_term),
                    Customer.tax_id.ilike(search_term),
                )
            )

        query = (
            select(Customer)
            .where(*conditions)
            .order_by(Customer.name.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(query)
        customers = list(result.scalars().all())

        count_result = await db.execute(
            select(func.count()).select_from(Customer).where(*conditions)
        )
        total = count_result.scalar() or 0

        logger.info("Recuperati %s clienti su %s totali (pagina %s)", len(customers), total, page)
        return customers, total

    async def get_by_id(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> Customer:
        """
        Recupera un cliente attivo dell'organizzazione.

        Raises:
            NotFoundError: Se il cliente non esiste o è di un'altra organizzazione
        """
        result = await db.execute(
            select(Customer).where(
                Customer.id == customer_id,
                Customer.organization_id == organization_id,
                Customer.is_active.is_(True),
            )
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            logger.warning("Cliente non trovato: %s", customer_id)
            raise NotFoundError(f"Cliente con ID {customer_id} non trovato")
        return customer

    async def create(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_data: CustomerCreate,
    ) -> Customer:
        """
        Crea un nuovo cliente.

        Raises:
            IntegrityFailureError: Se il database genera un errore imprevisto
        """
        customer = Customer(organization_id=organization_id, **customer_data.model_dump())
        try:
            db.add(customer)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy creazione cliente: %s - %s", e.__class__.__name__, e)
            raise IntegrityFailureError("Errore del database durante la creazione del cliente") from e

        logger.info("Creato nuovo cliente: %s - %s", customer.id, customer.name)
        return customer

    # ------------------------------------------------------------
    # Veicoli
    # ------------------------------------------------------------
    async def get_vehicles(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
    ) -> list[Vehicle]:
        """Veicoli attivi del cliente."""
        await self.get_by_id(db, organization_id, customer_id)
        result = await db.execute(
            select(Vehicle)
            .where(
                Vehicle.customer_id == customer_id,
                Vehicle.organization_id == organization_id,
                Vehicle.is_active.is_(True),
            )
            .order_by(Vehicle.brand.asc(), Vehicle.model.asc())
        )
        return list(result.scalars().all())

    async def add_vehicle(
        self,
        db: AsyncSession,
        organization_id: uuid.UUID,
        customer_id: uuid.UUID,
        vehicle_data: VehicleCreate,
    ) -> Vehicle:
        """
        Registra un veicolo per il cliente.

        Raises:
            NotFoundError: Se il cliente non esiste
        """
        await self.get_by_id(db, organization_id, customer_id)

        vehicle = Vehicle(
            organization_id=organization_id,
            customer_id=customer_id,
            **vehicle_data.model_dump(),
        )
        try:
            db.add(vehicle)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy creazione veicolo: %s - %s", e.__class__.__name__, e)
            raise IntegrityFailureError("Errore del database durante la creazione del veicolo") from e

        logger.info("Creato veicolo %s per il cliente %s", vehicle.display_name, customer_id)
        return vehicle


# Istanza singleton del service
customer_service = CustomerService()
