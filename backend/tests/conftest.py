"""
Pytest configuration and fixtures.

Service and API tests run against an in-memory SQLite database (aiosqlite)
with the full schema created from the models. API tests go through the
real FastAPI app with httpx and an overridden get_db dependency.
"""

import uuid
from decimal import Decimal
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import build_engine, build_session_factory, get_db
from app.main import app
from app.models import Base, Customer, Product, ServiceItem, Vehicle


ORG_ID = settings.default_organization_id
OTHER_ORG_ID = uuid.UUID("00000000-0000-0000-0000-0000000000ff")


# ============================================================
# Database
# ============================================================


@pytest_asyncio.fixture
async def engine():
    """Engine SQLite in memoria condiviso tra le sessioni del test."""
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # pysqlite/aiosqlite non emettono BEGIN da soli: senza questi hook
    # i SAVEPOINT usati da begin_nested() non funzionano.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessione per i test del service layer."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Client HTTP sull'app reale con get_db sovrascritto."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================
# Anagrafiche e catalogo
# ============================================================


async def _persist(session_factory, obj):
    async with session_factory() as session:
        session.add(obj)
        await session.commit()
    return obj


@pytest_asyncio.fixture
async def customer(session_factory) -> Customer:
    return await _persist(
        session_factory,
        Customer(organization_id=ORG_ID, name="Taller Cliente Uno", email="cliente@example.com"),
    )


@pytest_asyncio.fixture
async def other_customer(session_factory) -> Customer:
    return await _persist(
        session_factory,
        Customer(organization_id=ORG_ID, name="Cliente Due"),
    )


@pytest_asyncio.fixture
async def vehicle(session_factory, customer) -> Vehicle:
    return await _persist(
        session_factory,
        Vehicle(
            organization_id=ORG_ID,
            customer_id=customer.id,
            brand="Nissan",
            model="Versa",
            year=2019,
            license_plate="ABC1234",
        ),
    )


@pytest_asyncio.fixture
async def service_item(session_factory) -> ServiceItem:
    return await _persist(
        session_factory,
        ServiceItem(
            organization_id=ORG_ID,
            name="Cambio olio",
            code="SRV-OIL",
            unit_price=Decimal("450.00"),
            tax_percent=Decimal("16.00"),
        ),
    )


@pytest_asyncio.fixture
async def product(session_factory) -> Product:
    return await _persist(
        session_factory,
        Product(
            organization_id=ORG_ID,
            name="Filtro olio",
            sku="FLT-001",
            unit_price=Decimal("120.00"),
            tax_percent=Decimal("16.00"),
        ),
    )


# ============================================================
# Helper per i test API
# ============================================================


def line(quantity: Any = "2", unit_price: Any = "150.00", **extra) -> dict[str, Any]:
    """Riga libera in formato JSON."""
    payload = {"description": "Mano de obra", "quantity": str(quantity), "unit_price": str(unit_price)}
    payload.update({k: str(v) if isinstance(v, Decimal) else v for k, v in extra.items()})
    return payload


async def create_quotation(client: AsyncClient, customer_id: uuid.UUID, items=None, **extra) -> dict:
    payload = {"customer_id": str(customer_id), "items": items if items is not None else [line()]}
    payload.update(extra)
    response = await client.post("/api/v1/quotations/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def quotation_action(client: AsyncClient, quotation: dict, action: str, **body) -> Any:
    return await client.post(
        f"/api/v1/quotations/{quotation['id']}/{action}",
        json={"version": quotation["version"], **body},
    )


async def approved_quotation(client: AsyncClient, customer_id: uuid.UUID, items=None) -> dict:
    quotation = await create_quotation(client, customer_id, items)
    response = await quotation_action(client, quotation, "send")
    assert response.status_code == 200, response.text
    response = await quotation_action(client, response.json()["data"], "approve")
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def create_work_order(client: AsyncClient, customer_id: uuid.UUID, items=None, **extra) -> dict:
    payload = {"customer_id": str(customer_id), "items": items if items is not None else [line()]}
    payload.update(extra)
    response = await client.post("/api/v1/work-orders/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def set_work_order_status(client: AsyncClient, work_order: dict, status: str) -> dict:
    response = await client.put(
        f"/api/v1/work-orders/{work_order['id']}/status",
        json={"version": work_order["version"], "status": status},
    )
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def create_invoice(client: AsyncClient, customer_id: uuid.UUID, items=None, **extra) -> dict:
    payload = {"customer_id": str(customer_id), "items": items if items is not None else [line()]}
    payload.update(extra)
    response = await client.post("/api/v1/invoices/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]
