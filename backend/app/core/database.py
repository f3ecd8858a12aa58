"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Garage Documents (Documenti Commerciali Officina)

Definisce engine, session factory e dependency injection per FastAPI.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

# Logger per questo modulo
logger = logging.getLogger(__name__)


def build_engine(database_url: str, **overrides: Any) -> AsyncEngine:
    """
    Crea un engine async con le opzioni di pool adatte al driver.

    SQLite (usato nei test) non accetta pool_size/max_overflow,
    per cui le opzioni di pool vengono applicate solo agli altri driver.

    Args:
        database_url: URL di connessione in formato async
        **overrides: Opzioni aggiuntive passate a create_async_engine

    Returns:
        AsyncEngine: Engine configurato
    """
    options: dict[str, Any] = {"echo": settings.debug}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_pre_ping=True,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )
    options.update(overrides)
    return create_async_engine(database_url, **options)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory con le opzioni comuni a richieste e job in background."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ------------------------------------------------------------
# Engine e Session Factory dell'applicazione
# ------------------------------------------------------------
engine: AsyncEngine = build_engine(settings.database_url)
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Crea una sessione database per ogni richiesta e la chiude
    automaticamente al termine. Il commit è responsabilità del router;
    in caso di eccezione la transazione viene annullata.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """
    Inizializza la connessione al database.

    Esegue un test di connessione per verificare
    che il database sia raggiungibile.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """
    Chiude le connessioni al database.

    Da chiamare durante lo shutdown dell'applicazione.
    """
    await engine.dispose()
    logger.info("Connessioni database chiuse")
