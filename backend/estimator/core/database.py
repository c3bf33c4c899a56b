"""
Accesso al database - SQLAlchemy 2.0 Async
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Engine condiviso, fabbrica di sessioni e dipendenza `get_db` per i router.
In produzione PostgreSQL tramite asyncpg; nei test SQLite tramite aiosqlite.
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
from sqlalchemy.pool import NullPool

from estimator.core.config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> dict[str, Any]:
    """Parametri di pool: SQLite non accetta pool_size, usa NullPool."""
    if settings.is_sqlite:
        return {"poolclass": NullPool}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
    }


# ------------------------------------------------------------
# Engine e sessioni
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(),
)

# expire_on_commit=False: i service rileggono gli oggetti dopo il commit
# per gli effetti collaterali (storico, notifiche)
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Sessione per la singola richiesta HTTP.

    Se l'endpoint solleva un'eccezione la transazione aperta viene
    annullata prima di chiudere la sessione; il commit resta a carico
    di router e service.
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
    """Verifica all'avvio che il database risponda."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database raggiungibile (%s)", engine.url.get_backend_name())
    except Exception as e:
        logger.error("Database non raggiungibile: %s", e)
        raise


async def close_db() -> None:
    """Rilascia il pool di connessioni allo shutdown."""
    await engine.dispose()
    logger.info("Pool di connessioni rilasciato")
