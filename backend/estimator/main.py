"""
Applicazione FastAPI del preventivatore
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Monta i router v1, traduce le eccezioni di dominio in risposte JSON
e verifica il database all'avvio.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from estimator.api.v1 import api_v1_router
from estimator.core.config import settings
from estimator.core.database import close_db, init_db
from estimator.core.exceptions import AppException

# ------------------------------------------------------------
# Logging
# ------------------------------------------------------------
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ------------------------------------------------------------
# Avvio e arresto
# ------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Controlla il database prima di servire richieste, rilascia il pool alla fine."""
    logger.info("Avvio %s v%s (%s)", settings.app_name, settings.app_version, settings.app_env)
    await init_db()

    yield

    await close_db()
    logger.info("%s arrestato", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    description="Preventivi per impianti elettrici - Backend API",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# ------------------------------------------------------------
# Gestori delle eccezioni
# ------------------------------------------------------------
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Eccezioni di dominio: status ed error_code vengono dall'eccezione.

    403 permesso mancante, 404 risorsa assente, 409 stato cambiato nel
    frattempo, 422 regola di business (preventivo bloccato, transizione
    non consentita, pagamento già rimborsato).
    """
    if exc.status_code >= 500:
        logger.error("Errore applicativo: %s", exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Errore del database: la transazione non è stata committata, si può riprovare."""
    logger.error("Errore database su %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Operazione non riuscita, riprovare",
            "error_code": "DATABASE_ERROR",
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Eccezione non gestita su %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Errore interno del server", "error_code": "INTERNAL_SERVER_ERROR"},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ------------------------------------------------------------
# Endpoint di sistema e router
# ------------------------------------------------------------
@app.get("/health", summary="Stato del servizio", tags=["System"])
async def health_check() -> dict[str, str]:
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
    }


app.include_router(api_v1_router)
