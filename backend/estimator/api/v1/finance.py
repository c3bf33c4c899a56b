"""
Router FastAPI per la Prima Nota
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.database import get_db
from estimator.core.deps import CurrentActor
from estimator.core.exceptions import BusinessValidationError
from estimator.core.permissions import require_view_prices
from estimator.schemas.finance import (
    FinanceEntryCreate,
    FinanceEntryRead,
    FinanceEntryType,
    FinanceSummary,
)
from estimator.services.finance_service import FinanceService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
finance_service = FinanceService()

router = APIRouter(
    prefix="/finance",
    tags=["Prima Nota"],
)


def _check_period(date_from: Optional[datetime.date], date_to: Optional[datetime.date]) -> None:
    if date_from and date_to and date_from > date_to:
        raise BusinessValidationError("La data di inizio deve precedere la data di fine")


@router.get(
    "/entries",
    name="prima_nota_lista",
    summary="Movimenti di prima nota",
    response_model=list[FinanceEntryRead],
    status_code=status.HTTP_200_OK,
)
async def get_finance_entries(
    actor: CurrentActor,
    date_from: Optional[datetime.date] = Query(None, description="Data inizio (inclusa)"),
    date_to: Optional[datetime.date] = Query(None, description="Data fine (inclusa)"),
    entry_type: Optional[FinanceEntryType] = Query(None, description="Filtro per tipo"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> list[FinanceEntryRead]:
    require_view_prices(actor)
    _check_period(date_from, date_to)
    entries = await finance_service.list_entries(
        db,
        date_from=date_from,
        date_to=date_to,
        entry_type=entry_type,
        limit=limit,
        offset=offset,
    )
    return [FinanceEntryRead.model_validate(e) for e in entries]


@router.get(
    "/summary",
    name="prima_nota_riepilogo",
    summary="Riepilogo entrate/uscite",
    response_model=FinanceSummary,
    status_code=status.HTTP_200_OK,
)
async def get_finance_summary(
    actor: CurrentActor,
    date_from: Optional[datetime.date] = Query(None, description="Data inizio (inclusa)"),
    date_to: Optional[datetime.date] = Query(None, description="Data fine (inclusa)"),
    currency: Optional[str] = Query(None, min_length=3, max_length=10, description="Valuta (default: quella di sistema)"),
    db: AsyncSession = Depends(get_db),
) -> FinanceSummary:
    require_view_prices(actor)
    _check_period(date_from, date_to)
    return await finance_service.summary(db, date_from=date_from, date_to=date_to, currency=currency)


@router.post(
    "/entries",
    name="prima_nota_registra",
    summary="Registra movimento manuale",
    response_model=FinanceEntryRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_finance_entry(
    data: FinanceEntryCreate,
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> FinanceEntryRead:
    entry = await finance_service.create_manual(db, data, actor)
    await db.commit()
    return FinanceEntryRead.model_validate(entry)
