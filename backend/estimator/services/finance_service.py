"""
Service Layer per la Prima Nota
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Lettura dei movimenti, riepilogo per periodo e movimenti manuali.
I movimenti generati da pagamenti e rimborsi sono creati da PaymentService.
"""

import datetime
import logging
from typing import Optional, Sequence

from sqlalchemy import and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.config import settings
from estimator.core.exceptions import NotFoundError
from estimator.core.permissions import Actor, require_manage_estimates
from estimator.models import Estimate, FinanceEntry
from estimator.schemas.finance import (
    FinanceEntryCreate,
    FinanceEntryType,
    FinanceSource,
    FinanceSummary,
)
from estimator.services.pricing import money_round

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _period_conditions(
    date_from: Optional[datetime.date],
    date_to: Optional[datetime.date],
) -> list:
    conditions = []
    if date_from is not None:
        conditions.append(
            FinanceEntry.created_at >= datetime.datetime.combine(date_from, datetime.time.min)
        )
    if date_to is not None:
        conditions.append(
            FinanceEntry.created_at < datetime.datetime.combine(
                date_to + datetime.timedelta(days=1), datetime.time.min
            )
        )
    return conditions


class FinanceService:
    """Service per la consultazione e la registrazione della prima nota."""

    async def list_entries(
        self,
        db: AsyncSession,
        date_from: Optional[datetime.date] = None,
        date_to: Optional[datetime.date] = None,
        entry_type: Optional[FinanceEntryType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> Sequence[FinanceEntry]:
        """Movimenti filtrati per periodo e tipo, dal più recente."""
        conditions = _period_conditions(date_from, date_to)
        if entry_type is not None:
            conditions.append(FinanceEntry.entry_type == entry_type.value)

        stmt = select(FinanceEntry)
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = stmt.order_by(FinanceEntry.created_at.desc()).offset(offset).limit(limit)

        result = await db.execute(stmt)
        return result.scalars().all()

    async def summary(
        self,
        db: AsyncSession,
        date_from: Optional[datetime.date] = None,
        date_to: Optional[datetime.date] = None,
        currency: Optional[str] = None,
    ) -> FinanceSummary:
        """
        Riepilogo entrate/uscite sul periodo, in una sola valuta.

        La valuta è solo un'etichetta: importi in valute diverse non si
        sommano. Senza currency si usa la valuta di default.

        Returns:
            FinanceSummary: totale entrate, totale uscite, netto e numero movimenti
        """
        currency = (currency or settings.default_currency).strip().upper()
        income = func.coalesce(
            func.sum(case((FinanceEntry.entry_type == FinanceEntryType.INCOME.value, FinanceEntry.amount), else_=0)),
            0,
        )
        expenses = func.coalesce(
            func.sum(case((FinanceEntry.entry_type == FinanceEntryType.EXPENSE.value, FinanceEntry.amount), else_=0)),
            0,
        )
        conditions = _period_conditions(date_from, date_to)
        conditions.append(FinanceEntry.currency == currency)
        stmt = select(income, expenses, func.count(FinanceEntry.id)).where(and_(*conditions))

        total_income, total_expenses, count = (await db.execute(stmt)).one()
        total_income = money_round(total_income)
        total_expenses = money_round(total_expenses)

        return FinanceSummary(
            date_from=date_from,
            date_to=date_to,
            currency=currency,
            total_income=total_income,
            total_expenses=total_expenses,
            net_profit=total_income - total_expenses,
            entry_count=count or 0,
        )

    async def create_manual(
        self,
        db: AsyncSession,
        data: FinanceEntryCreate,
        actor: Actor,
    ) -> FinanceEntry:
        """Registra un movimento manuale (senza pagamento collegato)."""
        require_manage_estimates(actor)

        if data.estimate_id is not None and await db.get(Estimate, data.estimate_id) is None:
            raise NotFoundError(f"Preventivo con ID {data.estimate_id} non trovato")

        amount = money_round(data.amount)
        fees = money_round(data.fees)
        entry = FinanceEntry(
            entry_type=data.entry_type.value,
            amount=amount,
            currency=(data.currency or settings.default_currency).upper(),
            source=FinanceSource.MANUAL.value,
            description=data.description,
            estimate_id=data.estimate_id,
            fees=fees,
            gross_amount=amount,
            net_amount=amount - fees if data.entry_type == FinanceEntryType.INCOME else amount,
            created_by=actor.id,
        )
        db.add(entry)
        await db.flush()

        logger.info("Registrato movimento manuale %s di %s", entry.entry_type, entry.amount)
        return entry
