"""
Service Layer per lo Storico dei Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Registro append-only degli eventi e helper per eseguire gli effetti
collaterali (storico, notifiche) senza compromettere l'operazione principale.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.models import EstimateHistory
from estimator.schemas.history import HistoryAction

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    """Rende serializzabile in JSON uno snapshot (Decimal, UUID, date, Enum)."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


async def run_best_effort(
    db: AsyncSession,
    description: str,
    operation: Callable[[], Awaitable[Any]],
) -> bool:
    """
    Esegue un effetto collaterale dopo il commit dell'operazione principale.

    In caso di errore la sessione viene riportata a uno stato pulito e
    l'errore è solo loggato: l'operazione principale resta committata.

    Args:
        db: Sessione database (transazione principale già committata)
        description: Descrizione per il log
        operation: Coroutine factory che esegue l'effetto

    Returns:
        True se l'effetto è stato registrato
    """
    try:
        await operation()
        await db.commit()
        return True
    except Exception:
        logger.exception("Effetto collaterale fallito: %s", description)
        await db.rollback()
        return False


class HistoryService:
    """
    Service per lo storico dei preventivi.

    Le voci sono solo aggiunte: non esistono metodi di modifica o cancellazione.
    """

    async def record(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        action: HistoryAction,
        actor_id: Optional[uuid.UUID],
        old_values: Optional[dict[str, Any]] = None,
        new_values: Optional[dict[str, Any]] = None,
        comment: Optional[str] = None,
    ) -> EstimateHistory:
        """
        Aggiunge una voce allo storico.

        Args:
            db: Sessione database
            estimate_id: UUID del preventivo
            action: Tipo di evento
            actor_id: UUID dell'operatore (None per azioni di sistema)
            old_values: Snapshot prima dell'evento
            new_values: Snapshot dopo l'evento
            comment: Commento opzionale

        Returns:
            EstimateHistory: La voce creata (flush eseguito, non committata)
        """
        last = await db.execute(
            select(func.max(EstimateHistory.sequence)).where(EstimateHistory.estimate_id == estimate_id)
        )
        entry = EstimateHistory(
            estimate_id=estimate_id,
            sequence=(last.scalar() or 0) + 1,
            action=action.value,
            actor_id=actor_id,
            old_values=_jsonable(old_values) if old_values is not None else None,
            new_values=_jsonable(new_values) if new_values is not None else None,
            comment=comment,
        )
        db.add(entry)
        await db.flush()
        logger.debug("Storico %s: %s", estimate_id, action.value)
        return entry

    async def list_for_estimate(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
    ) -> Sequence[EstimateHistory]:
        """
        Storico di un preventivo, dal più recente.

        L'ordine segue il progressivo di inserimento: più eventi registrati
        nello stesso istante restano nell'ordine in cui sono avvenuti.
        """
        result = await db.execute(
            select(EstimateHistory)
            .where(EstimateHistory.estimate_id == estimate_id)
            .order_by(EstimateHistory.sequence.desc())
        )
        return result.scalars().all()
