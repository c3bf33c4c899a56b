"""
Service Layer per il ciclo di vita del preventivo
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Applica le transizioni di stato sul preventivo appena ricaricato dal
database, registra lo storico e notifica il creatore.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.exceptions import ConflictError, InvalidTransitionError
from estimator.core.permissions import Actor, require_change_status
from estimator.models import Estimate
from estimator.models.mixins import utcnow
from estimator.schemas.estimate import (
    STATUS_LABELS,
    AvailableTransitions,
    EstimateStatus,
    TransitionValidation,
)
from estimator.schemas.history import HistoryAction
from estimator.schemas.notification import NotificationType
from estimator.services.estimate_service import EstimateService
from estimator.services.history_service import HistoryService, run_best_effort
from estimator.services.notification_service import NotificationService
from estimator.services.workflow import (
    get_available_transitions,
    is_editable,
    validate_transition,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _label(status: str) -> str:
    try:
        return STATUS_LABELS[EstimateStatus(status)]
    except ValueError:
        return status


class WorkflowService:
    """
    Service per le transizioni di stato dei preventivi.

    Ogni transizione rilegge la riga dal database (FOR UPDATE), la
    rivalida e solo dopo il commit esegue storico e notifica.
    """

    def __init__(
        self,
        estimate_service: Optional[EstimateService] = None,
        history_service: Optional[HistoryService] = None,
        notification_service: Optional[NotificationService] = None,
    ) -> None:
        self.estimates = estimate_service or EstimateService()
        self.history = history_service or HistoryService()
        self.notifications = notification_service or NotificationService()

    async def validate(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        target: EstimateStatus,
    ) -> TransitionValidation:
        """Validazione a secco di una transizione."""
        estimate = await self.estimates.get_by_id(db, estimate_id)
        return validate_transition(estimate, target)

    async def available(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
    ) -> AvailableTransitions:
        """Transizioni consentite dallo stato corrente."""
        estimate = await self.estimates.get_by_id(db, estimate_id)
        return AvailableTransitions(
            current_status=EstimateStatus(estimate.status),
            available=get_available_transitions(estimate),
        )

    async def apply_transition(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        target: EstimateStatus,
        actor: Actor,
        comment: Optional[str] = None,
        expected_status: Optional[EstimateStatus] = None,
    ) -> Estimate:
        """
        Cambia lo stato di un preventivo.

        Args:
            db: Sessione database
            estimate_id: UUID del preventivo
            target: Stato di destinazione
            actor: Operatore che esegue la transizione
            comment: Commento registrato nello storico
            expected_status: Stato visto dall'operatore (controllo concorrenza)

        Returns:
            Estimate: Il preventivo aggiornato

        Raises:
            AuthorizationError: Se l'operatore non può cambiare stato
            ConflictError: Se lo stato è cambiato rispetto a expected_status
            InvalidTransitionError: Se la transizione non è consentita
        """
        require_change_status(actor)
        estimate = await self.estimates.get_for_update(db, estimate_id)

        if expected_status is not None and estimate.status != expected_status.value:
            raise ConflictError(
                f"Il preventivo {estimate.number} è stato modificato: stato attuale "
                f"'{estimate.status}', atteso '{expected_status.value}'",
                extra={"current_status": estimate.status},
            )

        validation = validate_transition(estimate, target)
        if not validation.valid:
            logger.warning(
                "Transizione rifiutata per %s: %s -> %s (%s)",
                estimate.number,
                estimate.status,
                target.value,
                validation.reason,
            )
            raise InvalidTransitionError(validation.reason or "Transizione non consentita")

        old_status = estimate.status
        now = utcnow()
        estimate.status = target.value
        estimate.locked = not is_editable(target)

        if target == EstimateStatus.SENT:
            estimate.sent_at = now
        elif target == EstimateStatus.APPROVED:
            estimate.approved_at = now
        elif target == EstimateStatus.PREPAYMENT_RECEIVED:
            estimate.prepayment_confirmed = True
            estimate.prepayment_confirmed_at = now
            estimate.prepayment_confirmed_by = actor.id

        await db.commit()

        number, creator_id, client_name = estimate.number, estimate.created_by, estimate.client_name
        logger.info("Preventivo %s: %s -> %s", number, old_status, target.value)

        await run_best_effort(
            db,
            f"storico cambio stato {number}",
            lambda: self.history.record(
                db,
                estimate_id,
                HistoryAction.STATUS_CHANGE,
                actor.id,
                old_values={"status": old_status},
                new_values={"status": target.value, "comment": comment},
                comment=comment,
            ),
        )
        await run_best_effort(
            db,
            f"notifica cambio stato {number}",
            lambda: self.notifications.notify_creator(
                db,
                creator_id,
                estimate_id,
                actor.id,
                NotificationType.STATUS_CHANGE,
                f"{number}: {_label(old_status)} → {_label(target.value)}",
                f"Preventivo per {client_name}",
            ),
        )

        return await self.estimates.get_by_id(db, estimate_id)

    async def confirm_prepayment(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        actor: Actor,
    ) -> Estimate:
        """
        Conferma la ricezione dell'acconto senza cambiare stato.

        Idempotente: se l'acconto è già confermato il preventivo è
        restituito invariato.
        """
        require_change_status(actor)
        estimate = await self.estimates.get_for_update(db, estimate_id)

        if estimate.prepayment_confirmed:
            logger.info("Acconto del preventivo %s già confermato", estimate.number)
            return await self.estimates.get_by_id(db, estimate_id)

        estimate.prepayment_confirmed = True
        estimate.prepayment_confirmed_at = utcnow()
        estimate.prepayment_confirmed_by = actor.id
        await db.commit()

        number = estimate.number
        logger.info("Confermato acconto del preventivo %s", number)

        await run_best_effort(
            db,
            f"storico conferma acconto {number}",
            lambda: self.history.record(
                db,
                estimate_id,
                HistoryAction.PREPAYMENT_CONFIRMED,
                actor.id,
                old_values={"prepayment_confirmed": False},
                new_values={"prepayment_confirmed": True},
            ),
        )

        return await self.estimates.get_by_id(db, estimate_id)
