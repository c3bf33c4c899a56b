"""
Service Layer per i Pagamenti dei preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Registro pagamenti con conferma idempotente e rimborso tramite storno:
ogni conferma genera esattamente un'entrata in prima nota, ogni rimborso
esattamente un'uscita. paid_amount è sempre ricalcolato da zero come
somma dei pagamenti confermati.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from estimator.core.permissions import Actor, require_manage_estimates
from estimator.models import Estimate, EstimatePayment, FinanceEntry
from estimator.models.mixins import utcnow
from estimator.schemas.finance import FinanceEntryType, FinanceSource
from estimator.schemas.history import HistoryAction
from estimator.schemas.notification import NotificationType
from estimator.schemas.payment import PaymentCreate, PaymentStatus
from estimator.services.history_service import HistoryService, run_best_effort
from estimator.services.notification_service import NotificationService
from estimator.services.pricing import money_round

# Logger per questo modulo
logger = logging.getLogger(__name__)


async def compute_paid_amount(db: AsyncSession, estimate_id: uuid.UUID) -> Decimal:
    """Somma dei pagamenti confermati di un preventivo (i rimborsati sono esclusi)."""
    result = await db.execute(
        select(func.coalesce(func.sum(EstimatePayment.amount), 0)).where(
            EstimatePayment.estimate_id == estimate_id,
            EstimatePayment.status == PaymentStatus.CONFIRMED.value,
        )
    )
    return money_round(result.scalar())


class PaymentService:
    """
    Service per la gestione dei pagamenti.

    Conferma e rimborso sono eseguiti in un'unica transazione
    (stato pagamento, movimento di prima nota, paid_amount) con la riga
    del pagamento bloccata; storico e notifiche seguono il commit in
    modalità best-effort.
    """

    def __init__(
        self,
        history_service: Optional[HistoryService] = None,
        notification_service: Optional[NotificationService] = None,
    ) -> None:
        self.history = history_service or HistoryService()
        self.notifications = notification_service or NotificationService()

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------

    async def get_by_id(
        self,
        db: AsyncSession,
        payment_id: uuid.UUID,
        for_update: bool = False,
    ) -> EstimatePayment:
        """
        Recupera un pagamento ricaricandolo dal database.

        Raises:
            NotFoundError: Se il pagamento non esiste
        """
        stmt = (
            select(EstimatePayment)
            .where(EstimatePayment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        payment = (await db.execute(stmt)).scalar_one_or_none()
        if payment is None:
            raise NotFoundError(f"Pagamento con ID {payment_id} non trovato")
        return payment

    async def _get_estimate_for_update(self, db: AsyncSession, estimate_id: uuid.UUID) -> Estimate:
        result = await db.execute(
            select(Estimate)
            .where(Estimate.id == estimate_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        estimate = result.scalar_one_or_none()
        if estimate is None:
            raise NotFoundError(f"Preventivo con ID {estimate_id} non trovato")
        return estimate

    async def list_for_estimate(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
    ) -> Sequence[EstimatePayment]:
        """Pagamenti di un preventivo, dal più recente."""
        if await db.get(Estimate, estimate_id) is None:
            raise NotFoundError(f"Preventivo con ID {estimate_id} non trovato")

        result = await db.execute(
            select(EstimatePayment)
            .where(EstimatePayment.estimate_id == estimate_id)
            .order_by(EstimatePayment.created_at.desc())
        )
        return result.scalars().all()

    async def _finance_entry_exists(
        self,
        db: AsyncSession,
        payment_id: uuid.UUID,
        entry_type: FinanceEntryType,
    ) -> bool:
        result = await db.execute(
            select(func.count(FinanceEntry.id)).where(
                FinanceEntry.payment_id == payment_id,
                FinanceEntry.entry_type == entry_type.value,
            )
        )
        return bool(result.scalar())

    # ------------------------------------------------------------
    # Registrazione
    # ------------------------------------------------------------

    async def create_payment(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        data: PaymentCreate,
        actor: Actor,
    ) -> EstimatePayment:
        """
        Registra un pagamento in stato pending.

        Valuta, metodo e destinatario mancanti sono presi dal preventivo.
        Il blocco pagamento resta modificabile anche sui preventivi bloccati
        e sono ammessi importi superiori al saldo.
        """
        require_manage_estimates(actor)
        estimate = await db.get(Estimate, estimate_id)
        if estimate is None:
            raise NotFoundError(f"Preventivo con ID {estimate_id} non trovato")

        payment = EstimatePayment(
            estimate_id=estimate.id,
            amount=money_round(data.amount),
            currency=(data.currency or estimate.currency).upper(),
            payment_method=data.payment_method.value if data.payment_method else estimate.payment_method,
            payment_recipient=data.payment_recipient or estimate.payment_recipient,
            reference=data.reference,
            notes=data.notes,
            fees=money_round(data.fees),
            status=PaymentStatus.PENDING.value,
            verified=False,
            created_by=actor.id,
        )
        db.add(payment)
        await db.flush()

        await self.history.record(
            db,
            estimate.id,
            HistoryAction.PAYMENT_CREATED,
            actor.id,
            new_values={
                "payment_id": payment.id,
                "amount": payment.amount,
                "currency": payment.currency,
                "status": payment.status,
            },
        )

        logger.info(
            "Registrato pagamento %s %s sul preventivo %s",
            payment.amount,
            payment.currency,
            estimate.number,
        )
        return payment

    async def delete_pending(
        self,
        db: AsyncSession,
        payment_id: uuid.UUID,
        actor: Actor,
    ) -> None:
        """
        Elimina un pagamento registrato per errore.

        Solo i pagamenti pending (senza effetti in prima nota) sono eliminabili.
        """
        require_manage_estimates(actor)
        payment = await self.get_by_id(db, payment_id, for_update=True)

        if payment.status != PaymentStatus.PENDING.value:
            raise BusinessValidationError(
                "Solo i pagamenti in attesa di conferma possono essere eliminati"
            )

        await db.delete(payment)
        await db.flush()
        logger.info("Eliminato pagamento pending %s", payment_id)

    # ------------------------------------------------------------
    # Conferma
    # ------------------------------------------------------------

    async def confirm_payment(
        self,
        db: AsyncSession,
        payment_id: uuid.UUID,
        actor: Actor,
    ) -> EstimatePayment:
        """
        Conferma un pagamento.

        Idempotente: un pagamento già confermato è restituito invariato.
        Crea l'entrata in prima nota (netto = importo - commissioni) se non
        esiste e ricalcola paid_amount, tutto nella stessa transazione.

        Raises:
            BusinessValidationError: Se il pagamento è già stato rimborsato
        """
        require_manage_estimates(actor)
        payment = await self.get_by_id(db, payment_id, for_update=True)

        if payment.status == PaymentStatus.CONFIRMED.value:
            logger.info("Pagamento %s già confermato: nessuna modifica", payment_id)
            return payment

        if payment.status == PaymentStatus.REFUNDED.value:
            raise BusinessValidationError(
                "Il pagamento è già stato rimborsato e non può essere confermato"
            )

        estimate = await self._get_estimate_for_update(db, payment.estimate_id)

        payment.status = PaymentStatus.CONFIRMED.value
        payment.verified = True
        payment.verified_by = actor.id
        payment.confirmed_at = utcnow()
        payment.gross_amount = payment.amount
        payment.net_amount = money_round(payment.amount - (payment.fees or 0))

        if not await self._finance_entry_exists(db, payment.id, FinanceEntryType.INCOME):
            db.add(
                FinanceEntry(
                    entry_type=FinanceEntryType.INCOME.value,
                    amount=payment.amount,
                    currency=payment.currency,
                    source=FinanceSource.ESTIMATE_PAYMENT.value,
                    description=f"Pagamento preventivo {estimate.number}",
                    estimate_id=estimate.id,
                    payment_id=payment.id,
                    fees=payment.fees or Decimal("0"),
                    gross_amount=payment.amount,
                    net_amount=payment.net_amount,
                    created_by=actor.id,
                )
            )

        await db.flush()
        estimate.paid_amount = await compute_paid_amount(db, estimate.id)

        try:
            await db.commit()
        except IntegrityError:
            # Conferma concorrente: l'entrata esiste già, vale l'esito del vincitore
            await db.rollback()
            logger.warning("Conferma concorrente del pagamento %s", payment_id)
            winner = await self.get_by_id(db, payment_id)
            if winner.status == PaymentStatus.PENDING.value:
                raise ConflictError("Conferma del pagamento non riuscita, riprovare")
            return winner

        estimate_id, estimate_number = estimate.id, estimate.number
        creator_id, client_name = estimate.created_by, estimate.client_name
        amount, currency = payment.amount, payment.currency
        logger.info("Confermato pagamento %s sul preventivo %s", payment_id, estimate_number)

        await run_best_effort(
            db,
            f"storico conferma pagamento {payment_id}",
            lambda: self.history.record(
                db,
                estimate_id,
                HistoryAction.PAYMENT_CONFIRMED,
                actor.id,
                old_values={"payment_id": payment_id, "status": PaymentStatus.PENDING.value},
                new_values={
                    "payment_id": payment_id,
                    "status": PaymentStatus.CONFIRMED.value,
                    "amount": amount,
                },
            ),
        )
        await run_best_effort(
            db,
            f"notifica conferma pagamento {payment_id}",
            lambda: self.notifications.notify_creator(
                db,
                creator_id,
                estimate_id,
                actor.id,
                NotificationType.PAYMENT_CONFIRMED,
                f"{estimate_number}: pagamento confermato",
                f"Ricevuti {amount} {currency} da {client_name}",
            ),
        )

        return await self.get_by_id(db, payment_id)

    # ------------------------------------------------------------
    # Rimborso
    # ------------------------------------------------------------

    async def refund_payment(
        self,
        db: AsyncSession,
        payment_id: uuid.UUID,
        actor: Actor,
        reason: Optional[str] = None,
    ) -> EstimatePayment:
        """
        Rimborsa integralmente un pagamento confermato.

        Registra un'uscita (storno) in prima nota con il motivo e ricalcola
        paid_amount. Un pagamento pending non può essere rimborsato: va
        eliminato.

        Raises:
            BusinessValidationError: Se il pagamento è già rimborsato o non confermato
        """
        require_manage_estimates(actor)
        payment = await self.get_by_id(db, payment_id, for_update=True)

        if payment.status == PaymentStatus.REFUNDED.value:
            raise BusinessValidationError(
                "Il pagamento è già stato rimborsato",
                error_code="PAYMENT_ALREADY_REFUNDED",
            )
        if payment.status != PaymentStatus.CONFIRMED.value:
            raise BusinessValidationError(
                "Solo un pagamento confermato può essere rimborsato; "
                "un pagamento in attesa va eliminato",
                error_code="PAYMENT_NOT_CONFIRMED",
            )

        estimate = await self._get_estimate_for_update(db, payment.estimate_id)
        reason = reason.strip() if reason else None

        payment.status = PaymentStatus.REFUNDED.value
        payment.refunded_at = utcnow()
        payment.refund_reason = reason

        if not await self._finance_entry_exists(db, payment.id, FinanceEntryType.EXPENSE):
            db.add(
                FinanceEntry(
                    entry_type=FinanceEntryType.EXPENSE.value,
                    amount=payment.amount,
                    currency=payment.currency,
                    source=FinanceSource.REFUND.value,
                    description=f"Rimborso: {reason}" if reason else f"Rimborso preventivo {estimate.number}",
                    estimate_id=estimate.id,
                    payment_id=payment.id,
                    fees=Decimal("0"),
                    gross_amount=payment.amount,
                    net_amount=payment.amount,
                    reason=reason,
                    created_by=actor.id,
                )
            )

        await db.flush()
        estimate.paid_amount = await compute_paid_amount(db, estimate.id)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Rimborso concorrente del pagamento %s", payment_id)
            raise BusinessValidationError(
                "Il pagamento è già stato rimborsato",
                error_code="PAYMENT_ALREADY_REFUNDED",
            )

        estimate_id, amount = estimate.id, payment.amount
        logger.info("Rimborsato pagamento %s sul preventivo %s", payment_id, estimate.number)

        await run_best_effort(
            db,
            f"storico rimborso pagamento {payment_id}",
            lambda: self.history.record(
                db,
                estimate_id,
                HistoryAction.PAYMENT_REFUNDED,
                actor.id,
                old_values={"payment_id": payment_id, "status": PaymentStatus.CONFIRMED.value, "amount": amount},
                new_values={"payment_id": payment_id, "status": PaymentStatus.REFUNDED.value, "reason": reason},
                comment=reason,
            ),
        )

        return await self.get_by_id(db, payment_id)
