"""
Tests per il registro pagamenti: conferma idempotente, storno e prima nota.
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    ConflictError,
    NotFoundError,
)
from estimator.models import FinanceEntry
from estimator.schemas.finance import FinanceEntryCreate
from estimator.schemas.history import HistoryAction
from estimator.schemas.payment import PaymentCreate
from estimator.services.estimate_service import EstimateService
from estimator.services.finance_service import FinanceService
from estimator.services.history_service import HistoryService
from estimator.services.payment_service import PaymentService, compute_paid_amount


@pytest.fixture
def payments():
    return PaymentService()


@pytest.fixture
async def estimate(db, manager, estimate_factory):
    """Preventivo da 2000 EUR con blocco pagamento compilato."""
    created = await EstimateService().create(
        db,
        estimate_factory(payment_method="bank_transfer", payment_recipient="Mario Rossi"),
        manager,
    )
    await db.commit()
    return created


async def _finance_entries(db, payment_id, entry_type=None):
    stmt = select(FinanceEntry).where(FinanceEntry.payment_id == payment_id)
    if entry_type is not None:
        stmt = stmt.where(FinanceEntry.entry_type == entry_type)
    return (await db.execute(stmt)).scalars().all()


async def _register(db, payments, estimate, actor, amount="500", fees="0"):
    payment = await payments.create_payment(
        db, estimate.id, PaymentCreate(amount=Decimal(amount), fees=Decimal(fees)), actor
    )
    await db.commit()
    return payment


class RacingSession(AsyncSession):
    """
    Sessione che perde la corsa al commit.

    Al primo commit annulla la propria transazione, lascia completare
    `competitor` (un'altra richiesta su un'altra sessione) e poi fallisce
    come farebbe il vincolo univoco sui movimenti di prima nota.
    """

    def __init__(self, *args, competitor=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.competitor = competitor
        self.commit_attempts = 0

    async def commit(self):
        self.commit_attempts += 1
        if self.competitor is None:
            return await super().commit()
        competitor, self.competitor = self.competitor, None
        await self.rollback()
        await competitor()
        raise IntegrityError(
            "INSERT INTO finance_entries",
            {},
            Exception("UNIQUE constraint failed: finance_entries.payment_id, finance_entries.entry_type"),
        )


def _racing_session(db, competitor):
    return RacingSession(bind=db.bind, expire_on_commit=False, autoflush=False, competitor=competitor)


# ============================================================
# Tests per la registrazione
# ============================================================


class TestCreatePayment:
    """Tests per PaymentService.create_payment."""

    async def test_pending_with_estimate_defaults(self, db, payments, estimate, manager):
        """Test pagamento pending con metodo e destinatario del preventivo."""
        payment = await _register(db, payments, estimate, manager)

        assert payment.status == "pending"
        assert payment.verified is False
        assert payment.currency == "EUR"
        assert payment.payment_method == "bank_transfer"
        assert payment.payment_recipient == "Mario Rossi"
        assert await compute_paid_amount(db, estimate.id) == Decimal("0.00")

    async def test_allowed_on_locked_estimate(self, db, payments, estimate, manager):
        """Test pagamenti registrabili anche su preventivi bloccati."""
        estimate.status = "in_progress"
        estimate.locked = True
        await db.commit()

        payment = await _register(db, payments, estimate, manager)

        assert payment.status == "pending"

    async def test_fees_cannot_exceed_amount(self):
        """Test commissioni superiori all'importo rifiutate dallo schema."""
        with pytest.raises(ValueError):
            PaymentCreate(amount=Decimal("10"), fees=Decimal("11"))

    async def test_unknown_estimate(self, db, payments, manager):
        """Test preventivo inesistente."""
        with pytest.raises(NotFoundError):
            await payments.create_payment(db, uuid.uuid4(), PaymentCreate(amount=Decimal("1")), manager)

    async def test_requires_permission(self, db, payments, estimate, technician):
        """Test un tecnico non registra pagamenti."""
        with pytest.raises(AuthorizationError):
            await payments.create_payment(db, estimate.id, PaymentCreate(amount=Decimal("1")), technician)


# ============================================================
# Tests per la conferma
# ============================================================


class TestConfirmPayment:
    """Tests per PaymentService.confirm_payment."""

    async def test_confirm_creates_income(self, db, payments, estimate, manager):
        """Test conferma: entrata in prima nota con netto = importo - commissioni."""
        payment = await _register(db, payments, estimate, manager, amount="500", fees="5")

        confirmed = await payments.confirm_payment(db, payment.id, manager)

        assert confirmed.status == "confirmed"
        assert confirmed.verified is True
        assert confirmed.verified_by == manager.id
        assert confirmed.confirmed_at is not None
        assert confirmed.gross_amount == Decimal("500.00")
        assert confirmed.net_amount == Decimal("495.00")

        entries = await _finance_entries(db, payment.id)
        assert len(entries) == 1
        assert entries[0].entry_type == "income"
        assert entries[0].source == "estimate_payment"
        assert entries[0].amount == Decimal("500.00")
        assert entries[0].net_amount == Decimal("495.00")
        assert entries[0].estimate_id == estimate.id

        refreshed = await EstimateService().get_by_id(db, estimate.id)
        assert refreshed.paid_amount == Decimal("500.00")

    async def test_confirm_is_idempotent(self, db, payments, estimate, manager):
        """Test doppia conferma: una sola entrata, paid_amount invariato."""
        payment = await _register(db, payments, estimate, manager)

        await payments.confirm_payment(db, payment.id, manager)
        again = await payments.confirm_payment(db, payment.id, manager)

        assert again.status == "confirmed"
        assert len(await _finance_entries(db, payment.id)) == 1
        assert await compute_paid_amount(db, estimate.id) == Decimal("500.00")

        history = await HistoryService().list_for_estimate(db, estimate.id)
        confirmations = [h for h in history if h.action == HistoryAction.PAYMENT_CONFIRMED.value]
        assert len(confirmations) == 1

    async def test_paid_amount_sums_confirmed_only(self, db, payments, estimate, manager):
        """Test paid_amount = somma dei soli pagamenti confermati."""
        first = await _register(db, payments, estimate, manager, amount="300")
        await _register(db, payments, estimate, manager, amount="200")
        third = await _register(db, payments, estimate, manager, amount="2500")

        await payments.confirm_payment(db, first.id, manager)
        await payments.confirm_payment(db, third.id, manager)

        # Sovrapagamento ammesso
        assert await compute_paid_amount(db, estimate.id) == Decimal("2800.00")

    async def test_confirm_refunded_rejected(self, db, payments, estimate, manager):
        """Test un pagamento rimborsato non si riconferma."""
        payment = await _register(db, payments, estimate, manager)
        await payments.confirm_payment(db, payment.id, manager)
        await payments.refund_payment(db, payment.id, manager, reason="Errore")

        with pytest.raises(BusinessValidationError):
            await payments.confirm_payment(db, payment.id, manager)


# ============================================================
# Tests per il rimborso
# ============================================================


class TestRefundPayment:
    """Tests per PaymentService.refund_payment."""

    async def test_refund_storno(self, db, payments, estimate, manager):
        """Test rimborso: uscita in prima nota e paid_amount ricalcolato."""
        kept = await _register(db, payments, estimate, manager, amount="200")
        payment = await _register(db, payments, estimate, manager, amount="500")
        await payments.confirm_payment(db, kept.id, manager)
        await payments.confirm_payment(db, payment.id, manager)

        refunded = await payments.refund_payment(db, payment.id, manager, reason=" Lavoro annullato ")

        assert refunded.status == "refunded"
        assert refunded.refunded_at is not None
        assert refunded.refund_reason == "Lavoro annullato"

        expenses = await _finance_entries(db, payment.id, "expense")
        assert len(expenses) == 1
        assert expenses[0].source == "refund"
        assert expenses[0].amount == Decimal("500.00")
        assert expenses[0].description == "Rimborso: Lavoro annullato"
        assert expenses[0].reason == "Lavoro annullato"

        # L'entrata originale resta: il rimborso è uno storno
        assert len(await _finance_entries(db, payment.id, "income")) == 1

        estimate = await EstimateService().get_by_id(db, estimate.id)
        assert estimate.paid_amount == Decimal("200.00")

    async def test_double_refund_rejected(self, db, payments, estimate, manager):
        """Test secondo rimborso rifiutato, nessuna seconda uscita."""
        payment = await _register(db, payments, estimate, manager)
        await payments.confirm_payment(db, payment.id, manager)
        await payments.refund_payment(db, payment.id, manager)

        with pytest.raises(BusinessValidationError) as exc:
            await payments.refund_payment(db, payment.id, manager)

        assert exc.value.error_code == "PAYMENT_ALREADY_REFUNDED"
        assert len(await _finance_entries(db, payment.id, "expense")) == 1

    async def test_refund_pending_rejected(self, db, payments, estimate, manager):
        """Test un pagamento pending non si rimborsa: va eliminato."""
        payment = await _register(db, payments, estimate, manager)

        with pytest.raises(BusinessValidationError) as exc:
            await payments.refund_payment(db, payment.id, manager)

        assert exc.value.error_code == "PAYMENT_NOT_CONFIRMED"

    async def test_refund_history(self, db, payments, estimate, manager):
        """Test il rimborso registra importo e motivo nello storico."""
        payment = await _register(db, payments, estimate, manager)
        await payments.confirm_payment(db, payment.id, manager)
        await payments.refund_payment(db, payment.id, manager, reason="Doppio bonifico")

        history = await HistoryService().list_for_estimate(db, estimate.id)
        refund = next(h for h in history if h.action == HistoryAction.PAYMENT_REFUNDED.value)

        assert refund.old_values["amount"] == "500.00"
        assert refund.new_values["reason"] == "Doppio bonifico"


# ============================================================
# Tests per conferme e rimborsi concorrenti
# ============================================================


class TestConcurrentPayments:
    """Tests per il commit perso contro un'altra richiesta sullo stesso pagamento."""

    async def test_concurrent_confirm_returns_winner(
        self, db, session_factory, payments, estimate, manager, other_manager
    ):
        """Test conferma concorrente: vale l'esito del vincitore, una sola entrata."""
        payment = await _register(db, payments, estimate, manager)

        async def confirm_elsewhere():
            async with session_factory() as other:
                await PaymentService().confirm_payment(other, payment.id, other_manager)

        async with _racing_session(db, confirm_elsewhere) as racing:
            result = await payments.confirm_payment(racing, payment.id, manager)

            assert racing.commit_attempts == 1

        assert result.status == "confirmed"
        assert result.verified_by == other_manager.id
        assert len(await _finance_entries(db, payment.id, "income")) == 1
        assert await compute_paid_amount(db, estimate.id) == Decimal("500.00")

    async def test_failed_confirm_without_winner_conflicts(
        self, db, payments, estimate, manager
    ):
        """Test commit fallito e pagamento ancora pending: conflitto, nessuna entrata."""
        payment = await _register(db, payments, estimate, manager)

        async def nothing_elsewhere():
            return None

        async with _racing_session(db, nothing_elsewhere) as racing:
            with pytest.raises(ConflictError):
                await payments.confirm_payment(racing, payment.id, manager)

        assert await _finance_entries(db, payment.id) == []
        assert await compute_paid_amount(db, estimate.id) == Decimal("0.00")

    async def test_concurrent_refund_rejected(
        self, db, session_factory, payments, estimate, manager, other_manager
    ):
        """Test rimborso concorrente: già rimborsato, una sola uscita."""
        payment = await _register(db, payments, estimate, manager)
        await payments.confirm_payment(db, payment.id, manager)

        async def refund_elsewhere():
            async with session_factory() as other:
                await PaymentService().refund_payment(other, payment.id, other_manager, reason="Cliente")

        async with _racing_session(db, refund_elsewhere) as racing:
            with pytest.raises(BusinessValidationError) as exc:
                await payments.refund_payment(racing, payment.id, manager, reason="Operatore")

        assert exc.value.error_code == "PAYMENT_ALREADY_REFUNDED"
        expenses = await _finance_entries(db, payment.id, "expense")
        assert len(expenses) == 1
        assert expenses[0].reason == "Cliente"
        assert await compute_paid_amount(db, estimate.id) == Decimal("0.00")


# ============================================================
# Tests per eliminazione e prima nota
# ============================================================


class TestDeleteAndFinance:
    """Tests per delete_pending e FinanceService."""

    async def test_delete_pending(self, db, payments, estimate, manager):
        """Test eliminazione di un pagamento pending."""
        payment = await _register(db, payments, estimate, manager)

        await payments.delete_pending(db, payment.id, manager)
        await db.commit()

        assert await payments.list_for_estimate(db, estimate.id) == []

    async def test_delete_confirmed_rejected(self, db, payments, estimate, manager):
        """Test un pagamento confermato non si elimina."""
        payment = await _register(db, payments, estimate, manager)
        await payments.confirm_payment(db, payment.id, manager)

        with pytest.raises(BusinessValidationError):
            await payments.delete_pending(db, payment.id, manager)

    async def test_finance_summary(self, db, payments, estimate, manager):
        """Test riepilogo: entrate, uscite e saldo netto."""
        first = await _register(db, payments, estimate, manager, amount="500")
        second = await _register(db, payments, estimate, manager, amount="300")
        await payments.confirm_payment(db, first.id, manager)
        await payments.confirm_payment(db, second.id, manager)
        await payments.refund_payment(db, second.id, manager)

        finance = FinanceService()
        await finance.create_manual(
            db,
            FinanceEntryCreate(entry_type="expense", amount=Decimal("50"), description="Cavi"),
            manager,
        )
        await db.commit()

        summary = await finance.summary(db)
        count = (await db.execute(select(func.count(FinanceEntry.id)))).scalar()

        assert summary.total_income == Decimal("800.00")
        assert summary.total_expenses == Decimal("350.00")
        assert summary.net_profit == Decimal("450.00")
        assert summary.entry_count == count == 4

    async def test_finance_summary_per_currency(self, db, manager):
        """Test riepilogo in una sola valuta: i movimenti in altre valute sono esclusi."""
        finance = FinanceService()
        await finance.create_manual(
            db,
            FinanceEntryCreate(entry_type="income", amount=Decimal("100"), description="Sopralluogo"),
            manager,
        )
        await finance.create_manual(
            db,
            FinanceEntryCreate(entry_type="income", amount=Decimal("70"), currency="usd", description="Consulenza"),
            manager,
        )
        await db.commit()

        default = await finance.summary(db)
        dollars = await finance.summary(db, currency="USD")

        assert default.currency == "EUR"
        assert default.total_income == Decimal("100.00")
        assert default.entry_count == 1
        assert dollars.currency == "USD"
        assert dollars.total_income == Decimal("70.00")
        assert dollars.net_profit == Decimal("70.00")
