"""
Router FastAPI per i Pagamenti
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Registrazione, conferma idempotente, rimborso ed eliminazione dei
pagamenti pending.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.database import get_db
from estimator.core.deps import CurrentActor
from estimator.core.permissions import require_view_prices
from estimator.schemas.payment import PaymentCreate, PaymentRead, PaymentRefund
from estimator.services.payment_service import PaymentService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
payment_service = PaymentService()

router = APIRouter(tags=["Pagamenti"])


@router.get(
    "/estimates/{estimate_id}/payments",
    name="pagamenti_lista",
    summary="Pagamenti del preventivo",
    description="Pagamenti registrati sul preventivo, dal più recente.",
    response_model=list[PaymentRead],
    status_code=status.HTTP_200_OK,
)
async def get_estimate_payments(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> list[PaymentRead]:
    require_view_prices(actor)
    payments = await payment_service.list_for_estimate(db, estimate_id)
    return [PaymentRead.model_validate(p) for p in payments]


@router.post(
    "/estimates/{estimate_id}/payments",
    name="pagamento_registra",
    summary="Registra pagamento",
    description="Registra un pagamento in attesa di conferma. Ammesso anche su preventivi bloccati.",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_estimate_payment(
    data: PaymentCreate,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> PaymentRead:
    payment = await payment_service.create_payment(db, estimate_id, data, actor)
    await db.commit()
    return PaymentRead.model_validate(payment)


@router.post(
    "/payments/{payment_id}/confirm",
    name="pagamento_conferma",
    summary="Conferma pagamento",
    description="Conferma il pagamento e registra l'entrata in prima nota. "
               "Confermare un pagamento già confermato non ha effetti.",
    response_model=PaymentRead,
    status_code=status.HTTP_200_OK,
)
async def confirm_payment(
    actor: CurrentActor,
    payment_id: uuid.UUID = Path(..., description="UUID del pagamento"),
    db: AsyncSession = Depends(get_db),
) -> PaymentRead:
    payment = await payment_service.confirm_payment(db, payment_id, actor)
    return PaymentRead.model_validate(payment)


@router.post(
    "/payments/{payment_id}/refund",
    name="pagamento_rimborsa",
    summary="Rimborsa pagamento",
    description="Rimborso totale di un pagamento confermato con storno in prima nota.",
    response_model=PaymentRead,
    status_code=status.HTTP_200_OK,
)
async def refund_payment(
    actor: CurrentActor,
    data: PaymentRefund,
    payment_id: uuid.UUID = Path(..., description="UUID del pagamento"),
    db: AsyncSession = Depends(get_db),
) -> PaymentRead:
    payment = await payment_service.refund_payment(db, payment_id, actor, reason=data.reason)
    return PaymentRead.model_validate(payment)


@router.delete(
    "/payments/{payment_id}",
    name="pagamento_elimina",
    summary="Elimina pagamento pending",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_payment(
    actor: CurrentActor,
    payment_id: uuid.UUID = Path(..., description="UUID del pagamento"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await payment_service.delete_pending(db, payment_id, actor)
    await db.commit()
