"""
Router FastAPI per i Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Definisce gli endpoint API per la gestione dei preventivi: CRUD, voci,
transizioni di stato, versioni, riconciliazione e storico.
"""

import logging
import uuid
from typing import Optional, Union

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.database import get_db
from estimator.core.deps import CurrentActor
from estimator.core.permissions import require_view_prices
from estimator.schemas.estimate import (
    AvailableTransitions,
    EstimateCreate,
    EstimateList,
    EstimateListItem,
    EstimateRead,
    EstimateRestrictedRead,
    EstimateStatus,
    EstimateUpdate,
    LineItemCreate,
    LineItemRead,
    LineItemUpdate,
    TransitionRequest,
    TransitionValidateRequest,
    TransitionValidation,
)
from estimator.schemas.history import HistoryRead
from estimator.schemas.preset import LineItemFromPreset
from estimator.services.estimate_service import EstimateService
from estimator.services.history_service import HistoryService
from estimator.services.workflow_service import WorkflowService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanze dei service
estimate_service = EstimateService()
workflow_service = WorkflowService(estimate_service=estimate_service)
history_service = HistoryService()

# Router con prefix e tag
router = APIRouter(
    prefix="/estimates",
    tags=["Preventivi"],
)


# -------------------------------------------------------------------
# Endpoints per Preventivi
# -------------------------------------------------------------------

@router.get(
    "",
    name="preventivi_lista",
    summary="Lista preventivi",
    description="Recupera la lista paginata dei preventivi con eventuali filtri. "
               "Gli importi sono omessi per chi non può vedere i prezzi.",
    response_model=EstimateList,
    status_code=status.HTTP_200_OK,
)
async def get_estimates(
    actor: CurrentActor,
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    status_filter: Optional[EstimateStatus] = Query(None, description="Filtro per stato"),
    project_id: Optional[uuid.UUID] = Query(None, description="Filtro per progetto"),
    search: Optional[str] = Query(None, description="Ricerca su numero e nome cliente"),
    db: AsyncSession = Depends(get_db),
) -> EstimateList:
    estimates, total = await estimate_service.get_all(
        db,
        status_filter=status_filter,
        project_id=project_id,
        search=search,
        page=page,
        per_page=per_page,
    )

    items = [EstimateListItem.model_validate(e) for e in estimates]
    if not actor.permissions.can_view_prices:
        items = [item.model_copy(update={"total": None, "paid_amount": None}) for item in items]

    return EstimateList(
        items=items,
        total=total,
        page=page,
        per_page=per_page,
        total_pages=0,  # calcolato automaticamente dal model_validator
    )


@router.post(
    "",
    name="preventivo_crea",
    summary="Crea preventivo",
    description="Crea un nuovo preventivo in bozza, opzionalmente con le voci iniziali.",
    response_model=EstimateRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_estimate(
    data: EstimateCreate,
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    estimate = await estimate_service.create(db, data, actor)
    await db.commit()
    return EstimateRead.model_validate(estimate)


@router.get(
    "/{estimate_id}",
    name="preventivo_dettaglio",
    summary="Dettaglio preventivo",
    description="Recupera un preventivo con le voci ordinate per posizione.",
    response_model=Union[EstimateRead, EstimateRestrictedRead],
    status_code=status.HTTP_200_OK,
)
async def get_estimate(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> Union[EstimateRead, EstimateRestrictedRead]:
    """
    Recupera i dettagli di un preventivo.

    Chi non ha il permesso di vedere i prezzi riceve la versione senza importi.

    Raises:
        NotFoundError: Se il preventivo non esiste
    """
    estimate = await estimate_service.get_by_id(db, estimate_id)
    if actor.permissions.can_view_prices:
        return EstimateRead.model_validate(estimate)
    return EstimateRestrictedRead.model_validate(estimate)


@router.put(
    "/{estimate_id}",
    name="preventivo_aggiorna",
    summary="Aggiorna preventivo",
    description="Aggiorna un preventivo. Se bloccato sono modificabili solo "
               "metodo di pagamento, destinatario e note.",
    response_model=EstimateRead,
    status_code=status.HTTP_200_OK,
)
async def update_estimate(
    data: EstimateUpdate,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    estimate = await estimate_service.update(db, estimate_id, data, actor)
    await db.commit()
    return EstimateRead.model_validate(estimate)


@router.delete(
    "/{estimate_id}",
    name="preventivo_elimina",
    summary="Elimina preventivo",
    description="Elimina una bozza mai inviata e senza pagamenti.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_estimate(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await estimate_service.delete(db, estimate_id, actor)
    await db.commit()


# -------------------------------------------------------------------
# Endpoints per le Voci (nested)
# -------------------------------------------------------------------

@router.post(
    "/{estimate_id}/items",
    name="voce_aggiungi",
    summary="Aggiungi voce",
    description="Aggiunge una voce in coda al preventivo e ricalcola i totali.",
    response_model=LineItemRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_line_item(
    item_data: LineItemCreate,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> LineItemRead:
    item = await estimate_service.add_item(db, estimate_id, item_data, actor)
    await db.commit()
    return LineItemRead.model_validate(item)


@router.post(
    "/{estimate_id}/items/from-preset",
    name="voce_da_listino",
    summary="Aggiungi voce dal listino",
    description="Copia una voce attiva del listino in coda al preventivo.",
    response_model=LineItemRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_line_item_from_preset(
    data: LineItemFromPreset,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> LineItemRead:
    item = await estimate_service.add_item_from_preset(db, estimate_id, data, actor)
    await db.commit()
    return LineItemRead.model_validate(item)


@router.put(
    "/{estimate_id}/items/{item_id}",
    name="voce_aggiorna",
    summary="Aggiorna voce",
    response_model=LineItemRead,
    status_code=status.HTTP_200_OK,
)
async def update_line_item(
    item_data: LineItemUpdate,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    item_id: uuid.UUID = Path(..., description="UUID della voce"),
    db: AsyncSession = Depends(get_db),
) -> LineItemRead:
    item = await estimate_service.update_item(db, estimate_id, item_id, item_data, actor)
    await db.commit()
    return LineItemRead.model_validate(item)


@router.delete(
    "/{estimate_id}/items/{item_id}",
    name="voce_elimina",
    summary="Elimina voce",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_line_item(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    item_id: uuid.UUID = Path(..., description="UUID della voce"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await estimate_service.delete_item(db, estimate_id, item_id, actor)
    await db.commit()


# -------------------------------------------------------------------
# Endpoints per il ciclo di vita
# -------------------------------------------------------------------

@router.post(
    "/{estimate_id}/transition",
    name="preventivo_transizione",
    summary="Cambia stato preventivo",
    description="Applica una transizione di stato. Con expected_status la richiesta "
               "fallisce (409) se il preventivo è stato modificato nel frattempo.",
    response_model=EstimateRead,
    status_code=status.HTTP_200_OK,
)
async def transition_estimate(
    data: TransitionRequest,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    """
    Cambia lo stato di un preventivo.

    Raises:
        InvalidTransitionError: Transizione non consentita (422, valid=false)
        ConflictError: Stato diverso da expected_status (409)
    """
    estimate = await workflow_service.apply_transition(
        db,
        estimate_id,
        data.target_status,
        actor,
        comment=data.comment,
        expected_status=data.expected_status,
    )
    return EstimateRead.model_validate(estimate)


@router.post(
    "/{estimate_id}/transition/validate",
    name="preventivo_valida_transizione",
    summary="Valida transizione",
    description="Verifica a secco se la transizione è consentita.",
    response_model=TransitionValidation,
    status_code=status.HTTP_200_OK,
)
async def validate_estimate_transition(
    data: TransitionValidateRequest,
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> TransitionValidation:
    return await workflow_service.validate(db, estimate_id, data.target_status)


@router.get(
    "/{estimate_id}/transitions",
    name="preventivo_transizioni",
    summary="Transizioni disponibili",
    response_model=AvailableTransitions,
    status_code=status.HTTP_200_OK,
)
async def get_estimate_transitions(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> AvailableTransitions:
    return await workflow_service.available(db, estimate_id)


@router.post(
    "/{estimate_id}/prepayment/confirm",
    name="preventivo_conferma_acconto",
    summary="Conferma acconto",
    description="Conferma la ricezione dell'acconto. Idempotente.",
    response_model=EstimateRead,
    status_code=status.HTTP_200_OK,
)
async def confirm_estimate_prepayment(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    estimate = await workflow_service.confirm_prepayment(db, estimate_id, actor)
    return EstimateRead.model_validate(estimate)


@router.post(
    "/{estimate_id}/duplicate",
    name="preventivo_nuova_versione",
    summary="Nuova versione",
    description="Crea una nuova versione in bozza copiando il preventivo.",
    response_model=EstimateRead,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_estimate(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    estimate = await estimate_service.duplicate(db, estimate_id, actor)
    return EstimateRead.model_validate(estimate)


@router.post(
    "/{estimate_id}/reconcile",
    name="preventivo_riconcilia",
    summary="Riconcilia totali",
    description="Ricalcola da zero totali e importo pagato.",
    response_model=EstimateRead,
    status_code=status.HTTP_200_OK,
)
async def reconcile_estimate(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    estimate = await estimate_service.reconcile(db, estimate_id, actor)
    await db.commit()
    return EstimateRead.model_validate(estimate)


@router.get(
    "/{estimate_id}/history",
    name="preventivo_storico",
    summary="Storico preventivo",
    description="Eventi di stato e di pagamento, dal più recente.",
    response_model=list[HistoryRead],
    status_code=status.HTTP_200_OK,
)
async def get_estimate_history(
    actor: CurrentActor,
    estimate_id: uuid.UUID = Path(..., description="UUID del preventivo"),
    db: AsyncSession = Depends(get_db),
) -> list[HistoryRead]:
    require_view_prices(actor)
    await estimate_service.get_by_id(db, estimate_id)
    entries = await history_service.list_for_estimate(db, estimate_id)
    return [HistoryRead.model_validate(e) for e in entries]
