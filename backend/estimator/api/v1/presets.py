"""
Router FastAPI per il Listino Voci
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.database import get_db
from estimator.core.deps import CurrentActor
from estimator.core.permissions import require_view_prices
from estimator.schemas.preset import PresetCreate, PresetRead, PresetUpdate
from estimator.services.preset_service import PresetService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
preset_service = PresetService()

router = APIRouter(
    prefix="/presets",
    tags=["Listino"],
)


@router.get(
    "",
    name="listino_lista",
    summary="Voci del listino",
    response_model=list[PresetRead],
    status_code=status.HTTP_200_OK,
)
async def get_presets(
    actor: CurrentActor,
    include_inactive: bool = Query(False, description="Includi le voci disattivate"),
    category: Optional[str] = Query(None, description="Filtro per categoria"),
    search: Optional[str] = Query(None, description="Ricerca su nome, descrizione e codice"),
    db: AsyncSession = Depends(get_db),
) -> list[PresetRead]:
    require_view_prices(actor)
    presets = await preset_service.get_all(
        db,
        include_inactive=include_inactive,
        category=category,
        search=search,
    )
    return [PresetRead.model_validate(p) for p in presets]


@router.post(
    "",
    name="listino_crea",
    summary="Aggiungi voce al listino",
    response_model=PresetRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_preset(
    data: PresetCreate,
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> PresetRead:
    preset = await preset_service.create(db, data, actor)
    await db.commit()
    return PresetRead.model_validate(preset)


@router.get(
    "/{preset_id}",
    name="listino_dettaglio",
    summary="Dettaglio voce del listino",
    response_model=PresetRead,
    status_code=status.HTTP_200_OK,
)
async def get_preset(
    actor: CurrentActor,
    preset_id: uuid.UUID = Path(..., description="UUID della voce di listino"),
    db: AsyncSession = Depends(get_db),
) -> PresetRead:
    require_view_prices(actor)
    preset = await preset_service.get_by_id(db, preset_id)
    return PresetRead.model_validate(preset)


@router.put(
    "/{preset_id}",
    name="listino_aggiorna",
    summary="Aggiorna voce del listino",
    response_model=PresetRead,
    status_code=status.HTTP_200_OK,
)
async def update_preset(
    data: PresetUpdate,
    actor: CurrentActor,
    preset_id: uuid.UUID = Path(..., description="UUID della voce di listino"),
    db: AsyncSession = Depends(get_db),
) -> PresetRead:
    preset = await preset_service.update(db, preset_id, data, actor)
    await db.commit()
    return PresetRead.model_validate(preset)


@router.delete(
    "/{preset_id}",
    name="listino_disattiva",
    summary="Disattiva voce del listino",
    description="La voce resta in archivio e può essere riattivata.",
    response_model=PresetRead,
    status_code=status.HTTP_200_OK,
)
async def deactivate_preset(
    actor: CurrentActor,
    preset_id: uuid.UUID = Path(..., description="UUID della voce di listino"),
    db: AsyncSession = Depends(get_db),
) -> PresetRead:
    preset = await preset_service.deactivate(db, preset_id, actor)
    await db.commit()
    return PresetRead.model_validate(preset)
