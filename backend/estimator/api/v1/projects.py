"""
Router FastAPI per i Progetti
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.database import get_db
from estimator.core.deps import CurrentActor
from estimator.schemas.estimate import EstimateListItem, EstimateRead
from estimator.schemas.project import EstimateFromProject, ProjectCreate, ProjectRead
from estimator.services.project_service import ProjectService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
project_service = ProjectService()

router = APIRouter(
    prefix="/projects",
    tags=["Progetti"],
)


@router.get(
    "",
    name="progetti_lista",
    summary="Lista progetti",
    response_model=list[ProjectRead],
    status_code=status.HTTP_200_OK,
)
async def get_projects(
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> list[ProjectRead]:
    projects = await project_service.get_all(db)
    return [ProjectRead.model_validate(p) for p in projects]


@router.post(
    "",
    name="progetto_crea",
    summary="Crea progetto",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_project(
    data: ProjectCreate,
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> ProjectRead:
    project = await project_service.create(db, data, actor)
    await db.commit()
    return ProjectRead.model_validate(project)


@router.get(
    "/{project_id}",
    name="progetto_dettaglio",
    summary="Dettaglio progetto",
    response_model=ProjectRead,
    status_code=status.HTTP_200_OK,
)
async def get_project(
    actor: CurrentActor,
    project_id: uuid.UUID = Path(..., description="UUID del progetto"),
    db: AsyncSession = Depends(get_db),
) -> ProjectRead:
    project = await project_service.get_by_id(db, project_id)
    return ProjectRead.model_validate(project)


@router.get(
    "/{project_id}/estimates",
    name="progetto_preventivi",
    summary="Preventivi del progetto",
    description="Versioni dei preventivi del progetto, dalla più recente.",
    response_model=list[EstimateListItem],
    status_code=status.HTTP_200_OK,
)
async def get_project_estimates(
    actor: CurrentActor,
    project_id: uuid.UUID = Path(..., description="UUID del progetto"),
    db: AsyncSession = Depends(get_db),
) -> list[EstimateListItem]:
    estimates = await project_service.list_estimates(db, project_id)
    items = [EstimateListItem.model_validate(e) for e in estimates]
    if not actor.permissions.can_view_prices:
        items = [item.model_copy(update={"total": None, "paid_amount": None}) for item in items]
    return items


@router.post(
    "/{project_id}/estimates",
    name="progetto_crea_preventivo",
    summary="Crea preventivo da progetto",
    description="Crea un preventivo copiando i dati cliente del progetto; "
               "la versione è la massima del progetto + 1.",
    response_model=EstimateRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_project_estimate(
    data: EstimateFromProject,
    actor: CurrentActor,
    project_id: uuid.UUID = Path(..., description="UUID del progetto"),
    db: AsyncSession = Depends(get_db),
) -> EstimateRead:
    estimate = await project_service.create_estimate(db, project_id, data, actor)
    await db.commit()
    return EstimateRead.model_validate(estimate)
