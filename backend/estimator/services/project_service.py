"""
Service Layer per i Progetti
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.exceptions import NotFoundError
from estimator.core.permissions import Actor, require_manage_estimates
from estimator.models import Estimate, Project
from estimator.schemas.estimate import EstimateCreate
from estimator.schemas.project import EstimateFromProject, ProjectCreate, ProjectStatus
from estimator.services.estimate_service import EstimateService

# Logger per questo modulo
logger = logging.getLogger(__name__)


class ProjectService:
    """Service per progetti e preventivi generati da progetto."""

    def __init__(self, estimate_service: Optional[EstimateService] = None) -> None:
        self.estimates = estimate_service or EstimateService()

    async def create(
        self,
        db: AsyncSession,
        data: ProjectCreate,
        actor: Actor,
    ) -> Project:
        """Crea un nuovo progetto in stato new."""
        require_manage_estimates(actor)
        project = Project(
            **data.model_dump(),
            status=ProjectStatus.NEW.value,
            created_by=actor.id,
        )
        db.add(project)
        await db.flush()
        logger.info("Creato progetto %s per %s", project.id, project.client_name)
        return project

    async def get_by_id(self, db: AsyncSession, project_id: uuid.UUID) -> Project:
        """
        Recupera un progetto.

        Raises:
            NotFoundError: Se il progetto non esiste
        """
        project = await db.get(Project, project_id)
        if project is None:
            raise NotFoundError(f"Progetto con ID {project_id} non trovato")
        return project

    async def get_all(self, db: AsyncSession) -> Sequence[Project]:
        """Progetti dal più recente."""
        result = await db.execute(select(Project).order_by(Project.created_at.desc()))
        return result.scalars().all()

    async def list_estimates(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
    ) -> Sequence[Estimate]:
        """Preventivi del progetto, dalla versione più alta."""
        await self.get_by_id(db, project_id)
        result = await db.execute(
            select(Estimate)
            .where(Estimate.project_id == project_id)
            .order_by(Estimate.version.desc())
        )
        return result.scalars().all()

    async def create_estimate(
        self,
        db: AsyncSession,
        project_id: uuid.UUID,
        data: EstimateFromProject,
        actor: Actor,
    ) -> Estimate:
        """Crea un preventivo copiando lo snapshot cliente del progetto."""
        project = await self.get_by_id(db, project_id)
        estimate = await self.estimates.create(
            db,
            EstimateCreate(
                project_id=project.id,
                title=data.title,
                client_comment=data.client_comment,
            ),
            actor,
        )
        if project.status == ProjectStatus.NEW.value:
            project.status = ProjectStatus.IN_PROGRESS.value
            await db.flush()
        return estimate
