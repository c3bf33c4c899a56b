"""
Service Layer per il Listino Voci
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Gestione delle voci predefinite. L'inserimento di una voce del listino
in un preventivo è in EstimateService.add_item_from_preset.
"""

import logging
import uuid
from typing import Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.exceptions import BusinessValidationError, NotFoundError
from estimator.core.permissions import Actor, require_manage_estimates
from estimator.models import LineItemPreset
from estimator.schemas.preset import PresetCreate, PresetUpdate

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Colonne NOT NULL: un null esplicito nell'aggiornamento è un errore
_REQUIRED_FIELDS: frozenset[str] = frozenset(
    {
        "name",
        "item_type",
        "description",
        "quantity",
        "unit_price",
        "labor_hours",
        "labor_rate",
        "markup_pct",
        "is_active",
    }
)


class PresetService:
    """Service per le voci del listino."""

    async def get_by_id(self, db: AsyncSession, preset_id: uuid.UUID) -> LineItemPreset:
        """
        Recupera una voce del listino, anche se disattivata.

        Raises:
            NotFoundError: Se la voce non esiste
        """
        preset = await db.get(LineItemPreset, preset_id)
        if preset is None:
            raise NotFoundError(f"Voce di listino con ID {preset_id} non trovata")
        return preset

    async def get_all(
        self,
        db: AsyncSession,
        include_inactive: bool = False,
        category: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Sequence[LineItemPreset]:
        """
        Voci del listino ordinate per categoria e nome.

        Args:
            include_inactive: Include le voci disattivate
            category: Filtro esatto sulla categoria
            search: Ricerca su nome, descrizione e codice (case-insensitive)
        """
        stmt = select(LineItemPreset)

        if not include_inactive:
            stmt = stmt.where(LineItemPreset.is_active.is_(True))
        if category:
            stmt = stmt.where(LineItemPreset.category == category)
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(LineItemPreset.name).like(pattern),
                    func.lower(LineItemPreset.description).like(pattern),
                    func.lower(LineItemPreset.item_code).like(pattern),
                )
            )

        stmt = stmt.order_by(LineItemPreset.category, LineItemPreset.name)
        result = await db.execute(stmt)
        return result.scalars().all()

    async def create(
        self,
        db: AsyncSession,
        data: PresetCreate,
        actor: Actor,
    ) -> LineItemPreset:
        """Aggiunge una voce attiva al listino."""
        require_manage_estimates(actor)

        values = data.model_dump()
        values["item_type"] = data.item_type.value
        preset = LineItemPreset(**values, is_active=True)
        db.add(preset)
        await db.flush()

        logger.info("Aggiunta voce di listino %s", preset.name)
        return preset

    async def update(
        self,
        db: AsyncSession,
        preset_id: uuid.UUID,
        data: PresetUpdate,
        actor: Actor,
    ) -> LineItemPreset:
        """
        Aggiorna una voce del listino.

        Le righe già inserite nei preventivi non cambiano.

        Raises:
            BusinessValidationError: Se un campo obbligatorio è impostato a null
        """
        require_manage_estimates(actor)
        preset = await self.get_by_id(db, preset_id)
        update_data = data.model_dump(exclude_unset=True)

        nulls = sorted(f for f, v in update_data.items() if v is None and f in _REQUIRED_FIELDS)
        if nulls:
            raise BusinessValidationError(
                f"Campi obbligatori non possono essere vuoti: {', '.join(nulls)}",
                extra={"fields": nulls},
            )

        for field, value in update_data.items():
            if field == "item_type":
                value = value.value
            setattr(preset, field, value)

        await db.flush()
        return preset

    async def deactivate(
        self,
        db: AsyncSession,
        preset_id: uuid.UUID,
        actor: Actor,
    ) -> LineItemPreset:
        """Toglie la voce dal listino attivo; si riattiva con update(is_active=True)."""
        require_manage_estimates(actor)
        preset = await self.get_by_id(db, preset_id)

        if preset.is_active:
            preset.is_active = False
            await db.flush()
            logger.info("Disattivata voce di listino %s", preset.name)

        return preset
