"""
Service Layer per i Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Definisce la logica di business per la gestione dei preventivi:
creazione (manuale o da progetto), modifica nel rispetto del blocco,
voci, duplicazione in nuova versione e riconciliazione dei totali.
"""

import datetime
import logging
import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy import and_, func, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from estimator.core.config import settings
from estimator.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    NotFoundError,
)
from estimator.core.permissions import Actor, require_manage_estimates
from estimator.models import Estimate, EstimateLineItem, EstimatePayment, Project
from estimator.schemas.estimate import (
    EstimateCreate,
    EstimateStatus,
    EstimateUpdate,
    LineItemCreate,
    LineItemUpdate,
)
from estimator.schemas.history import HistoryAction
from estimator.schemas.notification import NotificationType
from estimator.schemas.preset import LineItemFromPreset
from estimator.services.history_service import HistoryService, run_best_effort
from estimator.services.notification_service import NotificationService
from estimator.services.payment_service import compute_paid_amount
from estimator.services.preset_service import PresetService
from estimator.services.pricing import compute_line_total, totals_for_estimate
from estimator.services.workflow import is_editable

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Campi modificabili anche su un preventivo bloccato (blocco pagamento)
PAYMENT_BLOCK_FIELDS: frozenset[str] = frozenset(
    {"payment_method", "payment_recipient", "notes"}
)

# Colonne NOT NULL dell'intestazione: null esplicito non ammesso in update
_REQUIRED_FIELDS: frozenset[str] = frozenset(
    {
        "client_name",
        "currency",
        "global_discount_pct",
        "global_discount_amount",
        "global_tax_pct",
        "extra_fees",
        "deposit_pct",
        "deposit_amount",
    }
)

# Campi copiati nella nuova versione
_COPIED_FIELDS: tuple[str, ...] = (
    "project_id",
    "title",
    "client_name",
    "client_phone",
    "client_email",
    "client_address",
    "client_comment",
    "currency",
    "global_discount_pct",
    "global_discount_amount",
    "global_tax_pct",
    "extra_fees",
    "extra_fees_description",
    "deposit_pct",
    "deposit_amount",
    "payment_method",
    "payment_recipient",
    "notes",
)

_COPIED_ITEM_FIELDS: tuple[str, ...] = (
    "position",
    "item_type",
    "item_code",
    "description",
    "unit",
    "quantity",
    "unit_price",
    "cost_price",
    "labor_hours",
    "labor_rate",
    "markup_pct",
    "discount_pct",
    "tax_pct",
)


def recompute_totals(estimate: Estimate) -> None:
    """
    Ricalcola il totale di ogni voce e i totali del preventivo.

    paid_amount non è toccato: dipende dai pagamenti, vedi compute_paid_amount.
    """
    for item in estimate.line_items:
        item.line_total = compute_line_total(item)
    totals = totals_for_estimate(estimate)
    for field, value in totals.as_dict().items():
        setattr(estimate, field, value)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class EstimateService:
    """
    Service per la gestione dei preventivi.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.
    """

    def __init__(
        self,
        history_service: Optional[HistoryService] = None,
        notification_service: Optional[NotificationService] = None,
        preset_service: Optional[PresetService] = None,
    ) -> None:
        self.history = history_service or HistoryService()
        self.notifications = notification_service or NotificationService()
        self.presets = preset_service or PresetService()

    # ------------------------------------------------------------
    # Helper
    # ------------------------------------------------------------

    def _check_editable_status(self, estimate: Estimate) -> None:
        """
        Verifica che voci e condizioni commerciali siano modificabili.

        Solo i preventivi in stato DRAFT o SENT possono essere modificati;
        negli altri stati si crea una nuova versione.

        Raises:
            BusinessValidationError: Se il preventivo è bloccato
        """
        if not is_editable(estimate.status):
            raise BusinessValidationError(
                f"Il preventivo {estimate.number} è bloccato (stato '{estimate.status}'): "
                "creare una nuova versione per modificarlo",
                error_code="ESTIMATE_LOCKED",
            )

    async def _generate_estimate_number(
        self,
        db: AsyncSession,
        today: datetime.date,
    ) -> str:
        """
        Genera il numero preventivo progressivo annuale.

        Formato: <prefisso>-YYYY-NNNN (es. PR-2025-0001)

        Su PostgreSQL acquisisce un advisory lock di transazione per
        evitare numeri duplicati con creazioni concorrenti.

        Raises:
            ConflictError: Se si raggiunge il limite di 9999 preventivi annui
        """
        year = today.year
        year_prefix = f"{settings.estimate_number_prefix}-{year}-"

        if db.get_bind().dialect.name == "postgresql":
            await db.execute(
                text("SELECT pg_advisory_xact_lock(:lock_key)"),
                {"lock_key": year},
            )

        result = await db.execute(
            select(Estimate.number)
            .where(Estimate.number.like(f"{year_prefix}%"))
            .order_by(Estimate.number.desc())
            .limit(1)
        )
        last_number = result.scalar_one_or_none()

        next_number = int(last_number.rsplit("-", 1)[1]) + 1 if last_number else 1

        if next_number > 9999:
            raise ConflictError(
                f"Limite numerazione preventivi raggiunto per l'anno {year}"
            )

        return f"{year_prefix}{next_number:04d}"

    async def _next_version(self, db: AsyncSession, project_id: uuid.UUID) -> int:
        """Versione successiva alla massima tra i preventivi del progetto."""
        result = await db.execute(
            select(func.max(Estimate.version)).where(Estimate.project_id == project_id)
        )
        return (result.scalar() or 0) + 1

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------

    async def get_by_id(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
    ) -> Estimate:
        """
        Recupera un preventivo con le voci ordinate per posizione.

        Raises:
            NotFoundError: Se il preventivo non esiste
        """
        result = await db.execute(
            select(Estimate)
            .options(selectinload(Estimate.line_items))
            .where(Estimate.id == estimate_id)
        )
        estimate = result.scalar_one_or_none()

        if estimate is None:
            raise NotFoundError(f"Preventivo con ID {estimate_id} non trovato")

        return estimate

    async def get_for_update(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
    ) -> Estimate:
        """
        Ricarica il preventivo dal database bloccando la riga (SELECT ... FOR UPDATE).

        Usato da tutte le operazioni read-validate-write.
        """
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

    async def get_all(
        self,
        db: AsyncSession,
        status_filter: Optional[EstimateStatus] = None,
        project_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[Estimate], int]:
        """
        Recupera la lista paginata dei preventivi.

        Args:
            db: Sessione database
            status_filter: Filtro per stato
            project_id: Filtro per progetto
            search: Ricerca su numero e nome cliente (case-insensitive)
            page: Numero pagina
            per_page: Elementi per pagina

        Returns:
            tuple: (preventivi della pagina, totale record)
        """
        conditions = []

        if status_filter is not None:
            conditions.append(Estimate.status == status_filter.value)

        if project_id is not None:
            conditions.append(Estimate.project_id == project_id)

        if search:
            pattern = f"%{search.strip().lower()}%"
            conditions.append(
                or_(
                    func.lower(Estimate.number).like(pattern),
                    func.lower(Estimate.client_name).like(pattern),
                )
            )

        count_stmt = select(func.count(Estimate.id))
        stmt = select(Estimate)
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
            stmt = stmt.where(and_(*conditions))

        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            stmt.order_by(Estimate.created_at.desc(), Estimate.number.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total

    # ------------------------------------------------------------
    # Creazione
    # ------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        data: EstimateCreate,
        actor: Actor,
    ) -> Estimate:
        """
        Crea un nuovo preventivo in stato draft.

        Con project_id i dati del cliente mancanti sono copiati dal progetto
        e la versione è la massima del progetto + 1.

        Raises:
            AuthorizationError: Se l'operatore non può gestire i preventivi
            NotFoundError: Se il progetto non esiste
        """
        require_manage_estimates(actor)

        today = datetime.date.today()
        version = 1
        client: dict[str, Any] = {
            "client_name": data.client_name,
            "client_phone": data.client_phone,
            "client_email": data.client_email,
            "client_address": data.client_address,
        }

        if data.project_id is not None:
            project = await db.get(Project, data.project_id)
            if project is None:
                raise NotFoundError(f"Progetto con ID {data.project_id} non trovato")
            for field in client:
                if not client[field]:
                    client[field] = getattr(project, field)
            version = await self._next_version(db, project.id)

        estimate = Estimate(
            number=await self._generate_estimate_number(db, today),
            version=version,
            project_id=data.project_id,
            title=data.title,
            client_comment=data.client_comment,
            currency=(data.currency or settings.default_currency).upper(),
            global_discount_pct=data.global_discount_pct,
            global_discount_amount=data.global_discount_amount,
            global_tax_pct=data.global_tax_pct,
            extra_fees=data.extra_fees,
            extra_fees_description=data.extra_fees_description,
            deposit_pct=data.deposit_pct,
            deposit_amount=data.deposit_amount,
            payment_method=_enum_value(data.payment_method),
            payment_recipient=data.payment_recipient,
            status=EstimateStatus.DRAFT.value,
            locked=False,
            valid_until=data.valid_until or today + datetime.timedelta(days=settings.estimate_validity_days),
            notes=data.notes,
            created_by=actor.id,
            prepayment_confirmed=False,
            **client,
        )
        estimate.line_items = [
            self._build_item(item_data, position)
            for position, item_data in enumerate(data.line_items)
        ]
        recompute_totals(estimate)
        estimate.paid_amount = Decimal("0")

        db.add(estimate)
        await db.flush()

        await self.history.record(
            db,
            estimate.id,
            HistoryAction.ESTIMATE_CREATED,
            actor.id,
            new_values={"status": estimate.status, "number": estimate.number, "version": version},
        )

        logger.info("Creato preventivo %s (versione %s)", estimate.number, version)
        return estimate

    def _build_item(self, data: LineItemCreate, position: int) -> EstimateLineItem:
        values = data.model_dump()
        values["item_type"] = _enum_value(values["item_type"])
        item = EstimateLineItem(position=position, **values)
        item.line_total = compute_line_total(item)
        return item

    # ------------------------------------------------------------
    # Modifica
    # ------------------------------------------------------------

    async def update(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        data: EstimateUpdate,
        actor: Actor,
    ) -> Estimate:
        """
        Aggiorna un preventivo.

        Su un preventivo bloccato sono modificabili solo metodo di pagamento,
        destinatario e note; i totali sono ricalcolati ad ogni modifica.

        Raises:
            BusinessValidationError: Se si modificano campi bloccati
        """
        require_manage_estimates(actor)
        estimate = await self.get_by_id(db, estimate_id)
        update_data = data.model_dump(exclude_unset=True)

        if not is_editable(estimate.status):
            blocked = sorted(set(update_data) - PAYMENT_BLOCK_FIELDS)
            if blocked:
                raise BusinessValidationError(
                    f"Il preventivo {estimate.number} è bloccato: campi non modificabili "
                    f"({', '.join(blocked)}). Creare una nuova versione.",
                    error_code="ESTIMATE_LOCKED",
                    extra={"locked_fields": blocked},
                )

        nulls = sorted(f for f, v in update_data.items() if v is None and f in _REQUIRED_FIELDS)
        if nulls:
            raise BusinessValidationError(
                f"Campi obbligatori non possono essere vuoti: {', '.join(nulls)}",
                extra={"fields": nulls},
            )

        if "client_name" in update_data and not update_data["client_name"].strip():
            raise BusinessValidationError("Il nome del cliente è obbligatorio")

        for field, value in update_data.items():
            if field == "currency" and value:
                value = value.upper()
            setattr(estimate, field, _enum_value(value))

        recompute_totals(estimate)
        await db.flush()

        logger.info("Aggiornato preventivo %s", estimate.number)
        return estimate

    async def delete(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        actor: Actor,
    ) -> None:
        """
        Elimina un preventivo.

        Solo le bozze mai inviate e senza pagamenti possono essere eliminate.
        """
        require_manage_estimates(actor)
        estimate = await self.get_by_id(db, estimate_id)

        if estimate.status != EstimateStatus.DRAFT.value or estimate.sent_at is not None:
            raise BusinessValidationError(
                "Solo le bozze mai inviate possono essere eliminate"
            )

        payments = await db.execute(
            select(func.count(EstimatePayment.id)).where(EstimatePayment.estimate_id == estimate_id)
        )
        if payments.scalar():
            raise BusinessValidationError(
                "Impossibile eliminare un preventivo con pagamenti registrati"
            )

        await db.delete(estimate)
        await db.flush()
        logger.info("Eliminato preventivo %s", estimate.number)

    # ------------------------------------------------------------
    # Voci
    # ------------------------------------------------------------

    async def _get_item(
        self,
        estimate: Estimate,
        item_id: uuid.UUID,
    ) -> EstimateLineItem:
        for item in estimate.line_items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"Voce con ID {item_id} non trovata nel preventivo {estimate.number}")

    async def add_item(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        data: LineItemCreate,
        actor: Actor,
    ) -> EstimateLineItem:
        """Aggiunge una voce in coda (posizione massima + 1) e ricalcola i totali."""
        require_manage_estimates(actor)
        estimate = await self.get_by_id(db, estimate_id)
        self._check_editable_status(estimate)

        position = max((i.position for i in estimate.line_items), default=-1) + 1
        item = self._build_item(data, position)
        estimate.line_items.append(item)
        recompute_totals(estimate)
        await db.flush()

        logger.info("Aggiunta voce %s al preventivo %s", position, estimate.number)
        return item

    async def add_item_from_preset(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        data: LineItemFromPreset,
        actor: Actor,
    ) -> EstimateLineItem:
        """
        Aggiunge una voce copiando i valori dal listino.

        Sconto e imposta di riga partono da zero come per una voce manuale.

        Raises:
            NotFoundError: Se il preventivo o la voce di listino non esistono
            BusinessValidationError: Se la voce di listino è disattivata
                o il preventivo è bloccato
        """
        require_manage_estimates(actor)
        preset = await self.presets.get_by_id(db, data.preset_id)

        if not preset.is_active:
            raise BusinessValidationError(
                f"La voce di listino '{preset.name}' è disattivata",
                error_code="PRESET_INACTIVE",
            )

        item_data = LineItemCreate(
            item_type=preset.item_type,
            item_code=preset.item_code,
            description=preset.description,
            unit=preset.unit,
            quantity=data.quantity if data.quantity is not None else preset.quantity,
            unit_price=preset.unit_price,
            cost_price=preset.cost_price,
            labor_hours=preset.labor_hours,
            labor_rate=preset.labor_rate,
            markup_pct=preset.markup_pct,
        )
        return await self.add_item(db, estimate_id, item_data, actor)

    async def update_item(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        item_id: uuid.UUID,
        data: LineItemUpdate,
        actor: Actor,
    ) -> EstimateLineItem:
        """Aggiorna una voce e ricalcola i totali."""
        require_manage_estimates(actor)
        estimate = await self.get_by_id(db, estimate_id)
        self._check_editable_status(estimate)
        item = await self._get_item(estimate, item_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field not in ("item_code", "unit", "cost_price"):
                continue
            setattr(item, field, _enum_value(value))

        recompute_totals(estimate)
        await db.flush()
        return item

    async def delete_item(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        item_id: uuid.UUID,
        actor: Actor,
    ) -> None:
        """Rimuove una voce e ricalcola i totali."""
        require_manage_estimates(actor)
        estimate = await self.get_by_id(db, estimate_id)
        self._check_editable_status(estimate)
        item = await self._get_item(estimate, item_id)

        estimate.line_items.remove(item)
        recompute_totals(estimate)
        await db.flush()

    # ------------------------------------------------------------
    # Versioni e riconciliazione
    # ------------------------------------------------------------

    async def duplicate(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        actor: Actor,
    ) -> Estimate:
        """
        Crea una nuova versione del preventivo.

        Copia snapshot cliente, condizioni commerciali, blocco pagamento e
        voci; la nuova versione è una bozza sbloccata con nuovo numero e
        nuova validità. L'originale non viene modificato.
        """
        require_manage_estimates(actor)
        original = await self.get_by_id(db, estimate_id)

        if original.project_id is not None:
            version = await self._next_version(db, original.project_id)
        else:
            version = original.version + 1

        today = datetime.date.today()
        copy = Estimate(
            number=await self._generate_estimate_number(db, today),
            version=version,
            status=EstimateStatus.DRAFT.value,
            locked=False,
            valid_until=today + datetime.timedelta(days=settings.estimate_validity_days),
            created_by=actor.id,
            prepayment_confirmed=False,
            paid_amount=Decimal("0"),
            **{field: getattr(original, field) for field in _COPIED_FIELDS},
        )
        copy.line_items = [
            EstimateLineItem(**{field: getattr(item, field) for field in _COPIED_ITEM_FIELDS})
            for item in original.line_items
        ]
        recompute_totals(copy)

        db.add(copy)
        await db.commit()

        copy_id, copy_number = copy.id, copy.number
        original_number, creator_id = original.number, original.created_by
        client_name = original.client_name
        logger.info(
            "Creata versione %s del preventivo %s: %s",
            version,
            original_number,
            copy_number,
        )

        await run_best_effort(
            db,
            f"storico nuova versione {copy_number}",
            lambda: self.history.record(
                db,
                copy_id,
                HistoryAction.VERSION_CREATED,
                actor.id,
                old_values={"source_estimate_id": estimate_id, "source_number": original_number},
                new_values={"number": copy_number, "version": version},
            ),
        )
        await run_best_effort(
            db,
            f"notifica nuova versione {copy_number}",
            lambda: self.notifications.notify_creator(
                db,
                creator_id,
                copy_id,
                actor.id,
                NotificationType.NEW_VERSION_CREATED,
                f"{original_number}: creata la versione {version} ({copy_number})",
                f"Preventivo per {client_name}",
            ),
        )

        return await self.get_by_id(db, copy_id)

    async def reconcile(
        self,
        db: AsyncSession,
        estimate_id: uuid.UUID,
        actor: Actor,
    ) -> Estimate:
        """
        Ricalcola da zero totali di riga, totali e paid_amount.

        Usato per correggere eventuali divergenze dopo interventi manuali
        sul database.
        """
        require_manage_estimates(actor)
        estimate = await self.get_by_id(db, estimate_id)
        before = (estimate.total, estimate.paid_amount)

        recompute_totals(estimate)
        estimate.paid_amount = await compute_paid_amount(db, estimate.id)
        await db.flush()

        if before != (estimate.total, estimate.paid_amount):
            logger.warning(
                "Preventivo %s riconciliato: total %s -> %s, paid %s -> %s",
                estimate.number,
                before[0],
                estimate.total,
                before[1],
                estimate.paid_amount,
            )
        return estimate
