"""
Modello SQLAlchemy per lo Storico dei Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Registro append-only degli eventi di stato e di pagamento.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from estimator.models import Base
from estimator.models.mixins import UUIDMixin, utcnow


class EstimateHistory(Base, UUIDMixin):
    """
    Voce dello storico di un preventivo.

    Le righe non vengono mai modificate né cancellate dall'applicazione.

    Attributes:
        sequence: Progressivo dell'evento nel preventivo (1, 2, ...)
        action: Tipo di evento (status_change, payment_refunded, ...)
        actor_id: UUID dell'operatore (None per azioni di sistema)
        changed_at: Data/ora dell'evento
        old_values: Snapshot prima dell'evento
        new_values: Snapshot dopo l'evento
        comment: Commento opzionale dell'operatore
    """

    __tablename__ = "estimate_history"

    estimate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("estimates.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    action: Mapped[str] = mapped_column(String(40), nullable=False)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    changed_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    old_values: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_estimate_history_estimate_sequence", "estimate_id", "sequence"),
    )
