"""
Colonne comuni ai modelli
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Chiave primaria UUID e marcature temporali condivise da preventivi,
voci, pagamenti, movimenti contabili, storico e notifiche.
"""

import datetime
import uuid

from sqlalchemy import DateTime, Uuid, event
from sqlalchemy.orm import Mapped, Session, mapped_column
from sqlalchemy.sql import func


def utcnow() -> datetime.datetime:
    """Istante corrente in UTC, con timezone."""
    return datetime.datetime.now(datetime.timezone.utc)


class TimestampMixin:
    """
    created_at e updated_at per ogni riga.

    Il valore è assegnato in Python all'inserimento, così la sessione
    async non deve ricaricare la riga dopo l'INSERT; server_default copre
    le righe scritte da script SQL. updated_at è poi mantenuto dal
    listener `touch_updated_at` più sotto.
    """

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        doc="Istante di inserimento",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        doc="Istante dell'ultima modifica",
    )


class UUIDMixin:
    """Chiave primaria UUID v4 assegnata dall'applicazione."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="Identificativo univoco",
    )


# ------------------------------------------------------------
# Listener di sessione
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def touch_updated_at(session: Session, flush_context, instances) -> None:
    """
    Aggiorna updated_at prima del flush.

    Le righe nuove ricevono sempre il timestamp; quelle già persistite
    solo se hanno colonne realmente cambiate (le sole collection
    modificate non contano, es. un preventivo a cui è stata aggiunta
    una voce).
    """
    now = utcnow()

    for obj in session.new:
        if hasattr(obj, "updated_at"):
            obj.updated_at = now

    for obj in session.dirty:
        if hasattr(obj, "updated_at") and session.is_modified(obj, include_collections=False):
            obj.updated_at = now
