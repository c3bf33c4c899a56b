"""
Service Layer per le Notifiche
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Le notifiche sono inviate in modalità best-effort al creatore del
preventivo. Il sink di default scrive nella tabella notifications,
letta dal sistema di notifica esterno.
"""

import logging
import uuid
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from estimator.core.config import settings
from estimator.models import Notification
from estimator.schemas.notification import NotificationMessage, NotificationType

# Logger per questo modulo
logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Destinazione delle notifiche."""

    async def send(self, db: AsyncSession, message: NotificationMessage) -> None:
        ...


class DatabaseNotificationSink:
    """Accoda la notifica nella tabella notifications."""

    async def send(self, db: AsyncSession, message: NotificationMessage) -> None:
        db.add(
            Notification(
                user_id=message.user_id,
                type=message.type.value,
                title=message.title,
                message=message.message,
                link=message.link,
            )
        )
        await db.flush()


def estimate_link(estimate_id: uuid.UUID) -> str:
    """Link alla pagina del preventivo."""
    return f"{settings.public_base_url.rstrip('/')}/estimator/{estimate_id}"


class NotificationService:
    """
    Service per l'invio delle notifiche legate ai preventivi.

    Args:
        sink: Destinazione delle notifiche (default: DatabaseNotificationSink)
    """

    def __init__(self, sink: Optional[NotificationSink] = None) -> None:
        self.sink = sink if sink is not None else DatabaseNotificationSink()

    async def notify_creator(
        self,
        db: AsyncSession,
        creator_id: Optional[uuid.UUID],
        estimate_id: uuid.UUID,
        actor_id: Optional[uuid.UUID],
        notification_type: NotificationType,
        title: str,
        message: Optional[str] = None,
    ) -> bool:
        """
        Notifica il creatore del preventivo.

        Non invia nulla se il creatore non è noto o coincide con l'operatore.
        I parametri sono valori semplici e non oggetti ORM: la notifica
        viene inviata dopo il commit dell'operazione principale.

        Returns:
            True se la notifica è stata consegnata al sink
        """
        if creator_id is None or creator_id == actor_id:
            return False

        await self.sink.send(
            db,
            NotificationMessage(
                user_id=creator_id,
                type=notification_type,
                title=title[:255],
                message=message,
                link=estimate_link(estimate_id),
            ),
        )
        logger.info(
            "Notifica %s per il preventivo %s inviata a %s",
            notification_type.value,
            estimate_id,
            creator_id,
        )
        return True
