"""
Schemas Pydantic per le Notifiche
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Tipi di notifica emessi dal ciclo di vita del preventivo."""
    STATUS_CHANGE = "status_change"
    PAYMENT_CONFIRMED = "payment_confirmed"
    NEW_VERSION_CREATED = "new_version_created"


class NotificationMessage(BaseModel):
    """Messaggio consegnato al sink di notifica."""
    user_id: uuid.UUID
    type: NotificationType
    title: str = Field(..., max_length=255)
    message: Optional[str] = None
    link: Optional[str] = Field(None, max_length=500)
