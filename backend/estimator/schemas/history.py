"""
Schemas Pydantic per lo Storico dei Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import datetime
import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class HistoryAction(str, Enum):
    """Tipi di evento registrati nello storico."""
    ESTIMATE_CREATED = "estimate_created"
    VERSION_CREATED = "version_created"
    STATUS_CHANGE = "status_change"
    PREPAYMENT_CONFIRMED = "prepayment_confirmed"
    PAYMENT_CREATED = "payment_created"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_REFUNDED = "payment_refunded"


class HistoryRead(BaseModel):
    """Voce dello storico."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    estimate_id: uuid.UUID
    sequence: int
    action: HistoryAction
    actor_id: Optional[uuid.UUID] = None
    changed_at: datetime.datetime
    old_values: Optional[dict[str, Any]] = None
    new_values: Optional[dict[str, Any]] = None
    comment: Optional[str] = None
