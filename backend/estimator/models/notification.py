"""
Modello SQLAlchemy per le Notifiche
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Coda delle notifiche letta dal sistema di notifica esterno.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from estimator.models import Base
from estimator.models.mixins import UUIDMixin, utcnow


class Notification(Base, UUIDMixin):
    """Notifica destinata a un operatore."""

    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    link: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unread")
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("ix_notifications_user_status", "user_id", "status"),
    )
