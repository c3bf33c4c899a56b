"""
Modello SQLAlchemy per i Progetti
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Un progetto (richiesta/lead) raccoglie le versioni successive dei preventivi
per lo stesso cliente.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estimator.models import Base
from estimator.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from estimator.models.estimate import Estimate


class Project(Base, UUIDMixin, TimestampMixin):
    """
    Progetto/lead da cui nascono i preventivi.

    Attributes:
        client_name: Nome del cliente (copiato nei preventivi)
        source: Canale di provenienza (website, phone, ...)
        status: new | in_progress | completed | cancelled
    """

    __tablename__ = "projects"

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="website")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    estimates: Mapped[List["Estimate"]] = relationship(
        "Estimate",
        back_populates="project",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('new', 'in_progress', 'completed', 'cancelled')",
            name="ck_projects_status",
        ),
    )
