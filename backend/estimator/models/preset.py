"""
Modello SQLAlchemy per il Listino Voci
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Voci predefinite (materiali e lavorazioni ricorrenti) da cui si
aggiungono righe ai preventivi senza riscriverle ogni volta.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from estimator.models import Base
from estimator.models.mixins import TimestampMixin, UUIDMixin


class LineItemPreset(Base, UUIDMixin, TimestampMixin):
    """
    Voce del listino.

    I valori sono copiati nella voce del preventivo al momento
    dell'inserimento: modificare il listino non cambia i preventivi esistenti.
    Le voci non si cancellano, si disattivano (is_active=False).
    """

    __tablename__ = "line_item_presets"

    name: Mapped[str] = mapped_column(String(255), nullable=False, doc="Nome mostrato nella ricerca")
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False, default="material")
    item_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    cost_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    labor_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    labor_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    markup_pct: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_line_item_presets_category", "category"),
        CheckConstraint(
            "item_type IN ('material', 'labor', 'service', 'other')",
            name="ck_line_item_presets_item_type",
        ),
        CheckConstraint("quantity >= 0", name="ck_line_item_presets_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_line_item_presets_unit_price_positive"),
    )

    def __repr__(self) -> str:
        return f"<LineItemPreset(name={self.name!r}, active={self.is_active})>"
