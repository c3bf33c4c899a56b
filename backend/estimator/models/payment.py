"""
Modelli SQLAlchemy per Pagamenti e Prima Nota
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Contiene:
- EstimatePayment: Pagamento ricevuto su un preventivo
- FinanceEntry: Movimento di prima nota (entrata/uscita), immutabile
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estimator.models import Base
from estimator.models.mixins import TimestampMixin, UUIDMixin, utcnow

if TYPE_CHECKING:
    from estimator.models.estimate import Estimate


class EstimatePayment(Base, UUIDMixin, TimestampMixin):
    """
    Pagamento registrato su un preventivo.

    Ciclo di vita: pending -> confirmed -> refunded (terminale).
    Solo i pagamenti confermati concorrono a paid_amount.
    """

    __tablename__ = "estimate_payments"

    estimate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("estimates.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="EUR")
    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payment_recipient: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Riferimento esterno (CRO bonifico, ricevuta POS, ...)",
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    gross_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    net_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    confirmed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    refund_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    estimate: Mapped["Estimate"] = relationship(
        "Estimate",
        back_populates="payments",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_estimate_payments_estimate_status", "estimate_id", "status"),
        CheckConstraint("amount > 0", name="ck_estimate_payments_amount_positive"),
        CheckConstraint("fees >= 0", name="ck_estimate_payments_fees_positive"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'refunded')",
            name="ck_estimate_payments_status",
        ),
        CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('cash', 'bank_transfer', 'card')",
            name="ck_estimate_payments_payment_method",
        ),
    )


class FinanceEntry(Base, UUIDMixin):
    """
    Movimento di prima nota.

    Una sola entrata per pagamento confermato e una sola uscita (storno)
    per rimborso: l'indice unique (payment_id, entry_type) lo garantisce
    anche in caso di conferme concorrenti. I movimenti manuali non hanno
    payment_id.
    """

    __tablename__ = "finance_entries"

    entry_type: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="EUR")
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    estimate_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("estimates.id", ondelete="SET NULL"),
        nullable=True,
    )
    payment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("estimate_payments.id", ondelete="SET NULL"),
        nullable=True,
    )

    fees: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    gross_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    net_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("ux_finance_entries_payment_type", "payment_id", "entry_type", unique=True),
        Index("ix_finance_entries_created_at", "created_at"),
        CheckConstraint("entry_type IN ('income', 'expense')", name="ck_finance_entries_type"),
        CheckConstraint("amount > 0", name="ck_finance_entries_amount_positive"),
        CheckConstraint(
            "source IN ('estimate_payment', 'refund', 'manual')",
            name="ck_finance_entries_source",
        ),
    )
