"""
Modelli SQLAlchemy per i Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Contiene:
- Estimate: Preventivo con snapshot cliente, condizioni commerciali e totali
- EstimateLineItem: Voci del preventivo (materiali, manodopera, servizi)
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from estimator.models import Base
from estimator.models.mixins import TimestampMixin, UUIDMixin

# Import per type hinting relazioni (evita circular import)
if TYPE_CHECKING:
    from estimator.models.payment import EstimatePayment
    from estimator.models.project import Project


class Estimate(Base, UUIDMixin, TimestampMixin):
    """
    Modello per i preventivi.

    I dati del cliente sono uno snapshot copiato alla creazione e
    modificabile indipendentemente dal progetto di origine.
    I totali (subtotal ... paid_amount) sono sempre ricalcolati dal
    service e mai modificati a mano.

    Attributes:
        id: UUID primary key, generato automaticamente
        number: Numero progressivo annuale (formato: PR-YYYY-NNNN)
        version: Versione del preventivo all'interno del progetto
        project_id: UUID del progetto di origine (opzionale)
        status: Stato corrente del ciclo di vita
        locked: True quando lo stato non permette più modifiche
        paid_amount: Somma dei pagamenti confermati

    Relationships:
        project: Progetto di origine
        line_items: Voci del preventivo ordinate per posizione
        payments: Pagamenti registrati
    """

    __tablename__ = "estimates"

    # ------------------------------------------------------------
    # Colonne Identificazione
    # ------------------------------------------------------------
    number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        doc="Numero preventivo progressivo annuale (formato: PR-YYYY-NNNN)",
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Versione del preventivo (incrementata ad ogni duplicazione)",
    )

    project_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID del progetto di origine",
    )

    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ------------------------------------------------------------
    # Snapshot Cliente
    # ------------------------------------------------------------
    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    client_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    client_address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Condizioni Commerciali
    # ------------------------------------------------------------
    currency: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="EUR",
        doc="Codice valuta (solo etichetta, nessuna conversione)",
    )

    global_discount_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    global_discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    global_tax_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    extra_fees: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    extra_fees_description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    deposit_pct: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    deposit_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )

    # ------------------------------------------------------------
    # Condizioni di Pagamento
    # ------------------------------------------------------------
    payment_method: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    payment_recipient: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Persona fisica che riceve il pagamento",
    )
    prepayment_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    prepayment_confirmed_at: Mapped[Optional[datetime.datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    prepayment_confirmed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # ------------------------------------------------------------
    # Totali Calcolati
    # ------------------------------------------------------------
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    deposit_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    balance_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    # ------------------------------------------------------------
    # Ciclo di Vita
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="draft",
        doc="Stato del preventivo",
    )
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    valid_until: Mapped[Optional[datetime.date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True, doc="Note interne")
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        doc="UUID dell'operatore che ha creato il preventivo",
    )
    sent_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ------------------------------------------------------------
    # Relazioni
    # ------------------------------------------------------------
    project: Mapped[Optional["Project"]] = relationship(
        "Project",
        back_populates="estimates",
        lazy="noload",
    )

    line_items: Mapped[List["EstimateLineItem"]] = relationship(
        "EstimateLineItem",
        back_populates="estimate",
        cascade="all, delete-orphan",
        order_by="EstimateLineItem.position",
        lazy="selectin",
        doc="Voci del preventivo",
    )

    payments: Mapped[List["EstimatePayment"]] = relationship(
        "EstimatePayment",
        back_populates="estimate",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_estimates_status", "status"),
        Index("ix_estimates_project_version", "project_id", "version"),
        CheckConstraint(
            "status IN ('draft', 'sent', 'viewed', 'approved', 'pending_prepayment', "
            "'prepayment_received', 'in_progress', 'completed', 'closed', 'rejected', 'converted')",
            name="ck_estimates_status",
        ),
        CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('cash', 'bank_transfer', 'card')",
            name="ck_estimates_payment_method",
        ),
        CheckConstraint("version >= 1", name="ck_estimates_version_positive"),
        CheckConstraint("global_discount_pct >= 0 AND global_discount_pct <= 100", name="ck_estimates_discount_pct"),
        CheckConstraint("deposit_pct >= 0 AND deposit_pct <= 100", name="ck_estimates_deposit_pct"),
    )

    def __repr__(self) -> str:
        return f"<Estimate(number={self.number!r}, version={self.version}, status={self.status!r})>"


class EstimateLineItem(Base, UUIDMixin, TimestampMixin):
    """
    Voce di un preventivo.

    line_total è calcolato dal motore prezzi ad ogni modifica della voce.
    """

    __tablename__ = "estimate_line_items"

    estimate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("estimates.id", ondelete="CASCADE"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False, default="material")
    item_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), nullable=False, default=Decimal("1"))
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    cost_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
        doc="Costo interno (non usato nei totali)",
    )
    labor_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    labor_rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    markup_pct: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    discount_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    tax_pct: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    estimate: Mapped["Estimate"] = relationship(
        "Estimate",
        back_populates="line_items",
        lazy="noload",
    )

    __table_args__ = (
        Index("ix_estimate_line_items_position", "estimate_id", "position"),
        CheckConstraint(
            "item_type IN ('material', 'labor', 'service', 'other')",
            name="ck_estimate_line_items_item_type",
        ),
        CheckConstraint("quantity >= 0", name="ck_estimate_line_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_estimate_line_items_unit_price_positive"),
    )
