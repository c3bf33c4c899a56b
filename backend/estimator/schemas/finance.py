"""
Schemas Pydantic per la Prima Nota
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FinanceEntryType(str, Enum):
    """Tipo di movimento."""
    INCOME = "income"
    EXPENSE = "expense"


class FinanceSource(str, Enum):
    """Origine del movimento."""
    ESTIMATE_PAYMENT = "estimate_payment"
    REFUND = "refund"
    MANUAL = "manual"


class FinanceEntryCreate(BaseModel):
    """Movimento manuale registrato da un operatore."""
    entry_type: FinanceEntryType
    amount: Decimal = Field(..., gt=Decimal("0"))
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    description: Optional[str] = Field(None, max_length=1000)
    estimate_id: Optional[uuid.UUID] = None
    fees: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class FinanceEntryRead(BaseModel):
    """Schema di lettura di un movimento."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entry_type: FinanceEntryType
    amount: Decimal
    currency: str
    source: FinanceSource
    description: Optional[str] = None
    estimate_id: Optional[uuid.UUID] = None
    payment_id: Optional[uuid.UUID] = None
    fees: Decimal
    gross_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    reason: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime.datetime


class FinanceSummary(BaseModel):
    """
    Riepilogo entrate/uscite su un periodo.

    Attributes:
        currency: Valuta dei movimenti considerati
        total_income: Somma delle entrate
        total_expenses: Somma delle uscite
        net_profit: Entrate - uscite
        entry_count: Numero di movimenti considerati
    """
    date_from: Optional[datetime.date] = None
    date_to: Optional[datetime.date] = None
    currency: str
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    entry_count: int
