"""
Schemas Pydantic per i Pagamenti dei preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from estimator.schemas.estimate import PaymentMethod, validate_payment_recipient


class PaymentStatus(str, Enum):
    """Stati del pagamento: pending -> confirmed -> refunded."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REFUNDED = "refunded"


class PaymentCreate(BaseModel):
    """
    Schema per la registrazione di un pagamento.

    Il pagamento nasce sempre in stato pending. Sono ammessi
    pagamenti superiori al saldo (sovrapagamento).
    """
    amount: Decimal = Field(..., gt=Decimal("0"), description="Importo del pagamento")
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    payment_method: Optional[PaymentMethod] = None
    payment_recipient: Optional[str] = Field(None, max_length=255)
    reference: Optional[str] = Field(None, max_length=255, description="Riferimento esterno")
    fees: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), description="Commissioni trattenute")
    notes: Optional[str] = None

    @field_validator("payment_recipient")
    @classmethod
    def check_payment_recipient(cls, v: Optional[str]) -> Optional[str]:
        return validate_payment_recipient(v)

    @model_validator(mode="after")
    def check_fees(self) -> "PaymentCreate":
        """Le commissioni non possono superare l'importo."""
        if self.fees > self.amount:
            raise ValueError("Le commissioni non possono superare l'importo del pagamento")
        return self


class PaymentRefund(BaseModel):
    """Richiesta di rimborso (sempre totale)."""
    reason: Optional[str] = Field(None, max_length=2000, description="Motivo del rimborso")


class PaymentRead(BaseModel):
    """Schema di lettura di un pagamento."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    estimate_id: uuid.UUID
    amount: Decimal
    currency: str
    payment_method: Optional[PaymentMethod] = None
    payment_recipient: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    status: PaymentStatus
    verified: bool
    verified_by: Optional[uuid.UUID] = None
    fees: Decimal
    gross_amount: Optional[Decimal] = None
    net_amount: Optional[Decimal] = None
    confirmed_at: Optional[datetime.datetime] = None
    refunded_at: Optional[datetime.datetime] = None
    refund_reason: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: datetime.datetime
