"""
Schemas Pydantic per il Listino Voci
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from estimator.schemas.estimate import LineItemType


class PresetBase(BaseModel):
    """
    Campi di una voce del listino.

    Attributes:
        name: Nome breve per la ricerca
        category: Raggruppamento (es. "Quadri", "Cavi")
        quantity: Quantità proposta quando la voce viene inserita
    """
    name: str = Field(..., min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    item_type: LineItemType = Field(default=LineItemType.MATERIAL)
    item_code: Optional[str] = Field(None, max_length=50)
    description: str = Field(..., min_length=1, max_length=500)
    unit: Optional[str] = Field(None, max_length=20)
    quantity: Decimal = Field(default=Decimal("1"), ge=Decimal("0"))
    unit_price: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    cost_price: Optional[Decimal] = Field(None, ge=Decimal("0"))
    labor_hours: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    labor_rate: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    markup_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))


class PresetCreate(PresetBase):
    """Schema per la creazione di una voce del listino."""
    pass


class PresetUpdate(BaseModel):
    """Aggiornamento parziale; is_active=True riattiva una voce disattivata."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=100)
    item_type: Optional[LineItemType] = None
    item_code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    unit: Optional[str] = Field(None, max_length=20)
    quantity: Optional[Decimal] = Field(None, ge=Decimal("0"))
    unit_price: Optional[Decimal] = Field(None, ge=Decimal("0"))
    cost_price: Optional[Decimal] = Field(None, ge=Decimal("0"))
    labor_hours: Optional[Decimal] = Field(None, ge=Decimal("0"))
    labor_rate: Optional[Decimal] = Field(None, ge=Decimal("0"))
    markup_pct: Optional[Decimal] = Field(None, ge=Decimal("0"))
    is_active: Optional[bool] = None


class PresetRead(PresetBase):
    """Schema di lettura di una voce del listino."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class LineItemFromPreset(BaseModel):
    """Inserimento di una voce del listino in un preventivo."""
    preset_id: uuid.UUID
    quantity: Optional[Decimal] = Field(
        None,
        ge=Decimal("0"),
        description="Quantità della riga; se assente vale quella del listino",
    )
