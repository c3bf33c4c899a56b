"""
Schemas Pydantic per i Preventivi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Definisce gli schemi di validazione e serializzazione per l'API,
insieme alla macchina a stati del preventivo.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# -------------------------------------------------------------------
# Enum per gli stati del preventivo
# -------------------------------------------------------------------

class EstimateStatus(str, Enum):
    """Enum che definisce i possibili stati di un preventivo."""
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    APPROVED = "approved"
    PENDING_PREPAYMENT = "pending_prepayment"
    PREPAYMENT_RECEIVED = "prepayment_received"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CLOSED = "closed"
    REJECTED = "rejected"
    CONVERTED = "converted"


class LineItemType(str, Enum):
    """Enum che definisce i tipi di voce di un preventivo."""
    MATERIAL = "material"
    LABOR = "labor"
    SERVICE = "service"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """Metodi di pagamento accettati."""
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# Nota: la validazione delle transizioni avviene in services/workflow.py
# Questa matrice è l'unica source of truth ed è importata dal service.
ALLOWED_TRANSITIONS: dict[EstimateStatus, list[EstimateStatus]] = {
    EstimateStatus.DRAFT: [EstimateStatus.SENT],
    EstimateStatus.SENT: [EstimateStatus.APPROVED, EstimateStatus.REJECTED],
    EstimateStatus.VIEWED: [EstimateStatus.APPROVED, EstimateStatus.REJECTED],
    EstimateStatus.APPROVED: [EstimateStatus.PENDING_PREPAYMENT, EstimateStatus.IN_PROGRESS],
    EstimateStatus.PENDING_PREPAYMENT: [
        EstimateStatus.PREPAYMENT_RECEIVED,
        EstimateStatus.REJECTED,
    ],
    EstimateStatus.PREPAYMENT_RECEIVED: [EstimateStatus.IN_PROGRESS],
    EstimateStatus.IN_PROGRESS: [EstimateStatus.COMPLETED],
    EstimateStatus.COMPLETED: [EstimateStatus.CLOSED],
    EstimateStatus.CLOSED: [],  # Stato finale
    EstimateStatus.REJECTED: [EstimateStatus.DRAFT],
    EstimateStatus.CONVERTED: [],  # Stato finale
}

# Stati in cui voci e condizioni commerciali sono modificabili
EDITABLE_STATUSES: frozenset[EstimateStatus] = frozenset(
    {EstimateStatus.DRAFT, EstimateStatus.SENT}
)

STATUS_LABELS: dict[EstimateStatus, str] = {
    EstimateStatus.DRAFT: "Bozza",
    EstimateStatus.SENT: "Inviato",
    EstimateStatus.VIEWED: "Visualizzato",
    EstimateStatus.APPROVED: "Approvato",
    EstimateStatus.PENDING_PREPAYMENT: "In attesa di acconto",
    EstimateStatus.PREPAYMENT_RECEIVED: "Acconto ricevuto",
    EstimateStatus.IN_PROGRESS: "In lavorazione",
    EstimateStatus.COMPLETED: "Completato",
    EstimateStatus.CLOSED: "Chiuso",
    EstimateStatus.REJECTED: "Rifiutato",
    EstimateStatus.CONVERTED: "Convertito",
}


# -------------------------------------------------------------------
# Funzioni di validazione standalone
# -------------------------------------------------------------------

def validate_payment_recipient(value: Optional[str]) -> Optional[str]:
    """
    Valida il destinatario del pagamento.

    Deve identificare una persona fisica: almeno due caratteri e
    almeno una lettera (non un codice o un numero).

    Raises:
        ValueError: Se il valore non identifica una persona
    """
    if value is None:
        return None
    value = " ".join(value.split())
    if not value:
        return None
    if len(value) < 2 or not any(ch.isalpha() for ch in value):
        raise ValueError("Il destinatario del pagamento deve essere una persona fisica")
    return value


# -------------------------------------------------------------------
# Schemas per le voci del preventivo
# -------------------------------------------------------------------

class LineItemBase(BaseModel):
    """
    Schema base per le voci del preventivo.

    Attributes:
        item_type: Tipo di voce (material, labor, service, other)
        description: Descrizione della voce
        quantity: Quantità
        unit_price: Prezzo unitario
        labor_hours: Ore di manodopera
        labor_rate: Tariffa oraria
        markup_pct: Ricarico percentuale
        discount_pct: Sconto percentuale
        tax_pct: Imposta percentuale
    """
    item_type: LineItemType = Field(default=LineItemType.MATERIAL, description="Tipo di voce")
    item_code: Optional[str] = Field(None, max_length=50, description="Codice articolo")
    description: str = Field(..., min_length=1, max_length=500, description="Descrizione della voce")
    unit: Optional[str] = Field(None, max_length=20, description="Unità di misura")
    quantity: Decimal = Field(default=Decimal("1"), ge=Decimal("0"), description="Quantità")
    unit_price: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), description="Prezzo unitario")
    cost_price: Optional[Decimal] = Field(None, ge=Decimal("0"), description="Costo interno")
    labor_hours: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), description="Ore di manodopera")
    labor_rate: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), description="Tariffa oraria")
    markup_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), description="Ricarico %")
    discount_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"), description="Sconto %")
    tax_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"), description="Imposta %")


class LineItemCreate(LineItemBase):
    """Schema per la creazione di una voce del preventivo."""
    pass


class LineItemUpdate(BaseModel):
    """
    Schema per l'aggiornamento di una voce.

    Tutti i campi sono opzionali per permettere aggiornamenti parziali.
    """
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
    discount_pct: Optional[Decimal] = Field(None, ge=Decimal("0"), le=Decimal("100"))
    tax_pct: Optional[Decimal] = Field(None, ge=Decimal("0"), le=Decimal("100"))
    position: Optional[int] = Field(None, ge=0)


class LineItemRead(LineItemBase):
    """Schema per la lettura di una voce, con il totale di riga calcolato."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    estimate_id: uuid.UUID
    position: int
    line_total: Decimal


class LineItemRestrictedRead(BaseModel):
    """Voce senza prezzi, per gli operatori che non possono vederli."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    position: int
    item_type: LineItemType
    description: str
    unit: Optional[str] = None
    quantity: Decimal


# -------------------------------------------------------------------
# Schemas per Estimate
# -------------------------------------------------------------------

class EstimateTerms(BaseModel):
    """Condizioni commerciali e di pagamento condivise da create/update."""
    global_discount_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    global_discount_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    global_tax_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    extra_fees: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    extra_fees_description: Optional[str] = Field(None, max_length=255)
    deposit_pct: Decimal = Field(default=Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    deposit_amount: Decimal = Field(default=Decimal("0"), ge=Decimal("0"))
    payment_method: Optional[PaymentMethod] = None
    payment_recipient: Optional[str] = Field(None, max_length=255)

    @field_validator("payment_recipient")
    @classmethod
    def check_payment_recipient(cls, v: Optional[str]) -> Optional[str]:
        return validate_payment_recipient(v)


class EstimateCreate(EstimateTerms):
    """
    Schema per la creazione di un preventivo.

    I dati del cliente sono uno snapshot. Se project_id è indicato i dati
    mancanti vengono copiati dal progetto.
    """
    project_id: Optional[uuid.UUID] = None
    title: Optional[str] = Field(None, max_length=255)
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_phone: Optional[str] = Field(None, max_length=50)
    client_email: Optional[str] = Field(None, max_length=255)
    client_address: Optional[str] = None
    client_comment: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    valid_until: Optional[datetime.date] = None
    notes: Optional[str] = None
    line_items: list[LineItemCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_client(self) -> "EstimateCreate":
        """Senza progetto il nome cliente è obbligatorio."""
        if self.project_id is None and not (self.client_name or "").strip():
            raise ValueError("Il nome del cliente è obbligatorio")
        return self


class EstimateUpdate(BaseModel):
    """
    Schema per l'aggiornamento parziale di un preventivo.

    Su un preventivo bloccato sono accettati solo payment_method,
    payment_recipient e notes.
    """
    title: Optional[str] = Field(None, max_length=255)
    client_name: Optional[str] = Field(None, min_length=1, max_length=255)
    client_phone: Optional[str] = Field(None, max_length=50)
    client_email: Optional[str] = Field(None, max_length=255)
    client_address: Optional[str] = None
    client_comment: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=10)
    global_discount_pct: Optional[Decimal] = Field(None, ge=Decimal("0"), le=Decimal("100"))
    global_discount_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    global_tax_pct: Optional[Decimal] = Field(None, ge=Decimal("0"), le=Decimal("100"))
    extra_fees: Optional[Decimal] = Field(None, ge=Decimal("0"))
    extra_fees_description: Optional[str] = Field(None, max_length=255)
    deposit_pct: Optional[Decimal] = Field(None, ge=Decimal("0"), le=Decimal("100"))
    deposit_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    payment_method: Optional[PaymentMethod] = None
    payment_recipient: Optional[str] = Field(None, max_length=255)
    valid_until: Optional[datetime.date] = None
    notes: Optional[str] = None

    @field_validator("payment_recipient")
    @classmethod
    def check_payment_recipient(cls, v: Optional[str]) -> Optional[str]:
        return validate_payment_recipient(v)


class EstimateRead(BaseModel):
    """Schema completo di lettura di un preventivo, prezzi inclusi."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    number: str
    version: int
    project_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    status: EstimateStatus
    locked: bool

    client_name: str
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    client_address: Optional[str] = None
    client_comment: Optional[str] = None

    currency: str
    global_discount_pct: Decimal
    global_discount_amount: Decimal
    global_tax_pct: Decimal
    extra_fees: Decimal
    extra_fees_description: Optional[str] = None
    deposit_pct: Decimal
    deposit_amount: Decimal

    payment_method: Optional[PaymentMethod] = None
    payment_recipient: Optional[str] = None
    prepayment_confirmed: bool
    prepayment_confirmed_at: Optional[datetime.datetime] = None
    prepayment_confirmed_by: Optional[uuid.UUID] = None

    subtotal: Decimal
    discount_total: Decimal
    tax_amount: Decimal
    total: Decimal
    deposit_due: Decimal
    balance_due: Decimal
    paid_amount: Decimal

    valid_until: Optional[datetime.date] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    sent_at: Optional[datetime.datetime] = None
    viewed_at: Optional[datetime.datetime] = None
    approved_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime

    line_items: list[LineItemRead] = Field(default_factory=list)


class EstimateRestrictedRead(BaseModel):
    """Preventivo senza prezzi né importi."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    number: str
    version: int
    project_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    status: EstimateStatus
    locked: bool
    client_name: str
    client_phone: Optional[str] = None
    client_address: Optional[str] = None
    valid_until: Optional[datetime.date] = None
    created_at: datetime.datetime
    line_items: list[LineItemRestrictedRead] = Field(default_factory=list)


class EstimateListItem(BaseModel):
    """Riga della lista preventivi. total è None senza permesso prezzi."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    number: str
    version: int
    project_id: Optional[uuid.UUID] = None
    title: Optional[str] = None
    client_name: str
    status: EstimateStatus
    currency: str
    total: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    created_at: datetime.datetime


class EstimateList(BaseModel):
    """
    Schema per la risposta paginata dei preventivi.

    Attributes:
        items: Lista dei preventivi
        total: Numero totale di record
        page: Pagina corrente
        per_page: Record per pagina
        total_pages: Numero totale di pagine (calcolato automaticamente)
    """
    items: list[EstimateListItem]
    total: int
    page: int
    per_page: int
    total_pages: int = 0

    @model_validator(mode="after")
    def compute_total_pages(self) -> "EstimateList":
        """Calcola automaticamente il numero totale di pagine."""
        if self.per_page > 0:
            self.total_pages = (self.total + self.per_page - 1) // self.per_page
        return self


# -------------------------------------------------------------------
# Schemas per le transizioni di stato
# -------------------------------------------------------------------

class TransitionRequest(BaseModel):
    """
    Richiesta di cambio stato.

    expected_status è lo stato visto dall'operatore: se il preventivo è
    stato modificato nel frattempo la richiesta fallisce con 409.
    """
    target_status: EstimateStatus
    comment: Optional[str] = Field(None, max_length=2000)
    expected_status: Optional[EstimateStatus] = None


class TransitionValidateRequest(BaseModel):
    """Richiesta di validazione a secco di una transizione."""
    target_status: EstimateStatus


class TransitionValidation(BaseModel):
    """Esito della validazione di una transizione."""
    valid: bool
    reason: Optional[str] = None


class AvailableTransitions(BaseModel):
    """Transizioni disponibili dallo stato corrente."""
    current_status: EstimateStatus
    available: list[EstimateStatus]
