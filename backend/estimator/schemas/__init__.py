"""
Schemas Pydantic per il progetto Electro Estimator

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle richieste e risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from estimator.schemas import EstimateRead, PaymentRead, etc.

from estimator.schemas.estimate import (
    ALLOWED_TRANSITIONS,
    EDITABLE_STATUSES,
    AvailableTransitions,
    EstimateCreate,
    EstimateList,
    EstimateListItem,
    EstimateRead,
    EstimateRestrictedRead,
    EstimateStatus,
    EstimateUpdate,
    LineItemCreate,
    LineItemRead,
    LineItemType,
    LineItemUpdate,
    PaymentMethod,
    TransitionRequest,
    TransitionValidateRequest,
    TransitionValidation,
)
from estimator.schemas.finance import (
    FinanceEntryCreate,
    FinanceEntryRead,
    FinanceEntryType,
    FinanceSource,
    FinanceSummary,
)
from estimator.schemas.history import HistoryAction, HistoryRead
from estimator.schemas.notification import NotificationMessage, NotificationType
from estimator.schemas.payment import PaymentCreate, PaymentRead, PaymentRefund, PaymentStatus
from estimator.schemas.preset import LineItemFromPreset, PresetCreate, PresetRead, PresetUpdate
from estimator.schemas.project import EstimateFromProject, ProjectCreate, ProjectRead, ProjectStatus
from estimator.schemas.token import TokenPayload

__all__ = [
    "ALLOWED_TRANSITIONS",
    "EDITABLE_STATUSES",
    "AvailableTransitions",
    "EstimateCreate",
    "EstimateList",
    "EstimateListItem",
    "EstimateRead",
    "EstimateRestrictedRead",
    "EstimateStatus",
    "EstimateUpdate",
    "LineItemCreate",
    "LineItemRead",
    "LineItemType",
    "LineItemUpdate",
    "PaymentMethod",
    "TransitionRequest",
    "TransitionValidateRequest",
    "TransitionValidation",
    "FinanceEntryCreate",
    "FinanceEntryRead",
    "FinanceEntryType",
    "FinanceSource",
    "FinanceSummary",
    "HistoryAction",
    "HistoryRead",
    "NotificationMessage",
    "NotificationType",
    "PaymentCreate",
    "PaymentRead",
    "PaymentRefund",
    "PaymentStatus",
    "EstimateFromProject",
    "ProjectCreate",
    "ProjectRead",
    "ProjectStatus",
    "LineItemFromPreset",
    "PresetCreate",
    "PresetRead",
    "PresetUpdate",
    "TokenPayload",
]
