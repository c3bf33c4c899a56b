"""
Modelli Database SQLAlchemy
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Import centralizzato di tutti i modelli per la creazione dello schema
e usage generico.
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


# Import modelli implementati
from estimator.models.project import Project
from estimator.models.estimate import Estimate, EstimateLineItem
from estimator.models.payment import EstimatePayment, FinanceEntry
from estimator.models.history import EstimateHistory
from estimator.models.notification import Notification
from estimator.models.preset import LineItemPreset

# Esportazione di tutti i modelli
__all__ = [
    "Base",
    "Project",
    "Estimate",
    "EstimateLineItem",
    "EstimatePayment",
    "FinanceEntry",
    "EstimateHistory",
    "Notification",
    "LineItemPreset",
]
