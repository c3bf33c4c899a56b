"""
Schemas Pydantic per i Progetti
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectStatus(str, Enum):
    """Stati di un progetto."""
    NEW = "new"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProjectCreate(BaseModel):
    """Schema per la creazione di un progetto."""
    client_name: str = Field(..., min_length=1, max_length=255)
    client_phone: Optional[str] = Field(None, max_length=50)
    client_email: Optional[str] = Field(None, max_length=255)
    client_address: Optional[str] = None
    source: str = Field(default="website", max_length=50)


class ProjectRead(BaseModel):
    """Schema di lettura di un progetto."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    client_name: str
    client_phone: Optional[str] = None
    client_email: Optional[str] = None
    client_address: Optional[str] = None
    source: str
    status: ProjectStatus
    created_by: Optional[uuid.UUID] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class EstimateFromProject(BaseModel):
    """Richiesta di creazione di un preventivo da progetto."""
    title: Optional[str] = Field(None, max_length=255)
    client_comment: Optional[str] = None
