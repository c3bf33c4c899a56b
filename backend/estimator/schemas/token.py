"""
Claim dei token di accesso
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TokenPayload(BaseModel):
    """Claim usati dal servizio: subject, ruoli e scadenza."""

    sub: str = Field(..., description="UUID dell'operatore")
    roles: list[str] = Field(default_factory=list, description="Claim 'roles', oppure 'role' singolo")
    exp: Optional[datetime] = Field(None, description="Scadenza del token")


__all__ = [
    "TokenPayload",
]
