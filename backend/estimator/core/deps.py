"""
Dipendenze FastAPI per l'operatore corrente
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Il login non è esposto da questo servizio: l'operatore arriva già
autenticato con un Bearer token del sistema di autenticazione esterno.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from estimator.core.permissions import Actor
from estimator.core.security import decode_token

# tokenUrl serve solo alla documentazione OpenAPI: il login vive altrove
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_current_actor(
    token: Optional[str] = Depends(oauth2_scheme),
) -> Actor:
    """
    Ricava l'operatore (id e ruoli) dal token.

    Risponde 401 se il token manca, è scaduto, non è firmato con la
    chiave condivisa o il subject non è un UUID. I permessi veri e
    propri sono controllati dai service tramite `core.permissions`.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token di autenticazione non fornito",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = decode_token(token)

    try:
        actor_id = uuid.UUID(claims.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Il subject del token non è un UUID",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Actor(id=actor_id, roles=frozenset(claims.roles))


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


__all__ = [
    "get_current_actor",
    "oauth2_scheme",
    "CurrentActor",
]
