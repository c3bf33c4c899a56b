"""
Verifica dei token JWT
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

I token sono emessi dal sistema di autenticazione esterno e firmati
con la chiave condivisa `secret_key`. create_access_token serve agli
script di servizio e ai test.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fastapi import HTTPException, status
from jose import JWTError, jwt

from estimator.core.config import settings
from estimator.schemas.token import TokenPayload


def create_access_token(
    user_id: str,
    roles: Iterable[str],
    expires_minutes: Optional[int] = None,
) -> str:
    """Firma un token con subject `user_id` e i ruoli indicati."""
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    claims = {
        "sub": user_id,
        "roles": list(roles),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
        "type": "access",
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_token(token: str) -> TokenPayload:
    """
    Verifica firma e scadenza e restituisce i claim.

    Il sistema di autenticazione può mandare i ruoli come lista ("roles")
    o come stringa singola ("role"); entrambe le forme sono accettate.
    I token di refresh vengono rifiutati.

    Raises:
        HTTPException 401: firma errata, token scaduto, tipo sbagliato
            o subject assente
    """
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        raise _unauthorized(f"Token invalido o scaduto: {e}")

    if claims.get("type", "access") != "access":
        raise _unauthorized("Token di refresh non valido per questa operazione")

    roles = claims.get("roles")
    if roles is None:
        roles = [claims["role"]] if claims.get("role") else []
    elif isinstance(roles, str):
        roles = [roles]

    exp = claims.get("exp")
    payload = TokenPayload(
        sub=str(claims.get("sub") or ""),
        roles=[str(r) for r in roles],
        exp=datetime.fromtimestamp(exp, tz=timezone.utc) if isinstance(exp, (int, float)) else None,
    )
    if not payload.sub:
        raise _unauthorized("Token senza subject")

    return payload


__all__ = [
    "create_access_token",
    "decode_token",
]
