"""
Permessi degli operatori
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

I ruoli sono gestiti dal sistema di autenticazione esterno. Questo modulo
li traduce nei tre permessi usati dal ciclo di vita del preventivo; i
service verificano comunque le proprie precondizioni di business.
"""

import uuid
from dataclasses import dataclass, field
from typing import Iterable

from estimator.core.exceptions import AuthorizationError

# Ruoli con pieno accesso ai preventivi
MANAGER_ROLES: frozenset[str] = frozenset({"admin", "super_admin", "manager"})


@dataclass(frozen=True)
class Permissions:
    """Permessi derivati dai ruoli di un operatore."""

    can_manage_estimates: bool = False
    can_view_prices: bool = False
    can_change_status: bool = False

    @classmethod
    def for_roles(cls, roles: Iterable[str]) -> "Permissions":
        """admin/super_admin/manager hanno tutti i permessi; gli altri ruoli nessuno."""
        elevated = any(role.lower() in MANAGER_ROLES for role in roles)
        return cls(
            can_manage_estimates=elevated,
            can_view_prices=elevated,
            can_change_status=elevated,
        )


@dataclass(frozen=True)
class Actor:
    """
    Operatore che esegue un'azione.

    Attributes:
        id: UUID dell'utente (claim "sub" del token)
        roles: Ruoli assegnati dal sistema di autenticazione
    """

    id: uuid.UUID
    roles: frozenset[str] = field(default_factory=frozenset)

    @property
    def permissions(self) -> Permissions:
        return Permissions.for_roles(self.roles)


def require_manage_estimates(actor: Actor) -> None:
    """Solleva AuthorizationError se l'operatore non può gestire i preventivi."""
    if not actor.permissions.can_manage_estimates:
        raise AuthorizationError("Non hai i permessi per gestire i preventivi")


def require_change_status(actor: Actor) -> None:
    """Solleva AuthorizationError se l'operatore non può cambiare lo stato."""
    if not actor.permissions.can_change_status:
        raise AuthorizationError("Non hai i permessi per cambiare lo stato del preventivo")


def require_view_prices(actor: Actor) -> None:
    """Solleva AuthorizationError se l'operatore non può vedere prezzi e importi."""
    if not actor.permissions.can_view_prices:
        raise AuthorizationError("Non hai i permessi per visualizzare prezzi e pagamenti")
