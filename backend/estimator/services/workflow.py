"""
Macchina a stati del preventivo
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Validazione delle transizioni senza accesso al database: le funzioni
ricevono il preventivo (modello ORM o qualunque oggetto con gli stessi
attributi) già caricato.
"""

import logging
from typing import Any, Union

from estimator.schemas.estimate import (
    ALLOWED_TRANSITIONS,
    EDITABLE_STATUSES,
    EstimateStatus,
    TransitionValidation,
)
from estimator.services.pricing import ZERO, to_decimal

# Logger per questo modulo
logger = logging.getLogger(__name__)


def _as_status(value: Union[str, EstimateStatus]) -> EstimateStatus:
    return value if isinstance(value, EstimateStatus) else EstimateStatus(value)


def is_editable(status: Union[str, EstimateStatus]) -> bool:
    """True se voci e condizioni commerciali sono modificabili nello stato dato."""
    try:
        return _as_status(status) in EDITABLE_STATUSES
    except ValueError:
        return False


def get_available_transitions(estimate: Any) -> list[EstimateStatus]:
    """Stati raggiungibili dallo stato corrente (vuoto per gli stati finali)."""
    try:
        current = _as_status(estimate.status)
    except ValueError:
        logger.error("Stato invalido nel database: %s", estimate.status)
        return []
    return list(ALLOWED_TRANSITIONS.get(current, []))


def validate_transition(estimate: Any, target: Union[str, EstimateStatus]) -> TransitionValidation:
    """
    Verifica se il preventivo può passare allo stato indicato.

    Oltre alla matrice ALLOWED_TRANSITIONS controlla le precondizioni:
    - in_progress: acconto confermato se deposit_pct > 0, metodo di
      pagamento e destinatario indicati
    - prepayment_received: metodo di pagamento e destinatario indicati

    Returns:
        TransitionValidation: valid=False con il motivo se non consentita
    """
    try:
        target = _as_status(target)
    except ValueError:
        return TransitionValidation(valid=False, reason=f"Stato '{target}' sconosciuto")

    try:
        current = _as_status(estimate.status)
    except ValueError:
        logger.error("Stato invalido nel database: %s", estimate.status)
        return TransitionValidation(valid=False, reason=f"Stato invalido: {estimate.status}")

    if target not in ALLOWED_TRANSITIONS.get(current, []):
        return TransitionValidation(
            valid=False,
            reason=f"Transizione da '{current.value}' a '{target.value}' non consentita",
        )

    if target == EstimateStatus.IN_PROGRESS:
        if to_decimal(estimate.deposit_pct) > ZERO and not estimate.prepayment_confirmed:
            return TransitionValidation(
                valid=False,
                reason="Impossibile avviare i lavori senza conferma dell'acconto. "
                       "Confermare prima la ricezione dell'acconto.",
            )
        if not estimate.payment_method:
            return TransitionValidation(
                valid=False,
                reason="Indicare il metodo di pagamento prima di avviare i lavori.",
            )
        if not estimate.payment_recipient:
            return TransitionValidation(
                valid=False,
                reason="Indicare il destinatario del pagamento prima di avviare i lavori.",
            )

    if target == EstimateStatus.PREPAYMENT_RECEIVED:
        if not estimate.payment_method:
            return TransitionValidation(
                valid=False,
                reason="Indicare il metodo di pagamento per confermare l'acconto.",
            )
        if not estimate.payment_recipient:
            return TransitionValidation(
                valid=False,
                reason="Indicare il destinatario del pagamento per confermare l'acconto.",
            )

    return TransitionValidation(valid=True)
