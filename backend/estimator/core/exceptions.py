"""
Eccezioni di dominio del preventivatore
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

I service sollevano queste eccezioni; main.py le converte in risposte
JSON con status_code, error_code ed eventuali campi extra.

BusinessValidationError non va confusa con pydantic.ValidationError:
la prima segnala regole di business violate (preventivo bloccato,
pagamento già rimborsato), la seconda input malformato.
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "InvalidTransitionError",
    "ConflictError",
    "AuthorizationError",
]


class AppException(Exception):
    """
    Base delle eccezioni del preventivatore.

    Attributes:
        status_code: Codice HTTP della risposta
        error_code: Codice stabile letto dal frontend
        detail: Messaggio per l'operatore (in italiano)
        extra: Campi aggiunti al corpo della risposta
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Errore interno del server"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detail = detail or self.default_detail
        if error_code is not None:
            self.error_code = error_code
        self.extra = extra
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        """Corpo JSON della risposta di errore."""
        content: Dict[str, Any] = {"detail": self.detail, "error_code": self.error_code}
        if self.extra:
            content.update(self.extra)
        return content


class NotFoundError(AppException):
    """Preventivo, voce, pagamento o progetto inesistente."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Risorsa non trovata"


class BusinessValidationError(ValueError, AppException):
    """
    Regola di business violata.

    Eredita anche da ValueError, così può essere sollevata dai validatori
    Pydantic. Gli error_code più usati:
        - ESTIMATE_LOCKED: modifica di un preventivo bloccato
        - PAYMENT_NOT_CONFIRMED: rimborso di un pagamento non confermato
        - PAYMENT_ALREADY_REFUNDED: secondo rimborso dello stesso pagamento
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"
    default_detail: str = "Operazione non consentita"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # ValueError.__init__ non accetta error_code/extra
        AppException.__init__(self, detail, error_code, extra)


class InvalidTransitionError(BusinessValidationError):
    """
    Transizione di stato del preventivo non consentita.

    La risposta riporta lo stesso contratto della validazione a secco:
    {"valid": false, "reason": "..."}.
    """

    error_code: str = "INVALID_TRANSITION"

    def __init__(self, reason: str) -> None:
        super().__init__(reason, extra={"valid": False, "reason": reason})
        self.reason = reason


class ConflictError(AppException):
    """
    Lo stato nel database non è quello atteso dall'operatore.

    Capita con modifiche concorrenti: l'operatore deve ricaricare e riprovare.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"
    default_detail: str = "Il preventivo è stato modificato, ricaricare e riprovare"


class AuthorizationError(AppException):
    """L'operatore non ha il permesso richiesto dall'operazione."""

    status_code: int = 403
    error_code: str = "FORBIDDEN"
    default_detail: str = "Accesso non autorizzato"
