"""
Motore di calcolo prezzi
Progetto: Electro Estimator (Preventivatore Impianti Elettrici)

Funzioni pure (nessun I/O) per il totale di riga e i totali del preventivo.
Tutti i calcoli usano Decimal; gli importi in uscita sono arrotondati
a 2 decimali con ROUND_HALF_UP, i passaggi intermedi no.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union

Number = Union[Decimal, int, float, str, None]

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Number) -> Decimal:
    """Converte un valore numerico in Decimal; None vale 0."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() evita di trascinare l'errore binario dei float
    return Decimal(str(value))


def money_round(value: Number) -> Decimal:
    """Arrotonda un importo al centesimo (half-up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _pct(value: Number) -> Decimal:
    return to_decimal(value) / HUNDRED


def compute_line_total(item: Any) -> Decimal:
    """
    Calcola il totale di una voce.

    net = quantity * unit_price, labor = labor_hours * labor_rate,
    il ricarico si applica a net + labor, lo sconto al valore ricaricato,
    l'imposta al valore scontato.

    Args:
        item: Oggetto con gli attributi della voce (modello ORM o schema).
              Gli attributi mancanti valgono 0.

    Returns:
        Decimal: Totale di riga arrotondato al centesimo
    """
    quantity = to_decimal(getattr(item, "quantity", None))
    unit_price = to_decimal(getattr(item, "unit_price", None))
    labor_hours = to_decimal(getattr(item, "labor_hours", None))
    labor_rate = to_decimal(getattr(item, "labor_rate", None))

    subtotal = quantity * unit_price + labor_hours * labor_rate
    markup = subtotal * _pct(getattr(item, "markup_pct", None))
    discount = (subtotal + markup) * _pct(getattr(item, "discount_pct", None))
    tax = (subtotal + markup - discount) * _pct(getattr(item, "tax_pct", None))

    return money_round(subtotal + markup - discount + tax)


@dataclass(frozen=True)
class EstimateTotals:
    """Totali derivati di un preventivo."""

    subtotal: Decimal
    discount_total: Decimal
    tax_amount: Decimal
    total: Decimal
    deposit_due: Decimal
    balance_due: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "discount_total": self.discount_total,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "deposit_due": self.deposit_due,
            "balance_due": self.balance_due,
        }


def compute_estimate_totals(
    line_totals: Iterable[Number],
    discount_pct: Number = None,
    discount_amount: Number = None,
    tax_pct: Number = None,
    extra_fees: Number = None,
    deposit_pct: Number = None,
    deposit_amount: Number = None,
) -> EstimateTotals:
    """
    Calcola i totali del preventivo a partire dai totali di riga.

    Sconto globale e acconto usano il maggiore tra valore percentuale
    e valore assoluto. L'imposta globale si applica dopo lo sconto,
    le spese extra si aggiungono dopo l'imposta.

    Returns:
        EstimateTotals: Importi arrotondati al centesimo
    """
    subtotal = sum((to_decimal(t) for t in line_totals), ZERO)
    discount = max(subtotal * _pct(discount_pct), to_decimal(discount_amount))
    tax_base = subtotal - discount
    tax = tax_base * _pct(tax_pct)
    total = tax_base + tax + to_decimal(extra_fees)
    deposit = max(total * _pct(deposit_pct), to_decimal(deposit_amount))
    balance_due = total - deposit

    return EstimateTotals(
        subtotal=money_round(subtotal),
        discount_total=money_round(discount),
        tax_amount=money_round(tax),
        total=money_round(total),
        deposit_due=money_round(deposit),
        balance_due=money_round(balance_due),
    )


def totals_for_estimate(estimate: Any, line_totals: Optional[Iterable[Number]] = None) -> EstimateTotals:
    """Calcola i totali usando le condizioni commerciali di un preventivo."""
    if line_totals is None:
        line_totals = [item.line_total for item in estimate.line_items]
    return compute_estimate_totals(
        line_totals,
        discount_pct=estimate.global_discount_pct,
        discount_amount=estimate.global_discount_amount,
        tax_pct=estimate.global_tax_pct,
        extra_fees=estimate.extra_fees,
        deposit_pct=estimate.deposit_pct,
        deposit_amount=estimate.deposit_amount,
    )
