"""
Unit tests per il motore di calcolo prezzi.

Funzioni pure: nessun database, le voci sono SimpleNamespace.
"""

import random
from decimal import Decimal
from types import SimpleNamespace

import pytest

from estimator.services.pricing import (
    compute_estimate_totals,
    compute_line_total,
    money_round,
    to_decimal,
    totals_for_estimate,
)


def _item(**kwargs):
    return SimpleNamespace(**kwargs)


# ============================================================
# Tests per il totale di riga
# ============================================================


class TestLineTotal:
    """Tests per compute_line_total."""

    def test_line_total_with_markup(self):
        """Test 1 x 100 con ricarico 10% = 110."""
        item = _item(quantity=1, unit_price=Decimal("100"), markup_pct=Decimal("10"))

        assert compute_line_total(item) == Decimal("110.00")

    def test_line_total_with_discount(self):
        """Test 1 x 100 con sconto 10% = 90."""
        item = _item(quantity=1, unit_price=Decimal("100"), discount_pct=Decimal("10"))

        assert compute_line_total(item) == Decimal("90.00")

    def test_line_total_labor(self):
        """Test manodopera: ore x tariffa si somma al materiale."""
        item = _item(
            quantity=Decimal("2"),
            unit_price=Decimal("15.50"),
            labor_hours=Decimal("3"),
            labor_rate=Decimal("40"),
        )

        assert compute_line_total(item) == Decimal("151.00")

    def test_line_total_full_chain(self):
        """Test ricarico, poi sconto, poi imposta sul valore scontato."""
        item = _item(
            quantity=1,
            unit_price=Decimal("100"),
            markup_pct=Decimal("10"),
            discount_pct=Decimal("10"),
            tax_pct=Decimal("22"),
        )

        # 110 - 11 = 99; 99 * 1.22 = 120.78
        assert compute_line_total(item) == Decimal("120.78")

    def test_missing_fields_are_zero(self):
        """Test campi mancanti o None valgono 0."""
        assert compute_line_total(_item()) == Decimal("0.00")
        assert compute_line_total(_item(quantity=None, unit_price=Decimal("10"))) == Decimal("0.00")

    def test_line_total_rounds_half_up(self):
        """Test arrotondamento half-up al centesimo."""
        item = _item(quantity=1, unit_price=Decimal("0.125"))

        assert compute_line_total(item) == Decimal("0.13")

    def test_line_total_is_deterministic(self):
        """Test stesso input, stesso risultato."""
        item = _item(quantity=Decimal("3"), unit_price=Decimal("33.33"), markup_pct=Decimal("7.5"))

        assert compute_line_total(item) == compute_line_total(item)


# ============================================================
# Tests per i totali del preventivo
# ============================================================


class TestEstimateTotals:
    """Tests per compute_estimate_totals."""

    LINES = [Decimal("1000"), Decimal("1000")]

    def test_subtotal(self):
        """Test subtotale = somma dei totali di riga."""
        totals = compute_estimate_totals(self.LINES)

        assert totals.subtotal == Decimal("2000.00")
        assert totals.total == Decimal("2000.00")
        assert totals.balance_due == Decimal("2000.00")

    def test_discount_pct(self):
        """Test sconto globale 10% su 2000 = 1800."""
        totals = compute_estimate_totals(self.LINES, discount_pct=Decimal("10"))

        assert totals.discount_total == Decimal("200.00")
        assert totals.total == Decimal("1800.00")

    def test_tax_pct(self):
        """Test imposta 20% su 2000 = 400, totale 2400."""
        totals = compute_estimate_totals(self.LINES, tax_pct=Decimal("20"))

        assert totals.tax_amount == Decimal("400.00")
        assert totals.total == Decimal("2400.00")

    def test_deposit_pct(self):
        """Test acconto 30% su 2000: acconto 600, saldo 1400."""
        totals = compute_estimate_totals(self.LINES, deposit_pct=Decimal("30"))

        assert totals.deposit_due == Decimal("600.00")
        assert totals.balance_due == Decimal("1400.00")

    def test_tax_applies_after_discount(self):
        """Test l'imposta si calcola sull'imponibile scontato."""
        totals = compute_estimate_totals(
            self.LINES, discount_pct=Decimal("10"), tax_pct=Decimal("20")
        )

        assert totals.tax_amount == Decimal("360.00")
        assert totals.total == Decimal("2160.00")

    def test_extra_fees_added_after_tax(self):
        """Test spese extra non soggette a imposta."""
        totals = compute_estimate_totals(
            self.LINES, tax_pct=Decimal("20"), extra_fees=Decimal("50")
        )

        assert totals.total == Decimal("2450.00")

    def test_discount_larger_value_wins(self):
        """Test sconto: vince il maggiore tra percentuale e importo."""
        by_pct = compute_estimate_totals(
            self.LINES, discount_pct=Decimal("10"), discount_amount=Decimal("150")
        )
        by_amount = compute_estimate_totals(
            self.LINES, discount_pct=Decimal("5"), discount_amount=Decimal("150")
        )

        assert by_pct.discount_total == Decimal("200.00")
        assert by_amount.discount_total == Decimal("150.00")

    def test_deposit_larger_value_wins(self):
        """Test acconto: vince il maggiore tra percentuale e importo."""
        totals = compute_estimate_totals(
            self.LINES, deposit_pct=Decimal("10"), deposit_amount=Decimal("500")
        )

        assert totals.deposit_due == Decimal("500.00")
        assert totals.balance_due == Decimal("1500.00")

    def test_no_lines(self):
        """Test preventivo senza voci: tutti i totali a zero."""
        totals = compute_estimate_totals([])

        assert totals.as_dict() == {
            "subtotal": Decimal("0.00"),
            "discount_total": Decimal("0.00"),
            "tax_amount": Decimal("0.00"),
            "total": Decimal("0.00"),
            "deposit_due": Decimal("0.00"),
            "balance_due": Decimal("0.00"),
        }

    def test_totals_for_estimate_is_idempotent(self):
        """Test ricalcolo sui totali di riga salvati riproduce i totali salvati."""
        items = [
            _item(quantity=Decimal("3"), unit_price=Decimal("19.99"), markup_pct=Decimal("12")),
            _item(labor_hours=Decimal("7.5"), labor_rate=Decimal("42"), discount_pct=Decimal("5")),
        ]
        for item in items:
            item.line_total = compute_line_total(item)
        estimate = SimpleNamespace(
            line_items=items,
            global_discount_pct=Decimal("3"),
            global_discount_amount=None,
            global_tax_pct=Decimal("22"),
            extra_fees=Decimal("25"),
            deposit_pct=Decimal("30"),
            deposit_amount=None,
        )

        first = totals_for_estimate(estimate)
        second = totals_for_estimate(estimate, [i.line_total for i in items])

        assert first == second


# ============================================================
# Tests per la precisione decimale
# ============================================================


def _float_line_total(q, price, hours, rate, markup, discount, tax):
    subtotal = q * price + hours * rate
    marked = subtotal * (1 + markup / 100)
    discounted = marked * (1 - discount / 100)
    return discounted * (1 + tax / 100)


class TestDecimalPrecision:
    """Tests che confrontano Decimal con il calcolo in virgola mobile."""

    def test_to_decimal_from_float(self):
        """Test conversione float senza errore binario."""
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal(None) == Decimal("0")

    def test_money_round(self):
        """Test arrotondamento half-up."""
        assert money_round(Decimal("2.345")) == Decimal("2.35")
        assert money_round(Decimal("2.344")) == Decimal("2.34")

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_decimal_matches_float_within_a_cent(self, seed):
        """Test su voci casuali: Decimal e float differiscono al più di un centesimo."""
        rng = random.Random(seed)

        for _ in range(200):
            values = {
                "quantity": round(rng.uniform(0, 50), 3),
                "unit_price": round(rng.uniform(0, 500), 2),
                "labor_hours": round(rng.uniform(0, 40), 2),
                "labor_rate": round(rng.uniform(0, 80), 2),
                "markup_pct": round(rng.uniform(0, 30), 2),
                "discount_pct": round(rng.uniform(0, 20), 2),
                "tax_pct": rng.choice([0, 4, 10, 22]),
            }
            expected = _float_line_total(*values.values())

            result = compute_line_total(_item(**values))

            assert abs(float(result) - expected) <= 0.01

    def test_many_small_items_do_not_drift(self):
        """Test 1000 voci da 0.10: il subtotale è esattamente 100.00."""
        items = [_item(quantity=1, unit_price=0.1) for _ in range(1000)]

        totals = compute_estimate_totals(compute_line_total(i) for i in items)

        assert totals.subtotal == Decimal("100.00")
